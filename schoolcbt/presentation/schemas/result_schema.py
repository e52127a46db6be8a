from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional


class ResultAnswerOut(BaseModel):
    question_id: Optional[int] = None
    selected_option: Optional[str] = None
    correct_option: str
    is_correct: bool
    marks_awarded: int

    class Config:
        from_attributes = True


class ResultOut(BaseModel):
    id: int
    test_id: int
    user_id: int
    score: int
    total_marks: int
    total_questions: int
    percentage: float
    grade: str
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    remarks: Optional[str] = None
    answers: List[ResultAnswerOut] = []

    class Config:
        from_attributes = True


class ResultUpdate(BaseModel):
    score: int
    remarks: Optional[str] = None
