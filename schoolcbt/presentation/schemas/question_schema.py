# question_schema.py
from pydantic import BaseModel
from typing import List, Optional


class QuestionCreate(BaseModel):
    subject: str
    class_name: str
    text: str
    formula: Optional[str] = None
    options: List[str]
    correct_answer: str
    marks: int = 1
    image_url: Optional[str] = None
    save_to_bank: bool = True


class QuestionUpdate(BaseModel):
    text: Optional[str] = None
    formula: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    marks: Optional[int] = None
    image_url: Optional[str] = None
    save_to_bank: Optional[bool] = None


class QuestionOut(BaseModel):
    id: int
    subject: str
    class_name: str
    text: str
    formula: Optional[str] = None
    options: List[str]
    correct_answer: str  # Teachers see everything
    marks: int
    image_url: Optional[str] = None
    save_to_bank: bool

    class Config:
        from_attributes = True


class BulkQuestionMeta(BaseModel):
    subject: str
    class_name: str
    save_to_bank: bool = True


class BulkUploadResponse(BaseModel):
    total_rows: int
    inserted: int
    failed: int
    errors: List[str] = []
