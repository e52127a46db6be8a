from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..base import Base


class ResultModel(Base):
    __tablename__ = "results"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    total_marks = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String, nullable=False)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    remarks = Column(String, nullable=True)

    # Relationships
    test = relationship("TestModel", back_populates="results")
    student = relationship("UserModel", foreign_keys=[user_id])
    answers = relationship(
        "ResultAnswerModel",
        back_populates="result",
        order_by="ResultAnswerModel.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("test_id", "user_id", name="uq_result_per_student"),
    )


class ResultAnswerModel(Base):
    __tablename__ = "result_answers"

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("results.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="SET NULL"), nullable=True)
    position = Column(Integer, nullable=False)
    selected_option = Column(String, nullable=True)
    correct_option = Column(String, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    marks_awarded = Column(Integer, nullable=False)

    result = relationship("ResultModel", back_populates="answers")
