from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..base import Base


class QuestionModel(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String, nullable=False, index=True)
    class_name = Column(String, nullable=False, index=True)
    text = Column(String, nullable=False)
    formula = Column(String, nullable=True)  # optional LaTeX segment rendered after the text
    options = Column(JSON, nullable=False)  # four option strings
    correct_answer = Column(String, nullable=False)
    marks = Column(Integer, default=1, nullable=False)
    image_url = Column(String, nullable=True)
    save_to_bank = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    author = relationship("UserModel")
