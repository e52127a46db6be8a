from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from ..base import Base


class SchoolClassModel(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    level = Column(String, nullable=False)  # primary, junior_secondary, senior_secondary, college
    capacity = Column(Integer, default=30, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
