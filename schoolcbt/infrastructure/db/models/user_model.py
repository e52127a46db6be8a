#user_model.py
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from ..base import Base
from sqlalchemy.orm import relationship
from sqlalchemy import UniqueConstraint


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    surname = Column(String, nullable=False)
    role = Column(String, nullable=False)  # "student", "teacher", "admin" or "super_admin"
    class_name = Column(String, nullable=True)  # students only
    blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    teaching = relationship("TeachingAssignmentModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    enrollments = relationship("EnrollmentModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("username", name="uq_username_user"),
    )


class TeachingAssignmentModel(Base):
    """A (subject, class) pair a teacher is allowed to author tests for."""
    __tablename__ = "teaching_assignments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String, nullable=False)
    class_name = Column(String, nullable=False)

    user = relationship("UserModel", back_populates="teaching")

    __table_args__ = (
        UniqueConstraint("user_id", "subject", "class_name", name="uq_teaching_pair"),
    )


class EnrollmentModel(Base):
    """A (subject, class) pair a student takes tests in."""
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String, nullable=False)
    class_name = Column(String, nullable=False)

    user = relationship("UserModel", back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint("user_id", "subject", "class_name", name="uq_enrollment_pair"),
    )
