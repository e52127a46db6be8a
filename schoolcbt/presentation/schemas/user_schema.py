from pydantic import BaseModel
from typing import List, Optional


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class SubjectClassPair(BaseModel):
    subject: str
    class_name: str

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    username: str
    password: str
    name: str
    surname: str
    role: str = "student"
    class_name: Optional[str] = None
    teaching: List[SubjectClassPair] = []
    enrollments: List[SubjectClassPair] = []


class UserUpdate(BaseModel):
    name: Optional[str] = None
    surname: Optional[str] = None
    password: Optional[str] = None
    class_name: Optional[str] = None
    teaching: Optional[List[SubjectClassPair]] = None
    enrollments: Optional[List[SubjectClassPair]] = None


class BlockRequest(BaseModel):
    blocked: bool


class UserOut(BaseModel):
    id: int
    username: str
    name: str
    surname: str
    role: str
    class_name: Optional[str] = None
    blocked: bool
    teaching: List[SubjectClassPair] = []
    enrollments: List[SubjectClassPair] = []

    class Config:
        from_attributes = True  # SQLAlchemy compatibility
