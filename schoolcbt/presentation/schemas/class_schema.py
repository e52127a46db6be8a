from pydantic import BaseModel
from typing import Optional


class ClassCreate(BaseModel):
    name: str
    level: str
    capacity: int = 30
    description: Optional[str] = None


class ClassOut(BaseModel):
    id: int
    name: str
    level: str
    capacity: int
    description: Optional[str] = None

    class Config:
        from_attributes = True
