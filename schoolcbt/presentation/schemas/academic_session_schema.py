from pydantic import BaseModel


class AcademicSessionCreate(BaseModel):
    name: str
    is_active: bool = False


class AcademicSessionOut(BaseModel):
    id: int
    name: str
    is_active: bool

    class Config:
        from_attributes = True
