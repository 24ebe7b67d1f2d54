from datetime import date
from typing import Optional
from pydantic import BaseModel, field_validator

from tutordesk.schemas.common import Grade, Program, Role


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    grade: Optional[int] = None
    program: Optional[str] = None
    enrollment_date: Optional[date] = None
    is_active: bool

    class Config:
        from_attributes = True


class StudentUpdate(BaseModel):
    """Teachers and admins may move a student between grades and programs."""
    name: Optional[str] = None
    email: Optional[str] = None
    grade: Optional[Grade] = None
    program: Optional[Program] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v.strip()) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v.strip() if v else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Please provide a valid email")
        return v
