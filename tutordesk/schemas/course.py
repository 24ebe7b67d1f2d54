from typing import Optional
from pydantic import BaseModel


class CourseOut(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    color: str
    icon: str
    grade_level: Optional[int] = None
    program: Optional[str] = None

    class Config:
        from_attributes = True
