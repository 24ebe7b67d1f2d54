from typing import Literal, TypeVar, Generic
from pydantic import BaseModel

Grade = Literal[9, 10, 11, 12]
Program = Literal["EST", "ACT", "Both"]
Role = Literal["teacher", "student", "admin"]
SharePermission = Literal["read", "write", "admin"]
CourseName = Literal[
    "Biochemistry", "Cell Biology", "Animal Behavior", "Evolution",
    "Photosynthesis", "Cell Division", "Cell Respiration", "General Biology",
]

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    size: int
    total: int
    pages: int


class ShareRequest(BaseModel):
    user_ids: list[int]
    permission: SharePermission = "read"


class ShareOut(BaseModel):
    user_id: int
    permission: SharePermission
    shared_by: int

    class Config:
        from_attributes = True


def clean_tags(value):
    """Accepts a list or the comma separated form the upload forms send."""
    if value is None:
        return value
    if isinstance(value, str):
        value = value.split(",")
    seen = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen
