from __future__ import annotations
from datetime import date, datetime
from typing import Optional, Literal
from pydantic import BaseModel, field_validator

from tutordesk.schemas.common import CourseName, Grade, Program, ShareOut, clean_tags

MaterialType = Literal[
    "pdf", "doc", "docx", "ppt", "pptx", "video", "image", "link", "quiz", "assignment"
]
Priority = Literal["low", "medium", "high"]
OwnerScope = Literal["mine", "eligible"]


class MaterialCreate(BaseModel):
    """Payload for a new material.

    The file itself travels next to the payload (UploadFile in the router),
    never inside it. course/grade/program may be omitted when a folder is
    given; they are then taken from the folder.
    """
    title: str
    description: Optional[str] = None
    type: MaterialType
    url: Optional[str] = None
    folder_id: Optional[int] = None
    course: Optional[CourseName] = None
    grade: Optional[Grade] = None
    program: Optional[Program] = None
    tags: list[str] = []
    is_public: bool = False
    due_date: Optional[date] = None
    priority: Priority = "medium"

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Material title is required")
        return v

    @field_validator("url")
    @classmethod
    def blank_url_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v else None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return clean_tags(v)


class MaterialUpdate(BaseModel):
    """PATCH body. Absent fields stay untouched, explicit nulls clear nullable ones."""
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    folder_id: Optional[int] = None
    tags: Optional[list[str]] = None
    is_public: Optional[bool] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None

    @field_validator("title")
    @classmethod
    def clean_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Material title cannot be empty")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return clean_tags(v)


class MaterialFilter(BaseModel):
    course: Optional[CourseName] = None
    grade: Optional[Grade] = None
    program: Optional[Program] = None
    type: Optional[MaterialType] = None
    folder_id: Optional[int] = None
    owner_scope: Optional[OwnerScope] = None
    search: Optional[str] = None


class MaterialOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    type: MaterialType
    url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    folder_id: Optional[int] = None
    owner_id: int
    course: str
    grade: int
    program: str
    tags: list[str] = []
    is_public: bool
    view_count: int
    download_count: int
    due_date: Optional[date] = None
    priority: Priority
    shares: list[ShareOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MaterialBrief(BaseModel):
    id: int
    title: str
    type: MaterialType
    course: str
    view_count: int
    download_count: int

    class Config:
        from_attributes = True
