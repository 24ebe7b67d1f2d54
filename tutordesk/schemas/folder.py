from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from tutordesk.schemas.common import CourseName, Grade, Program, ShareOut, clean_tags


def _name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Folder name cannot be empty")
    if "/" in v:
        raise ValueError("Folder name cannot contain '/'")
    return v


class FolderCreate(BaseModel):
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    course: CourseName
    grade: Grade
    program: Program
    color: str = "#2c5aa0"
    icon: str = "folder"
    is_public: bool = False
    tags: list[str] = []

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _name(v)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return clean_tags(v)


class FolderUpdate(BaseModel):
    """PATCH body; only the fields that were sent are applied."""
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_public: Optional[bool] = None
    tags: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _name(v)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return clean_tags(v)


class FolderMove(BaseModel):
    parent_id: Optional[int] = None


class FolderOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    owner_id: int
    course: str
    grade: int
    program: str
    path: str
    color: str
    icon: str
    is_public: bool
    tags: list[str] = []
    shares: list[ShareOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FolderDeleteOut(BaseModel):
    status: str = "deleted"
    folders_deleted: int
    materials_deleted: int
    warnings: list[str] = []


class OrganizeRequest(BaseModel):
    """Audience for type folders that have to be created."""
    grade: Optional[Grade] = None
    program: Optional[Program] = None


class OrganizeOut(BaseModel):
    folders_created: int
    materials_organized: int
    folders: list[FolderOut] = []
