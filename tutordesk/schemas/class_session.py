from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator

from tutordesk.schemas.common import CourseName, Grade, Program
from tutordesk.schemas.material import MaterialBrief

SessionStatus = Literal["scheduled", "started", "ended", "cancelled"]


def _naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class SessionCreate(BaseModel):
    title: str
    description: Optional[str] = None
    course: CourseName
    grade: Grade
    program: Program
    scheduled_time: datetime
    duration: int = Field(60, ge=15, le=480)
    timezone: str = "UTC"
    open_enrollment: bool = False
    is_recorded: bool = False
    waiting_room: bool = True
    require_password: bool = True
    allow_join_before_host: bool = False
    mute_on_entry: bool = True

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Session title is required")
        return v

    @field_validator("scheduled_time")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class SessionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=15, le=480)
    status: Optional[SessionStatus] = None
    recording_url: Optional[str] = None
    open_enrollment: Optional[bool] = None

    @field_validator("scheduled_time")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class SessionFilter(BaseModel):
    course: Optional[CourseName] = None
    grade: Optional[Grade] = None
    program: Optional[Program] = None
    status: Optional[SessionStatus] = None
    upcoming: bool = False


class AttachMaterials(BaseModel):
    material_ids: list[int]


class AttendeeOut(BaseModel):
    student_id: int
    joined_at: datetime
    left_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    course: str
    grade: int
    program: str
    teacher_id: int
    external_id: str
    join_url: str
    is_placeholder: bool
    placeholder_reason: Optional[str] = None
    scheduled_time: datetime
    duration: int
    timezone: str
    status: SessionStatus
    open_enrollment: bool
    recording_url: Optional[str] = None
    attendees: list[AttendeeOut] = []
    materials: list[MaterialBrief] = []
    created_at: datetime

    class Config:
        from_attributes = True


class SessionHostOut(SessionOut):
    """Owner view, includes the host link and meeting password."""
    start_url: str
    password: Optional[str] = None


class JoinInfo(BaseModel):
    session_id: int
    title: str
    description: Optional[str] = None
    join_url: str
    password: Optional[str] = None
    scheduled_time: datetime
    duration: int
    first_join: bool
