from datetime import datetime
from sqlalchemy import (
    Integer, String, DateTime, ForeignKey, Boolean, Text, Enum,
    Table, Column, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tutordesk.db.base import Base, utcnow
from tutordesk.models.user import ProgramEnum

SessionStatusEnum = Enum("scheduled", "started", "ended", "cancelled", name="session_status_enum")

session_materials = Table(
    "session_materials",
    Base.metadata,
    Column("session_id", ForeignKey("class_sessions.id", ondelete="CASCADE"), primary_key=True),
    Column("material_id", ForeignKey("materials.id", ondelete="CASCADE"), primary_key=True),
)


class ClassSession(Base):
    """A scheduled video-conference lesson."""
    __tablename__ = "class_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    course: Mapped[str] = mapped_column(ForeignKey("courses.name"), index=True)
    grade: Mapped[int] = mapped_column(Integer)
    program: Mapped[str] = mapped_column(ProgramEnum)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    external_id: Mapped[str] = mapped_column(String(64), unique=True)
    join_url: Mapped[str] = mapped_column(String(1000))
    start_url: Mapped[str] = mapped_column(String(1000))
    password: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # set when the provider was unreachable and the meeting reference is synthetic
    is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False)
    placeholder_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    scheduled_time: Mapped[datetime] = mapped_column(DateTime)
    duration: Mapped[int] = mapped_column(Integer, default=60)
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    status: Mapped[str] = mapped_column(SessionStatusEnum, default="scheduled")
    open_enrollment: Mapped[bool] = mapped_column(Boolean, default=False)

    recording_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_recorded: Mapped[bool] = mapped_column(Boolean, default=False)
    waiting_room: Mapped[bool] = mapped_column(Boolean, default=True)
    require_password: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_join_before_host: Mapped[bool] = mapped_column(Boolean, default=False)
    mute_on_entry: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    teacher = relationship("User")
    attendees = relationship(
        "SessionAttendee",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAttendee.joined_at",
    )
    materials = relationship("Material", secondary=session_materials)


class SessionAttendee(Base):
    __tablename__ = "session_attendees"
    __table_args__ = (UniqueConstraint("session_id", "student_id", name="uq_session_attendees_session_student"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("class_sessions.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    left_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    session = relationship("ClassSession", back_populates="attendees")
    student = relationship("User")


Index("ix_class_sessions_teacher_time", ClassSession.teacher_id, ClassSession.scheduled_time)
Index("ix_class_sessions_status_time", ClassSession.status, ClassSession.scheduled_time)
