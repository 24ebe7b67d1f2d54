from datetime import datetime
from sqlalchemy import (
    Integer, String, DateTime, ForeignKey, Boolean, Text, JSON, Enum, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tutordesk.db.base import Base, utcnow
from tutordesk.models.user import ProgramEnum

PermissionEnum = Enum("read", "write", "admin", name="share_permission_enum")


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    parent_id: Mapped[int | None] = mapped_column(ForeignKey("folders.id"), index=True, nullable=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    course: Mapped[str] = mapped_column(ForeignKey("courses.name"), index=True)
    grade: Mapped[int] = mapped_column(Integer, index=True)
    program: Mapped[str] = mapped_column(ProgramEnum, index=True)

    # materialized "<ancestor>/.../<name>", repaired on rename and move
    path: Mapped[str] = mapped_column(String(1000), index=True)

    color: Mapped[str] = mapped_column(String(7), default="#2c5aa0")
    icon: Mapped[str] = mapped_column(String(50), default="folder")
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User")
    parent = relationship("Folder", remote_side="Folder.id")
    shares = relationship("FolderShare", back_populates="folder", cascade="all, delete-orphan")


class FolderShare(Base):
    __tablename__ = "folder_shares"
    __table_args__ = (UniqueConstraint("folder_id", "user_id", name="uq_folder_shares_folder_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    folder_id: Mapped[int] = mapped_column(ForeignKey("folders.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    permission: Mapped[str] = mapped_column(PermissionEnum, default="read")
    shared_by: Mapped[int] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    folder = relationship("Folder", back_populates="shares")
