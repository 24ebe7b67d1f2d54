from datetime import date, datetime
from sqlalchemy import (
    Integer, String, DateTime, Date, ForeignKey, Boolean, Text, Enum, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tutordesk.db.base import Base, utcnow
from tutordesk.models.user import ProgramEnum
from tutordesk.models.folder import PermissionEnum

MaterialTypeEnum = Enum(
    "pdf", "doc", "docx", "ppt", "pptx", "video", "image", "link", "quiz", "assignment",
    name="material_type_enum"
)
PriorityEnum = Enum("low", "medium", "high", name="material_priority_enum")


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(MaterialTypeEnum)

    # either a stored file (every type but "link") or a url ("link" only)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    folder_id: Mapped[int | None] = mapped_column(ForeignKey("folders.id"), index=True, nullable=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    course: Mapped[str] = mapped_column(ForeignKey("courses.name"), index=True)
    grade: Mapped[int] = mapped_column(Integer, index=True)
    program: Mapped[str] = mapped_column(ProgramEnum, index=True)

    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    priority: Mapped[str] = mapped_column(PriorityEnum, default="medium")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    folder = relationship("Folder")
    owner = relationship("User")
    shares = relationship("MaterialShare", back_populates="material", cascade="all, delete-orphan")


class MaterialShare(Base):
    __tablename__ = "material_shares"
    __table_args__ = (UniqueConstraint("material_id", "user_id", name="uq_material_shares_material_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    material_id: Mapped[int] = mapped_column(ForeignKey("materials.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    permission: Mapped[str] = mapped_column(PermissionEnum, default="read")
    shared_by: Mapped[int] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    material = relationship("Material", back_populates="shares")
