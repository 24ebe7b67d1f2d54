from sqlalchemy import String, Integer, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from tutordesk.db.base import Base

COURSE_NAMES = (
    "Biochemistry",
    "Cell Biology",
    "Animal Behavior",
    "Evolution",
    "Photosynthesis",
    "Cell Division",
    "Cell Respiration",
    "General Biology",
)


class Course(Base):
    """Catalog entry. Seeded reference data, folders and materials refer to it by name."""
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    code: Mapped[str] = mapped_column(String(20), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#2c5aa0")
    icon: Mapped[str] = mapped_column(String(50), default="book")
    grade_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    program: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
