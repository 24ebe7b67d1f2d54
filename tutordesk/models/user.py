from datetime import date, datetime
from sqlalchemy import String, Boolean, Date, Integer, DateTime, Enum, Index
from sqlalchemy.orm import Mapped, mapped_column
from tutordesk.db.base import Base, utcnow

RoleEnum = Enum("teacher", "student", "admin", name="user_role_enum")
ProgramEnum = Enum("EST", "ACT", "Both", name="program_enum")

STAFF_ROLES = ("teacher", "admin")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(RoleEnum, default="student")

    # student-only; teachers and admins leave these empty
    grade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    program: Mapped[str | None] = mapped_column(ProgramEnum, nullable=True)
    enrollment_date: Mapped[date | None] = mapped_column(Date, nullable=True, default=date.today)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_student(self) -> bool:
        return self.role == "student"


Index("ix_users_role_grade_program", User.role, User.grade, User.program)
