"""Student roster maintenance for teachers and admins."""
import logging
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import NotFoundError, ValidationError
from tutordesk.models.user import User
from tutordesk.schemas.user import StudentUpdate

logger = logging.getLogger(__name__)


def get_student(db: Session, student_id: int) -> User:
    student = db.get(User, student_id)
    if not student or not student.is_student:
        raise NotFoundError("Student", student_id)
    return student


def list_students(
    db: Session,
    grade: Optional[int] = None,
    program: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> list[User]:
    stmt = select(User).where(User.role == "student")
    if grade:
        stmt = stmt.where(User.grade == grade)
    if program:
        stmt = stmt.where(User.program == program)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    if search:
        stmt = stmt.where(or_(User.name.ilike(f"%{search}%"), User.email.ilike(f"%{search}%")))
    return db.scalars(stmt.order_by(User.name.asc(), User.id.asc())).all()


def update_student(db: Session, student_id: int, patch: StudentUpdate) -> User:
    student = get_student(db, student_id)
    data = patch.model_dump(exclude_unset=True)
    data = {k: v for k, v in data.items() if v is not None}

    email = data.get("email")
    if email and email != student.email:
        taken = db.scalar(select(User.id).where(User.email == email, User.id != student.id))
        if taken:
            raise ValidationError.for_field("email", "Email already in use")

    for field_name, value in data.items():
        setattr(student, field_name, value)
    db.commit()
    db.refresh(student)
    logger.info("Updated student %s: %s", student.id, ", ".join(sorted(data)) or "no changes")
    return student
