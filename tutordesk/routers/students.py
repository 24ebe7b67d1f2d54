from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tutordesk.core.deps import get_db, get_current_user, require_role_any
from tutordesk.models.user import User
from tutordesk.schemas.analytics import StudentProgress
from tutordesk.schemas.common import Grade, Program
from tutordesk.schemas.user import StudentUpdate, UserOut
from tutordesk.services import analytics_service, student_service

router = APIRouter(prefix="/students", tags=["students"])

staff_only = [Depends(require_role_any(["teacher", "admin"]))]


@router.get("", response_model=list[UserOut], dependencies=staff_only)
def list_students(
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
):
    return student_service.list_students(db, grade, program, search, is_active)


@router.get("/me/progress", response_model=StudentProgress)
def my_progress(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if not user.is_student:
        raise HTTPException(status_code=403, detail="Only students have progress")
    return analytics_service.student_progress(db, user)


@router.get("/{student_id}", response_model=UserOut, dependencies=staff_only)
def get_student(student_id: int, db: Session = Depends(get_db)):
    return student_service.get_student(db, student_id)


@router.patch("/{student_id}", response_model=UserOut, dependencies=staff_only)
def update_student(student_id: int, payload: StudentUpdate, db: Session = Depends(get_db)):
    return student_service.update_student(db, student_id, payload)


@router.get("/{student_id}/progress", response_model=StudentProgress, dependencies=staff_only)
def student_progress(student_id: int, db: Session = Depends(get_db)):
    student = student_service.get_student(db, student_id)
    return analytics_service.student_progress(db, student)
