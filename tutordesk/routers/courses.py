from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from tutordesk.core.config import settings
from tutordesk.core.deps import get_db, get_current_user, require_role_any
from tutordesk.core.exceptions import NotFoundError
from tutordesk.models.course import Course
from tutordesk.models.user import User
from tutordesk.routers.materials import to_page
from tutordesk.schemas.analytics import CourseAnalytics, CourseStats
from tutordesk.schemas.class_session import SessionFilter, SessionOut
from tutordesk.schemas.common import Grade, Page, Program
from tutordesk.schemas.course import CourseOut
from tutordesk.schemas.folder import FolderOut, OrganizeOut, OrganizeRequest
from tutordesk.schemas.material import MaterialFilter, MaterialOut
from tutordesk.services import analytics_service, folder_service, material_service, session_service

router = APIRouter(prefix="/courses", tags=["courses"])

staff_only = [Depends(require_role_any(["teacher", "admin"]))]


def get_course(db: Session, name: str) -> Course:
    course = db.scalar(select(Course).where(Course.name == name))
    if not course:
        raise NotFoundError("Course", name)
    return course


@router.get("", response_model=list[CourseStats])
def list_courses(
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Catalog with folder, material and session counts visible to the caller."""
    return analytics_service.course_overview(db, user, grade, program)


@router.get("/{course_name}", response_model=CourseOut)
def course_detail(course_name: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return get_course(db, course_name)


@router.get("/{course_name}/materials", response_model=Page[MaterialOut])
def course_materials(
    course_name: str,
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    course = get_course(db, course_name)
    flt = MaterialFilter(course=course.name)
    return to_page(material_service.list_materials(db, user, flt, page, size))


@router.get("/{course_name}/sessions", response_model=list[SessionOut])
def course_sessions(course_name: str, upcoming: bool = Query(False),
                    db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    course = get_course(db, course_name)
    return session_service.list_sessions(db, user, SessionFilter(course=course.name, upcoming=upcoming))


@router.get("/{course_name}/analytics", response_model=CourseAnalytics, dependencies=staff_only)
def course_analytics(
    course_name: str,
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Material, folder and session figures for the caller's own content in the course."""
    course = get_course(db, course_name)
    return analytics_service.course_analytics(db, user, course.name, grade, program)


@router.post("/{course_name}/bulk-organize", response_model=OrganizeOut, dependencies=staff_only)
def bulk_organize(course_name: str, payload: OrganizeRequest,
                  db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Moves the caller's unfiled materials into one folder per material type."""
    course = get_course(db, course_name)
    report = folder_service.organize_by_type(db, user, course.name, payload.grade, payload.program)
    return OrganizeOut(
        folders_created=report.folders_created,
        materials_organized=report.materials_organized,
        folders=[FolderOut.model_validate(f) for f in report.folders],
    )
