from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tutordesk.core.deps import get_db, get_current_user, require_role_any
from tutordesk.models.user import User
from tutordesk.schemas.analytics import MaterialAnalytics, StudentOverview
from tutordesk.schemas.common import CourseName, Grade, Program
from tutordesk.services import analytics_service

router = APIRouter(prefix="/analytics", tags=["analytics"],
                   dependencies=[Depends(require_role_any(["teacher", "admin"]))])


@router.get("/materials", response_model=MaterialAnalytics)
def material_overview(
    course: Optional[CourseName] = Query(None),
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    top_n: Optional[int] = Query(None, ge=0, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return analytics_service.material_overview(db, user, course, grade, program, top_n)


@router.get("/students", response_model=StudentOverview)
def student_overview(db: Session = Depends(get_db)):
    return analytics_service.student_overview(db)
