from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tutordesk.core.deps import get_db, get_current_user, require_role_any, get_conferencing_provider
from tutordesk.models.class_session import ClassSession
from tutordesk.models.user import User
from tutordesk.schemas.class_session import (
    AttachMaterials, AttendeeOut, JoinInfo, SessionCreate, SessionFilter,
    SessionHostOut, SessionOut, SessionStatus, SessionUpdate,
)
from tutordesk.schemas.common import CourseName, Grade, Program
from tutordesk.services import access_control, session_service

router = APIRouter(prefix="/sessions", tags=["sessions"])

staff_only = [Depends(require_role_any(["teacher", "admin"]))]


def session_view(user: User, session: ClassSession) -> SessionOut:
    """Host links and passwords are only shown to the owning teacher."""
    if access_control.is_owner(user, session):
        return SessionHostOut.model_validate(session)
    return SessionOut.model_validate(session)


@router.get("", response_model=list[SessionOut])
def list_sessions(
    course: Optional[CourseName] = Query(None),
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    status: Optional[SessionStatus] = Query(None),
    upcoming: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    flt = SessionFilter(course=course, grade=grade, program=program, status=status, upcoming=upcoming)
    return session_service.list_sessions(db, user, flt)


@router.post("", response_model=SessionHostOut, status_code=201, dependencies=staff_only)
def create_session(payload: SessionCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                   provider=Depends(get_conferencing_provider)):
    """Schedules the session; without a reachable provider it gets a placeholder meeting."""
    return session_service.create_session(db, user, payload, provider)


@router.get("/{session_id}", response_model=None)
def get_session(session_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> SessionOut:
    return session_view(user, session_service.get_visible_session(db, user, session_id))


@router.patch("/{session_id}", response_model=SessionHostOut, dependencies=staff_only)
def update_session(session_id: int, payload: SessionUpdate, db: Session = Depends(get_db),
                   user: User = Depends(get_current_user), provider=Depends(get_conferencing_provider)):
    return session_service.update_session(db, user, session_id, payload, provider)


@router.post("/{session_id}/cancel", response_model=SessionHostOut, dependencies=staff_only)
def cancel_session(session_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                   provider=Depends(get_conferencing_provider)):
    return session_service.cancel_session(db, user, session_id, provider)


@router.delete("/{session_id}", dependencies=staff_only)
def delete_session(session_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                   provider=Depends(get_conferencing_provider)):
    session_service.delete_session(db, user, session_id, provider)
    return {"status": "deleted"}


@router.post("/{session_id}/join", response_model=JoinInfo)
def join_session(session_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = session_service.join_session(db, user, session_id)
    session = result.session
    return JoinInfo(
        session_id=session.id,
        title=session.title,
        description=session.description,
        join_url=session.join_url,
        password=session.password,
        scheduled_time=session.scheduled_time,
        duration=session.duration,
        first_join=result.first_join,
    )


@router.get("/{session_id}/attendees", response_model=list[AttendeeOut], dependencies=staff_only)
def list_attendees(session_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return session_service.list_attendees(db, user, session_id)


@router.post("/{session_id}/materials", response_model=SessionHostOut, dependencies=staff_only)
def attach_materials(session_id: int, payload: AttachMaterials,
                     db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return session_service.attach_materials(db, user, session_id, payload.material_ids)
