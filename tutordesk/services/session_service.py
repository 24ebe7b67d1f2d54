"""Scheduling of video-conference sessions and attendance tracking."""
import logging
from dataclasses import dataclass

from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import (
    AccessDeniedError, ExternalServiceError, NotFoundError, ValidationError,
)
from tutordesk.db.base import utcnow
from tutordesk.models.class_session import ClassSession, SessionAttendee, session_materials
from tutordesk.models.material import Material
from tutordesk.models.user import User
from tutordesk.schemas.class_session import SessionCreate, SessionFilter, SessionUpdate
from tutordesk.services import access_control
from tutordesk.services.conferencing import ConferencingProvider, MeetingSpec, provision_meeting

logger = logging.getLogger(__name__)

# forward-only; ended and cancelled are terminal
TRANSITIONS = {
    "scheduled": {"started", "ended", "cancelled"},
    "started": {"ended", "cancelled"},
    "ended": set(),
    "cancelled": set(),
}
PROVIDER_FIELDS = ("title", "scheduled_time", "duration")


@dataclass
class JoinResult:
    session: ClassSession
    first_join: bool


def get_session(db: Session, session_id: int) -> ClassSession:
    session = db.get(ClassSession, session_id)
    if not session:
        raise NotFoundError("Session", session_id)
    return session


def get_owned_session(db: Session, teacher: User, session_id: int) -> ClassSession:
    session = get_session(db, session_id)
    if not access_control.is_owner(teacher, session):
        raise AccessDeniedError(f"Session {session_id} belongs to another teacher")
    return session


def create_session(db: Session, teacher: User, payload: SessionCreate,
                   provider: ConferencingProvider) -> ClassSession:
    if not teacher.is_staff:
        raise AccessDeniedError("Only teachers can schedule sessions")

    spec = MeetingSpec(
        topic=payload.title,
        start_time=payload.scheduled_time,
        duration=payload.duration,
        timezone=payload.timezone,
        require_password=payload.require_password,
        is_recorded=payload.is_recorded,
        waiting_room=payload.waiting_room,
        allow_join_before_host=payload.allow_join_before_host,
        mute_on_entry=payload.mute_on_entry,
    )
    provision = provision_meeting(provider, spec)

    session = ClassSession(
        **payload.model_dump(),
        teacher_id=teacher.id,
        external_id=provision.ref.external_id,
        join_url=provision.ref.join_url,
        start_url=provision.ref.start_url,
        password=provision.ref.password,
        is_placeholder=provision.placeholder,
        placeholder_reason=provision.reason,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(
        "Scheduled session %s (id=%s, meeting=%s%s)",
        session.title, session.id, session.external_id, ", placeholder" if session.is_placeholder else "",
    )
    return session


def check_transition(current: str, new: str) -> None:
    if new != current and new not in TRANSITIONS[current]:
        raise ValidationError.for_field("status", f"Cannot change status from {current} to {new}")


def _sync_provider(provider: ConferencingProvider, session: ClassSession, action: str, call, *args) -> None:
    if session.is_placeholder:
        logger.debug("Session %s has a placeholder meeting, skipping provider %s", session.id, action)
        return
    try:
        call(*args)
    except ExternalServiceError as exc:
        logger.warning("Provider %s failed for session %s, local change kept: %s", action, session.id, exc)


def update_session(db: Session, teacher: User, session_id: int, patch: SessionUpdate,
                   provider: ConferencingProvider) -> ClassSession:
    session = get_owned_session(db, teacher, session_id)
    data = patch.model_dump(exclude_unset=True)
    for required in ("title", "scheduled_time", "duration", "status", "open_enrollment"):
        if required in data and data[required] is None:
            data.pop(required)

    if "status" in data:
        check_transition(session.status, data["status"])
    if session.status in ("ended", "cancelled") and set(data) - {"status", "recording_url", "description"}:
        raise ValidationError.for_field("status", f"Session is {session.status} and can no longer be rescheduled")

    previous_status = session.status
    for field_name, value in data.items():
        setattr(session, field_name, value)
    db.commit()
    db.refresh(session)

    if data.get("status") == "cancelled" and previous_status != "cancelled":
        _sync_provider(provider, session, "delete", provider.delete_meeting, session.external_id)
        return session

    provider_patch = {k: data[k] for k in PROVIDER_FIELDS if k in data}
    if provider_patch:
        _sync_provider(provider, session, "update", provider.update_meeting, session.external_id, provider_patch)
    return session


def cancel_session(db: Session, teacher: User, session_id: int, provider: ConferencingProvider) -> ClassSession:
    session = get_owned_session(db, teacher, session_id)
    check_transition(session.status, "cancelled")
    session.status = "cancelled"
    db.commit()
    db.refresh(session)
    _sync_provider(provider, session, "delete", provider.delete_meeting, session.external_id)
    logger.info("Cancelled session %s", session_id)
    return session


def delete_session(db: Session, teacher: User, session_id: int, provider: ConferencingProvider) -> None:
    session = get_owned_session(db, teacher, session_id)
    external_id = session.external_id
    placeholder = session.is_placeholder
    db.delete(session)
    db.commit()
    if not placeholder:
        try:
            provider.delete_meeting(external_id)
        except ExternalServiceError as exc:
            logger.warning("Provider delete failed for meeting %s, local session removed: %s", external_id, exc)
    logger.info("Deleted session %s", session_id)


def can_join(principal: User, session: ClassSession) -> bool:
    if not principal.is_student:
        return True
    return session.open_enrollment or access_control.can_access(principal, session, "read")


def join_session(db: Session, principal: User, session_id: int) -> JoinResult:
    """Returns join details; a student's first join records attendance.

    Rejoining never adds a second attendee row: the existing row is kept and
    the unique (session, student) constraint settles concurrent joins.
    """
    session = get_session(db, session_id)
    if not can_join(principal, session):
        raise AccessDeniedError("You are not eligible for this session")
    if session.status == "cancelled":
        raise ValidationError.for_field("status", "Session has been cancelled")

    if not principal.is_student:
        return JoinResult(session=session, first_join=False)

    existing = db.scalar(
        select(SessionAttendee.id).where(
            SessionAttendee.session_id == session.id, SessionAttendee.student_id == principal.id
        )
    )
    if existing:
        return JoinResult(session=session, first_join=False)

    try:
        db.add(SessionAttendee(session_id=session.id, student_id=principal.id, joined_at=utcnow()))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Student %s already recorded for session %s", principal.id, session.id)
        return JoinResult(session=get_session(db, session_id), first_join=False)

    db.refresh(session)
    logger.info("Student %s joined session %s", principal.id, session.id)
    return JoinResult(session=session, first_join=True)


def list_sessions(db: Session, principal: User, flt: SessionFilter) -> list[ClassSession]:
    if principal.is_student:
        stmt = select(ClassSession).where(
            access_control.eligibility_clause(ClassSession, principal) | ClassSession.open_enrollment.is_(True)
        )
    else:
        stmt = select(ClassSession).where(access_control.owned_clause(ClassSession, principal))

    if flt.course:
        stmt = stmt.where(ClassSession.course == flt.course)
    if flt.grade:
        stmt = stmt.where(ClassSession.grade == flt.grade)
    if flt.program:
        stmt = stmt.where(ClassSession.program == flt.program)
    if flt.status:
        stmt = stmt.where(ClassSession.status == flt.status)
    if flt.upcoming:
        stmt = stmt.where(ClassSession.scheduled_time >= utcnow())

    return db.scalars(stmt.order_by(ClassSession.scheduled_time.asc(), ClassSession.id.asc())).all()


def get_visible_session(db: Session, principal: User, session_id: int) -> ClassSession:
    session = get_session(db, session_id)
    if not can_join(principal, session):
        raise AccessDeniedError(f"Session {session_id} is not available to you")
    return session


def attach_materials(db: Session, teacher: User, session_id: int, material_ids: list[int]) -> ClassSession:
    session = get_owned_session(db, teacher, session_id)
    wanted = list(dict.fromkeys(material_ids))
    materials = db.scalars(select(Material).where(Material.id.in_(wanted))).all() if wanted else []
    found = {m.id: m for m in materials}

    errors = []
    for material_id in wanted:
        material = found.get(material_id)
        if material is None:
            errors.append({"field": "material_ids", "message": f"Material {material_id} does not exist"})
        elif material.owner_id != teacher.id:
            errors.append({"field": "material_ids", "message": f"Material {material_id} is not yours"})
    if errors:
        raise ValidationError("Cannot attach materials", errors)

    attached = set(db.scalars(
        select(session_materials.c.material_id).where(session_materials.c.session_id == session.id)
    ).all())
    new_ids = [mid for mid in wanted if mid not in attached]
    if new_ids:
        db.execute(insert(session_materials), [{"session_id": session.id, "material_id": mid} for mid in new_ids])
    db.commit()
    db.refresh(session)
    return session


def list_attendees(db: Session, teacher: User, session_id: int) -> list[SessionAttendee]:
    session = get_owned_session(db, teacher, session_id)
    return list(session.attendees)

