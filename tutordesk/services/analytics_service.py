"""Read-only usage statistics over materials, sessions and students."""
import math
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select, func, and_
from sqlalchemy.orm import Session

from tutordesk.core.config import settings
from tutordesk.db.base import utcnow
from tutordesk.models.class_session import ClassSession, SessionAttendee
from tutordesk.models.course import Course
from tutordesk.models.folder import Folder
from tutordesk.models.material import Material
from tutordesk.models.user import User
from tutordesk.schemas.analytics import (
    AttendedSession, CountBucket, CourseAnalytics, CourseMaterialTotals, CourseStats,
    MaterialAnalytics, SessionTotals, StudentOverview, StudentProgress, TypeTotals,
)
from tutordesk.schemas.material import MaterialBrief
from tutordesk.services import access_control


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    """``part / whole * 100`` rounded half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def _material_scope(principal: User, course=None, grade=None, program=None):
    if principal.is_staff:
        conds = [access_control.owned_clause(Material, principal)]
    else:
        conds = [access_control.readable_clause(Material, principal)]
    if course:
        conds.append(Material.course == course)
    if grade:
        conds.append(Material.grade == grade)
    if program:
        conds.append(Material.program == program)
    return and_(*conds)


def _buckets(db: Session, column, where) -> list[CountBucket]:
    rows = db.execute(
        select(column, func.count()).where(where).group_by(column).order_by(func.count().desc(), column)
    ).all()
    return [CountBucket(key=str(key), count=count) for key, count in rows]


def _top(db: Session, metric, where, limit: int) -> list[MaterialBrief]:
    # ordered by the metric alone; equal values keep the store's order
    rows = db.scalars(select(Material).where(where).order_by(metric.desc()).limit(limit)).all()
    return [MaterialBrief.model_validate(m) for m in rows]


def material_overview(
    db: Session,
    principal: User,
    course: Optional[str] = None,
    grade: Optional[int] = None,
    program: Optional[str] = None,
    top_n: Optional[int] = None,
) -> MaterialAnalytics:
    if top_n is None:
        top_n = settings.ANALYTICS_TOP_N
    where = _material_scope(principal, course, grade, program)

    total, views, downloads = db.execute(
        select(
            func.count(Material.id),
            func.coalesce(func.sum(Material.view_count), 0),
            func.coalesce(func.sum(Material.download_count), 0),
        ).where(where)
    ).one()

    return MaterialAnalytics(
        total_materials=total,
        total_views=views,
        total_downloads=downloads,
        materials_by_type=_buckets(db, Material.type, where),
        materials_by_course=_buckets(db, Material.course, where),
        most_viewed=_top(db, Material.view_count, where, top_n),
        most_downloaded=_top(db, Material.download_count, where, top_n),
    )


def _eligible_past_sessions(student: User):
    return and_(
        access_control.eligibility_clause(ClassSession, student),
        ClassSession.scheduled_time <= utcnow(),
        ClassSession.status != "cancelled",
    )


def attendance_counts(db: Session, student: User) -> tuple[int, int]:
    """(attended, eligible) over past, non-cancelled sessions the student is eligible for."""
    eligible = _eligible_past_sessions(student)
    total = db.scalar(select(func.count(ClassSession.id)).where(eligible)) or 0
    attended = db.scalar(
        select(func.count(SessionAttendee.id))
        .join(ClassSession, ClassSession.id == SessionAttendee.session_id)
        .where(eligible, SessionAttendee.student_id == student.id)
    ) or 0
    return attended, total


def attendance_rate(db: Session, student: User) -> int:
    attended, total = attendance_counts(db, student)
    return percentage(attended, total)


def student_progress(db: Session, student: User, recent: int = 10) -> StudentProgress:
    attended, total = attendance_counts(db, student)

    rows = db.execute(
        select(
            Material.course,
            func.count(Material.id),
            func.coalesce(func.sum(Material.view_count), 0),
            func.coalesce(func.sum(Material.download_count), 0),
        )
        .where(access_control.eligibility_clause(Material, student))
        .group_by(Material.course)
        .order_by(Material.course)
    ).all()

    recent_rows = db.execute(
        select(ClassSession, SessionAttendee.joined_at)
        .join(SessionAttendee, SessionAttendee.session_id == ClassSession.id)
        .where(SessionAttendee.student_id == student.id)
        .order_by(SessionAttendee.joined_at.desc())
        .limit(recent)
    ).all()

    enrollment_days = None
    if student.enrollment_date:
        enrollment_days = (date.today() - student.enrollment_date).days

    return StudentProgress(
        student_id=student.id,
        sessions_attended=attended,
        total_sessions=total,
        attendance_rate=percentage(attended, total),
        materials_by_course=[
            CourseMaterialTotals(course=c, total_materials=n, total_views=v, total_downloads=d)
            for c, n, v, d in rows
        ],
        recent_sessions=[
            AttendedSession(
                session_id=s.id, title=s.title, course=s.course,
                scheduled_time=s.scheduled_time, joined_at=joined_at,
            )
            for s, joined_at in recent_rows
        ],
        enrollment_days=enrollment_days,
    )


def _counts_by_course(db: Session, model, where) -> dict[str, int]:
    rows = db.execute(select(model.course, func.count(model.id)).where(where).group_by(model.course)).all()
    return dict(rows)


def course_overview(db: Session, principal: User, grade: Optional[int] = None,
                    program: Optional[str] = None) -> list[CourseStats]:
    """Folders, materials and sessions per catalog course, within what ``principal`` can see."""
    scopes = {}
    for model in (Folder, Material, ClassSession):
        if principal.is_staff:
            conds = [access_control.owned_clause(model, principal)]
        elif model is ClassSession:
            conds = [access_control.eligibility_clause(model, principal)]
        else:
            conds = [access_control.readable_clause(model, principal)]
        if grade:
            conds.append(model.grade == grade)
        if program:
            conds.append(model.program == program)
        scopes[model] = _counts_by_course(db, model, and_(*conds))

    courses = db.scalars(select(Course).where(Course.is_active.is_(True)).order_by(Course.id)).all()
    return [
        CourseStats(
            name=c.name, code=c.code, color=c.color, icon=c.icon, description=c.description,
            folders=scopes[Folder].get(c.name, 0),
            materials=scopes[Material].get(c.name, 0),
            sessions=scopes[ClassSession].get(c.name, 0),
        )
        for c in courses
    ]


def student_overview(db: Session, recent_days: int = 30) -> StudentOverview:
    is_student = User.role == "student"
    active = db.scalar(select(func.count(User.id)).where(is_student, User.is_active.is_(True))) or 0
    inactive = db.scalar(select(func.count(User.id)).where(is_student, User.is_active.is_(False))) or 0
    recent = db.scalar(
        select(func.count(User.id)).where(
            is_student, User.enrollment_date >= date.today() - timedelta(days=recent_days)
        )
    ) or 0

    past = ClassSession.scheduled_time <= utcnow()
    total_sessions = db.scalar(select(func.count(ClassSession.id)).where(past)) or 0
    total_attendees = db.scalar(
        select(func.count(SessionAttendee.id))
        .join(ClassSession, ClassSession.id == SessionAttendee.session_id)
        .where(past)
    ) or 0

    return StudentOverview(
        total_students=active + inactive,
        active_students=active,
        inactive_students=inactive,
        recent_enrollments=recent,
        students_by_grade=_buckets(db, User.grade, is_student),
        students_by_program=_buckets(db, User.program, is_student),
        total_sessions=total_sessions,
        average_attendance=round_half_up(total_attendees / total_sessions) if total_sessions else 0,
    )


def course_analytics(
    db: Session,
    owner: User,
    course: str,
    grade: Optional[int] = None,
    program: Optional[str] = None,
    popular_n: int = 5,
) -> CourseAnalytics:
    """One course as seen by the teacher owning its content."""
    def scoped(model):
        conds = [access_control.owned_clause(model, owner), model.course == course]
        if grade:
            conds.append(model.grade == grade)
        if program:
            conds.append(model.program == program)
        return and_(*conds)

    materials = scoped(Material)
    by_type = db.execute(
        select(
            Material.type,
            func.count(Material.id),
            func.coalesce(func.sum(Material.view_count), 0),
            func.coalesce(func.sum(Material.download_count), 0),
        )
        .where(materials)
        .group_by(Material.type)
        .order_by(func.count(Material.id).desc(), Material.type)
    ).all()
    popular = db.scalars(
        select(Material)
        .where(materials)
        .order_by(Material.view_count.desc(), Material.download_count.desc())
        .limit(popular_n)
    ).all()

    sessions = scoped(ClassSession)
    total = db.scalar(select(func.count(ClassSession.id)).where(sessions)) or 0
    completed = db.scalar(
        select(func.count(ClassSession.id)).where(sessions, ClassSession.status == "ended")
    ) or 0
    upcoming = db.scalar(
        select(func.count(ClassSession.id)).where(
            sessions, ClassSession.status == "scheduled", ClassSession.scheduled_time >= utcnow()
        )
    ) or 0
    attendees = db.scalar(
        select(func.count(SessionAttendee.id))
        .join(ClassSession, ClassSession.id == SessionAttendee.session_id)
        .where(sessions)
    ) or 0

    return CourseAnalytics(
        course=course,
        materials_by_type=[
            TypeTotals(type=t, count=n, total_views=v, total_downloads=d) for t, n, v, d in by_type
        ],
        sessions=SessionTotals(
            total=total,
            completed=completed,
            upcoming=upcoming,
            total_attendees=attendees,
            average_attendance=round_half_up(attendees / total) if total else 0,
        ),
        popular_materials=[MaterialBrief.model_validate(m) for m in popular],
        total_folders=db.scalar(select(func.count(Folder.id)).where(scoped(Folder))) or 0,
        total_materials=sum(n for _, n, _, _ in by_type),
    )
