from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from tutordesk.schemas.material import MaterialBrief


class CountBucket(BaseModel):
    key: str
    count: int


class MaterialAnalytics(BaseModel):
    total_materials: int
    total_views: int
    total_downloads: int
    materials_by_type: list[CountBucket]
    materials_by_course: list[CountBucket]
    most_viewed: list[MaterialBrief]
    most_downloaded: list[MaterialBrief]


class CourseMaterialTotals(BaseModel):
    course: str
    total_materials: int
    total_views: int
    total_downloads: int


class AttendedSession(BaseModel):
    session_id: int
    title: str
    course: str
    scheduled_time: datetime
    joined_at: datetime


class StudentProgress(BaseModel):
    student_id: int
    sessions_attended: int
    total_sessions: int
    attendance_rate: int
    materials_by_course: list[CourseMaterialTotals]
    recent_sessions: list[AttendedSession]
    enrollment_days: Optional[int] = None


class CourseStats(BaseModel):
    name: str
    code: str
    color: str
    icon: str
    description: Optional[str] = None
    folders: int
    materials: int
    sessions: int


class StudentOverview(BaseModel):
    total_students: int
    active_students: int
    inactive_students: int
    recent_enrollments: int
    students_by_grade: list[CountBucket]
    students_by_program: list[CountBucket]
    total_sessions: int
    average_attendance: int


class TypeTotals(BaseModel):
    type: str
    count: int
    total_views: int
    total_downloads: int


class SessionTotals(BaseModel):
    total: int
    completed: int
    upcoming: int
    total_attendees: int
    average_attendance: int


class CourseAnalytics(BaseModel):
    course: str
    materials_by_type: list[TypeTotals]
    sessions: SessionTotals
    popular_materials: list[MaterialBrief]
    total_folders: int
    total_materials: int
