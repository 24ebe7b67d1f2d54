from datetime import date, timedelta

from tutordesk.schemas.class_session import SessionUpdate
from tutordesk.services import analytics_service, material_service, session_service


def test_percentage_rounds_half_up():
    assert analytics_service.percentage(1, 8) == 13
    assert analytics_service.percentage(2, 3) == 67
    assert analytics_service.percentage(1, 3) == 33
    assert analytics_service.percentage(0, 0) == 0


def test_material_overview(db, make_material, teacher, other_teacher, student, store):
    notes = make_material("Notes", course="Evolution")
    slides = make_material("Slides", course="Biochemistry")
    make_material("Site", type="link", course="Evolution")
    make_material("Not mine", owner=other_teacher)

    for _ in range(3):
        material_service.view_material(db, student, slides.id)
    material_service.view_material(db, student, notes.id)
    material_service.download_material(db, student, notes.id, store).stream.close()

    overview = analytics_service.material_overview(db, teacher)

    assert overview.total_materials == 3
    assert overview.total_views == 4
    assert overview.total_downloads == 1
    assert {(b.key, b.count) for b in overview.materials_by_type} == {("pdf", 2), ("link", 1)}
    assert {(b.key, b.count) for b in overview.materials_by_course} == {("Evolution", 2), ("Biochemistry", 1)}
    assert [m.title for m in overview.most_viewed][:2] == ["Slides", "Notes"]
    assert overview.most_downloaded[0].title == "Notes"


def test_material_overview_filters_and_top_n(db, make_material, teacher):
    for i in range(4):
        make_material(f"E{i}", course="Evolution")
    make_material("B", course="Biochemistry")
    overview = analytics_service.material_overview(db, teacher, course="Evolution", top_n=2)
    assert overview.total_materials == 4
    assert len(overview.most_viewed) == 2

    empty = analytics_service.material_overview(db, teacher, top_n=0)
    assert empty.total_materials == 5
    assert empty.most_viewed == []
    assert empty.most_downloaded == []


def test_attendance_rate(db, make_session, student, teacher):
    past = [make_session(f"Past {i}", hours=-(i + 2)) for i in range(3)]
    make_session("Future", hours=48)
    make_session("Other audience", hours=-5, grade=10, program="ACT")

    session_service.join_session(db, student, past[0].id)
    session_service.join_session(db, student, past[1].id)

    assert analytics_service.attendance_rate(db, student) == 67


def test_attendance_rate_without_sessions(db, student):
    assert analytics_service.attendance_rate(db, student) == 0


def test_cancelled_sessions_do_not_count(db, make_session, student, teacher, provider):
    attended = make_session("Attended", hours=-3)
    cancelled = make_session("Cancelled", hours=-2)
    session_service.join_session(db, student, attended.id)
    session_service.cancel_session(db, teacher, cancelled.id, provider)
    assert analytics_service.attendance_rate(db, student) == 100


def test_student_progress(db, make_session, make_material, student):
    session = make_session("Past", hours=-2)
    make_session("Past too", hours=-3)
    session_service.join_session(db, student, session.id)
    make_material("Eligible", course="Evolution", grade=12)
    make_material("Also eligible", course="Evolution", program="Both", grade=9)
    make_material("Not eligible", course="Biochemistry", grade=10, program="ACT")
    student.enrollment_date = date.today() - timedelta(days=40)
    db.commit()

    progress = analytics_service.student_progress(db, student)

    assert progress.sessions_attended == 1
    assert progress.total_sessions == 2
    assert progress.attendance_rate == 50
    assert [(c.course, c.total_materials) for c in progress.materials_by_course] == [("Evolution", 2)]
    assert [s.title for s in progress.recent_sessions] == ["Past"]
    assert progress.enrollment_days == 40


def test_course_overview_for_teacher(db, make_folder, make_material, make_session, teacher, other_teacher):
    make_folder("Evo", course="Evolution")
    make_material("Finches", course="Evolution")
    make_material("Enzymes", course="Biochemistry")
    make_session("Evo live", course="Evolution")
    make_material("Theirs", owner=other_teacher, course="Evolution")

    stats = {c.name: c for c in analytics_service.course_overview(db, teacher)}

    assert len(stats) == 8
    assert (stats["Evolution"].folders, stats["Evolution"].materials, stats["Evolution"].sessions) == (1, 1, 1)
    assert stats["Biochemistry"].materials == 1
    assert stats["General Biology"].materials == 0
    assert stats["Evolution"].code == "EVOLUT"


def test_course_overview_for_student(db, make_material, make_session, student):
    make_material("Eligible", course="Evolution", grade=12)
    make_material("Hidden", course="Evolution", grade=10, program="ACT")
    make_session("Live", course="Evolution", grade=12)
    stats = {c.name: c for c in analytics_service.course_overview(db, student)}
    assert stats["Evolution"].materials == 1
    assert stats["Evolution"].sessions == 1


def test_student_overview(db, make_user, make_session, teacher):
    s1 = make_user("student", grade=12, program="EST")
    s2 = make_user("student", grade=12, program="ACT")
    make_user("student", grade=10, program="EST", is_active=False,
              enrollment_date=date.today() - timedelta(days=90))
    past = make_session("Past", hours=-2, program="Both")
    make_session("Empty past", hours=-4)
    session_service.join_session(db, s1, past.id)
    session_service.join_session(db, s2, past.id)

    overview = analytics_service.student_overview(db)

    assert overview.total_students == 3
    assert overview.active_students == 2
    assert overview.inactive_students == 1
    assert overview.recent_enrollments == 2
    assert {(b.key, b.count) for b in overview.students_by_grade} == {("12", 2), ("10", 1)}
    assert {(b.key, b.count) for b in overview.students_by_program} == {("EST", 2), ("ACT", 1)}
    assert overview.total_sessions == 2
    assert overview.average_attendance == 1


def test_course_analytics_for_owner(db, make_folder, make_material, make_session, teacher, other_teacher,
                                    student, provider):
    popular = make_material("Popular", course="Evolution")
    make_material("Quiet", course="Evolution")
    site = make_material("Site", type="link", course="Evolution")
    make_material("Enzymes", course="Biochemistry")
    make_material("Theirs", owner=other_teacher, course="Evolution")
    make_folder("Evo", course="Evolution")
    for _ in range(3):
        material_service.view_material(db, student, popular.id)
    material_service.view_material(db, student, site.id)

    past = make_session("Past", hours=-2, course="Evolution")
    session_service.update_session(db, teacher, past.id, SessionUpdate(status="ended"), provider)
    session_service.join_session(db, student, past.id)
    make_session("Soon", hours=24, course="Evolution")
    make_session("Enzymes live", course="Biochemistry")

    stats = analytics_service.course_analytics(db, teacher, "Evolution")

    assert [(t.type, t.count, t.total_views) for t in stats.materials_by_type] == [("pdf", 2, 3), ("link", 1, 1)]
    assert stats.popular_materials[0].title == "Popular"
    assert len(stats.popular_materials) == 3
    assert stats.total_materials == 3
    assert stats.total_folders == 1
    assert (stats.sessions.total, stats.sessions.completed, stats.sessions.upcoming) == (2, 1, 1)
    assert stats.sessions.total_attendees == 1
    assert stats.sessions.average_attendance == 1


def test_course_analytics_filters_by_audience(db, make_material, teacher):
    make_material("Twelve", course="Evolution", grade=12)
    make_material("Ten", course="Evolution", grade=10, program="ACT")
    stats = analytics_service.course_analytics(db, teacher, "Evolution", grade=10)
    assert stats.total_materials == 1
    assert stats.popular_materials[0].title == "Ten"
    assert stats.sessions.total == 0
    assert stats.sessions.average_attendance == 0
