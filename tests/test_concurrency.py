import threading
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tutordesk.db.base import utcnow
from tutordesk.db.session import init_db
from tutordesk.models.user import User
from tutordesk.schemas.class_session import SessionCreate
from tutordesk.schemas.material import MaterialCreate
from tutordesk.seed import seed_courses
from tutordesk.services import material_service, session_service
from tutordesk.services.material_service import FileUpload


def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'tutordesk.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    return engine


def run_in_threads(target, count):
    barrier = threading.Barrier(count)
    errors = []

    def worker():
        try:
            barrier.wait()
            target()
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []


def test_parallel_downloads_are_all_counted(tmp_path, store):
    engine = file_engine(tmp_path)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    with Session() as db:
        seed_courses(db)
        teacher = User(name="T", email="t@example.com", password_hash="x", role="teacher")
        student = User(name="S", email="s@example.com", password_hash="x", role="student", grade=12, program="EST")
        db.add_all([teacher, student])
        db.commit()
        payload = MaterialCreate(title="Shared", type="pdf", course="Evolution", grade=12, program="EST")
        material = material_service.create_material(db, teacher, payload, store, FileUpload("s.pdf", b"data"))
        material_id, student_id = material.id, student.id

    def download():
        with Session() as db:
            principal = db.get(User, student_id)
            material_service.download_material(db, principal, material_id, store).stream.close()

    run_in_threads(download, 4)

    with Session() as db:
        assert material_service.get_material(db, material_id).download_count == 4
    engine.dispose()


def test_parallel_joins_record_one_attendance(tmp_path, provider):
    engine = file_engine(tmp_path)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    with Session() as db:
        seed_courses(db)
        teacher = User(name="T", email="t@example.com", password_hash="x", role="teacher")
        student = User(name="S", email="s@example.com", password_hash="x", role="student", grade=12, program="EST")
        db.add_all([teacher, student])
        db.commit()
        payload = SessionCreate(title="Live", course="Evolution", grade=12, program="EST",
                                scheduled_time=utcnow() + timedelta(hours=1))
        session_id = session_service.create_session(db, teacher, payload, provider).id
        student_id = student.id

    results = []

    def join():
        with Session() as db:
            principal = db.get(User, student_id)
            results.append(session_service.join_session(db, principal, session_id).first_join)

    run_in_threads(join, 3)

    assert sorted(results) == [False, False, True]
    with Session() as db:
        assert len(session_service.get_session(db, session_id).attendees) == 1
    engine.dispose()
