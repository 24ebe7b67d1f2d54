import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CONFERENCE_API_TOKEN"] = ""

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tutordesk.core.config import settings  # noqa: E402
from tutordesk.core.exceptions import ExternalServiceError  # noqa: E402
from tutordesk.core.files import LocalBlobStore  # noqa: E402
from tutordesk.core.security import create_access_token  # noqa: E402
from tutordesk.db.base import utcnow  # noqa: E402
from tutordesk.db.session import init_db  # noqa: E402
from tutordesk.models.user import User  # noqa: E402
from tutordesk.schemas.class_session import SessionCreate  # noqa: E402
from tutordesk.schemas.folder import FolderCreate  # noqa: E402
from tutordesk.schemas.material import MaterialCreate  # noqa: E402
from tutordesk.seed import seed_courses  # noqa: E402
from tutordesk.services import folder_service, material_service, session_service  # noqa: E402
from tutordesk.services.conferencing import MeetingRef  # noqa: E402
from tutordesk.services.material_service import FileUpload  # noqa: E402


class FakeProvider:
    """In-memory conferencing provider; ``fail`` makes every call raise."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []
        self.counter = 0

    def _check(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise ExternalServiceError("conferencing", f"{name} refused")

    def create_meeting(self, spec):
        self._check("create", spec.topic)
        self.counter += 1
        return MeetingRef(
            external_id=f"mtg-{self.counter}",
            join_url=f"https://meet.test/j/{self.counter}",
            start_url=f"https://meet.test/s/{self.counter}",
            password="secret",
        )

    def update_meeting(self, external_id, patch):
        self._check("update", external_id, patch)

    def delete_meeting(self, external_id):
        self._check("delete", external_id)


class FlakyStore:
    """Wraps a blob store and fails every delete."""

    def __init__(self, inner):
        self.inner = inner
        self.delete_attempts = 0

    def put(self, *args, **kwargs):
        return self.inner.put(*args, **kwargs)

    def exists(self, rel_path):
        return self.inner.exists(rel_path)

    def get(self, rel_path):
        return self.inner.get(rel_path)

    def delete(self, rel_path):
        self.delete_attempts += 1
        raise ExternalServiceError("blob-store", "disk unavailable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_courses(session)
    session.commit()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role="student", grade=None, program=None, name=None, **kwargs):
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=f"{role}{counter['n']}@example.com",
            password_hash="x",
            role=role,
            grade=grade,
            program=program,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def teacher(make_user):
    return make_user("teacher", name="Salma")


@pytest.fixture
def other_teacher(make_user):
    return make_user("teacher", name="Karim")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def student(make_user):
    return make_user("student", grade=12, program="EST")


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(str(tmp_path / "media"), 1024 * 1024, settings.ALLOWED_EXTENSIONS)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_folder(db, teacher):
    def factory(name, parent=None, owner=None, course="Biochemistry", grade=12, program="EST", **kwargs):
        payload = FolderCreate(
            name=name,
            parent_id=parent.id if parent else None,
            course=course,
            grade=grade,
            program=program,
            **kwargs,
        )
        return folder_service.create_folder(db, owner or teacher, payload)

    return factory


@pytest.fixture
def make_material(db, teacher, store):
    def factory(title="Notes", owner=None, folder=None, type="pdf", content=b"%PDF-1.4 data",
                course="Biochemistry", grade=12, program="EST", **kwargs):
        upload = None
        if type != "link":
            upload = FileUpload(filename=f"{title.lower().replace(' ', '_')}.pdf", data=content)
        else:
            kwargs.setdefault("url", "https://example.com/resource")
        payload = MaterialCreate(
            title=title,
            type=type,
            folder_id=folder.id if folder else None,
            course=None if folder else course,
            grade=None if folder else grade,
            program=None if folder else program,
            **kwargs,
        )
        return material_service.create_material(db, owner or teacher, payload, store, upload)

    return factory


@pytest.fixture
def make_session(db, teacher, provider):
    def factory(title="Enzymes live", owner=None, hours=24, course="Biochemistry", grade=12, program="EST",
                **kwargs):
        payload = SessionCreate(
            title=title,
            course=course,
            grade=grade,
            program=program,
            scheduled_time=utcnow() + timedelta(hours=hours),
            **kwargs,
        )
        return session_service.create_session(db, owner or teacher, payload, provider)

    return factory


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.email)}"}


@pytest.fixture
def client(session_factory, db, store, provider):
    from tutordesk.core.deps import get_blob_store, get_conferencing_provider, get_db
    from tutordesk.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    app.dependency_overrides[get_conferencing_provider] = lambda: provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
