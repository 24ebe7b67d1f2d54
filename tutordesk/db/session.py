"""Engine and session factory for the configured database."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tutordesk.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db(bind=None):
    from tutordesk.db.base import Base
    # registers every table on Base.metadata
    from tutordesk.models import user, course, folder, material, class_session  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
