"""Engine and session handling for the customer and segment store."""

from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from segment_studio.config import get_settings

settings = get_settings()


def create_db_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create an engine for the store.

    SQLite connections are opened with check_same_thread off, since API
    requests, audience workers and the refresh job run on other threads.

    Args:
        database_url: SQLAlchemy URL
        **kwargs: Extra create_engine options (e.g. poolclass)

    Returns:
        Configured engine
    """
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    kwargs.setdefault("echo", settings.database_echo)
    return create_engine(database_url, **kwargs)


def create_session_factory(bind: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after commit (CLI and API render them)."""
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = create_db_engine(settings.database_url)
SessionLocal = create_session_factory(engine)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """One unit of work: commit on success, roll back on any error.

    Usage:
        with get_db() as db:
            SegmentService(db, registry).refresh_all()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the customers and segments tables if they are missing."""
    from .models import Base

    Base.metadata.create_all(bind=bind or engine)
