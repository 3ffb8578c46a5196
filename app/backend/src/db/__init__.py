"""Session helpers for the metadata document table."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from .session import SessionLocal, engine


def get_session_dependency() -> Iterator[Session]:
    """Request-scoped session; the metadata store commits its own writes."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional session for the Celery worker and dev scripts."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables() -> None:
    from ..models import ApprovalMetadataRecord

    ApprovalMetadataRecord.metadata.create_all(bind=engine)


__all__ = ["create_tables", "engine", "get_session_dependency", "session_scope"]
