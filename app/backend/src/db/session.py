"""SQLAlchemy engine and session factory for the metadata store."""

from __future__ import annotations

from pathlib import Path

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import sessionmaker

from app.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[4]


def _database_url(raw_url: str) -> URL:
    """Anchor relative SQLite files at the project root."""

    url = make_url(raw_url)
    if not url.drivername.startswith("sqlite") or url.database in (None, "", ":memory:"):
        return url
    path = Path(url.database)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return url.set(database=str(path.resolve()))


def _connect_args(url: URL) -> dict[str, object]:
    # FastAPI runs sync dependencies and handlers on different worker threads
    if url.drivername.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


_url = _database_url(get_settings().database_url)
engine = create_engine(_url, pool_pre_ping=True, connect_args=_connect_args(_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

LOGGER.info("database_engine_initialized", url=_url.render_as_string(hide_password=True))

__all__ = ["SessionLocal", "engine"]
