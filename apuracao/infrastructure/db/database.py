"""
Run store database setup.

SQLite is the default (file next to the service); any other
DATABASE_URL is treated as a pooled server database such as
PostgreSQL. Sessions are opened through ``session_scope``.
"""

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from apuracao.config.settings import get_settings
from apuracao.infrastructure.db.models import Base

logger = logging.getLogger(__name__)

SERVER_POOL = {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for ``url`` (default: DATABASE_URL)."""
    parsed = make_url(url or get_settings().database_url)
    if parsed.get_backend_name() == "sqlite":
        # batch workers share the engine across threads
        return create_engine(parsed, connect_args={"check_same_thread": False})
    return create_engine(parsed, **SERVER_POOL)


def init_db(engine: Engine | None = None) -> sessionmaker:
    """Create the run tables if missing and return a session factory bound to the engine."""
    engine = engine or create_db_engine()
    Base.metadata.create_all(engine)
    logger.info(f"Run store ready: {engine.url.render_as_string(hide_password=True)}")
    return sessionmaker(bind=engine, expire_on_commit=False)


@lru_cache
def default_session_factory() -> sessionmaker:
    return init_db()


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Iterator[Session]:
    """One unit of work: commit on success, roll back on error."""
    session = (factory or default_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
