from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from scoped_api.settings import Settings


def _engine_args(settings: Settings, db_url: str) -> dict:
    if db_url.startswith("sqlite"):
        # SQLite pools have no checkout timeout; the driver lock timeout is used instead.
        return {"connect_args": {"check_same_thread": False, "timeout": settings.db_pool_timeout_seconds}}
    return {"pool_timeout": settings.db_pool_timeout_seconds}


def build_engine(settings: Settings) -> Engine:
    db_url = settings.resolved_db_url()
    return create_engine(db_url, **_engine_args(settings, db_url))


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency: one session per request, from the app's own engine.

    Anything not committed by the time the request ends is rolled back on
    close, which is what keeps a rejected request from persisting the
    first-use user row.
    """

    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Database not configured. Was the app built with create_app()?")

    db = session_factory()
    try:
        yield db
    finally:
        db.close()
