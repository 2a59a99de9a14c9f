from __future__ import annotations

import logging

from sqlalchemy import Engine

from scoped_api.db.base import Base

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """
    Create tables for every mapped model.

    Models must be imported before this runs so they are attached to
    ``Base.metadata``; ``create_app`` does that through the registry.
    Schema migrations are out of scope.
    """

    Base.metadata.create_all(bind=engine)
    logger.info("Tables ensured: %s", sorted(Base.metadata.tables))
