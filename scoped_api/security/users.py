from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scoped_api.auth.provider import Identity
from scoped_api.errors import PersistenceError
from scoped_api.models.user import User

logger = logging.getLogger(__name__)


def load_user(db: Session, subject_id: str) -> User | None:
    """Load the local user record for ``subject_id``; None when it does not exist yet."""
    return db.execute(
        select(User).where(User.id == subject_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def materialize_user(db: Session, identity: Identity) -> User:
    """
    Return the local user for ``identity``, inserting it on first use.

    The insert is only flushed; committing is left to the caller so that a
    request rejected later leaves no row behind. The row is read back after
    the insert and that copy is the canonical local identity.
    """

    try:
        user = load_user(db, identity.subject_id)
        if user is None:
            logger.info("First request of subject; creating local user")
            db.add(
                User(
                    id=identity.subject_id,
                    username=identity.username,
                    given_name=identity.given_name,
                    family_name=identity.family_name,
                    email=identity.email,
                )
            )
            db.flush()
            user = load_user(db, identity.subject_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("cannot persist local user") from exc

    if user is None:
        raise PersistenceError("local user missing after insert")
    return user
