"""
Tests for local user materialization (first-use upsert).

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

from sqlalchemy import func, select

from scoped_api.auth.provider import Identity
from scoped_api.models.user import User
from scoped_api.security.users import load_user, materialize_user


def _identity(**overrides) -> Identity:
    values = {
        "subject_id": "7f1c3c1e-8a4f-4c1b-9a55-0d2b1f3e9a10",
        "username": "alice",
        "given_name": "Alice",
        "family_name": "Liddell",
        "email": "alice@example.com",
    }
    values.update(overrides)
    return Identity(**values)


def test_load_user_returns_none_when_absent(db_session):
    assert load_user(db_session, "nobody") is None


def test_materialize_inserts_on_first_use(db_session):
    user = materialize_user(db_session, _identity())
    db_session.commit()

    assert user.id == "7f1c3c1e-8a4f-4c1b-9a55-0d2b1f3e9a10"
    assert user.username == "alice"
    assert user.email == "alice@example.com"
    assert user.created_at is not None


def test_materialize_reuses_existing_row(db_session):
    materialize_user(db_session, _identity())
    db_session.commit()

    again = materialize_user(db_session, _identity(username="renamed"))

    # Existing record is canonical; the profile is only used on first insert.
    assert again.username == "alice"
    assert db_session.scalar(select(func.count()).select_from(User)) == 1


def test_opaque_subject_ids_are_kept_verbatim(db_session):
    user = materialize_user(db_session, _identity(subject_id="auth0|abc123"))
    assert user.id == "auth0|abc123"
