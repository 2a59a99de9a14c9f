"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests build the app
with ``create_app`` on a separate in-memory engine (StaticPool, so every
session sees the same database) and a fake identity provider.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scoped_api.auth.provider import AuthProviderError, Identity, TokenValidationError
from scoped_api.db.base import Base
from scoped_api.logging_config import request_logger
from scoped_api.models.shop import Order, Product
from scoped_api.models.user import User
from scoped_api.registry import ResourceRegistry
from scoped_api.scope import AccessScope, PageBounds
from scoped_api.security.config import SecurityConfig
from scoped_api.security.context import RequestContext
from scoped_api.security.permissions import Action


TEST_DB_URL = "sqlite:///:memory:"

ROLE_PERMISSIONS = {
    "Customer": ["order.read", "order.write", "product.read"],
    "Clerk": ["order.read", "order.write", "order.global", "product.read"],
    "Cataloger": ["product.read", "product.write"],
    "UserAdmin": ["user.read", "user.write"],
}


class FakeAuthProvider:
    """In-memory AuthProvider: tokens are looked up in dicts, nothing goes over the network."""

    def __init__(self) -> None:
        self.identities: dict[str, Identity] = {}
        self.roles: dict[str, list[str]] = {}
        self.inactive: set[str] = set()
        self.broken_identity: set[str] = set()
        self.broken_roles: set[str] = set()
        self.validate_calls: list[str] = []

    def add(self, token: str, subject_id: str, roles: list[str], **profile: str) -> Identity:
        identity = Identity(subject_id=subject_id, **profile)
        self.identities[token] = identity
        self.roles[token] = roles
        return identity

    def validate(self, token: str) -> None:
        self.validate_calls.append(token)
        if token in self.inactive or token not in self.identities:
            raise TokenValidationError("token is not active")

    def resolve_identity(self, token: str) -> Identity:
        if token in self.broken_identity:
            raise AuthProviderError("cannot decode token")
        return self.identities[token]

    def resolve_roles(self, token: str) -> list[str]:
        if token in self.broken_roles:
            raise AuthProviderError("cannot decode token")
        return list(self.roles[token])


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def registry():
    registry = ResourceRegistry()
    registry.register(User)
    registry.register(Product)
    registry.register(Order)
    return registry


@pytest.fixture
def security_config():
    return SecurityConfig.from_mapping(ROLE_PERMISSIONS)


@pytest.fixture
def auth_provider():
    return FakeAuthProvider()


@pytest.fixture
def make_context(registry):
    """Build an admitted RequestContext directly, without going through the gate."""

    def _make(
        resource_name: str,
        *,
        owner_id: str | None = "user-a",
        permissions: tuple[str, ...] = (),
        params: dict | None = None,
        bounds: PageBounds | None = None,
        action: Action = Action.READ,
    ) -> RequestContext:
        descriptor = registry.descriptor(resource_name)
        scope = AccessScope.from_query(
            params or {},
            resource_name=resource_name,
            owner_id=owner_id,
            is_global_resource=descriptor.is_global,
            permissions=permissions,
            bounds=bounds or PageBounds(),
        )
        return RequestContext(
            request_id="test-request",
            identity=Identity(subject_id=owner_id) if owner_id else None,
            user_id=owner_id,
            roles=frozenset(),
            permissions=frozenset(permissions),
            action=action,
            resource=descriptor,
            registry=registry,
            scope=scope,
            logger=request_logger("scoped_api.repository", "test-request"),
        )

    return _make


@pytest.fixture
def api_sessions():
    """Session factory over a shared in-memory database for API tests."""
    api_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=api_engine)
    yield sessionmaker(bind=api_engine, autocommit=False, autoflush=False, class_=Session)
    api_engine.dispose()


@pytest.fixture
def client(api_sessions, auth_provider, security_config):
    from scoped_api.db.session import get_db
    from scoped_api.main import create_app
    from scoped_api.settings import Settings

    app = create_app(
        auth_provider=auth_provider,
        security_config=security_config,
        settings=Settings(min_page_size=2, max_page_size=50),
    )

    def override_get_db():
        db = api_sessions()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
