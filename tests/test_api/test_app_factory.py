"""Tests for create_app wiring: injected settings drive the database engine."""

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect

from scoped_api.main import create_app
from scoped_api.settings import Settings


def test_injected_db_url_is_used(tmp_path, auth_provider, security_config):
    db_file = tmp_path / "injected.db"
    settings = Settings(db_url=f"sqlite:///{db_file}", db_pool_timeout_seconds=3)
    app = create_app(auth_provider=auth_provider, security_config=security_config, settings=settings)
    auth_provider.add("tok-a", "user-a", ["Customer"])

    assert str(app.state.engine.url) == f"sqlite:///{db_file}"

    with TestClient(app) as client:
        created = client.post("/api/order", json={"item": "tea"}, headers={"Authorization": "Bearer tok-a"})
        assert created.status_code == 201

    check = create_engine(f"sqlite:///{db_file}")
    try:
        assert {"users", "orders", "products"} <= set(inspect(check).get_table_names())
        with check.connect() as conn:
            assert conn.exec_driver_sql("SELECT count(*) FROM orders").scalar() == 1
    finally:
        check.dispose()
