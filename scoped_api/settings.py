from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from scoped_api.scope import PageBounds


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with an ``APP_`` prefixed env var.
    - Identity provider settings live in ``scoped_api.auth.config`` so that
      package stays usable on its own.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    db_pool_timeout_seconds: int = 15
    security_config_path: str | None = None
    log_level: str = "INFO"

    api_path: str = "api"
    min_page_size: int = 10
    max_page_size: int = 500

    host: str = "0.0.0.0"
    port: int = 8080

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "scoped_api.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security.yaml"

    def page_bounds(self) -> PageBounds:
        return PageBounds(min_page_size=self.min_page_size, max_page_size=self.max_page_size)


@lru_cache
def get_settings() -> Settings:
    return Settings()
