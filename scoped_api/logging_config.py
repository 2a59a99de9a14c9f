from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

PACKAGE_LOGGER = "scoped_api"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - Uvicorn already configures handlers; this function mainly sets levels for our package.
    - Set `APP_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    logging.getLogger(PACKAGE_LOGGER).setLevel(normalized)
    logging.getLogger(PACKAGE_LOGGER).propagate = True


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the id of the request being served."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        request_id = self.extra.get("request_id", "-") if self.extra else "-"
        return f"[request_id={request_id}] {msg}", kwargs


def request_logger(name: str, request_id: str) -> RequestLoggerAdapter:
    return RequestLoggerAdapter(logging.getLogger(name), {"request_id": request_id})
