from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scoped_api.auth import AuthProvider, KeycloakAuthProvider
from scoped_api.db.init_db import init_db
from scoped_api.db.session import build_engine, build_session_factory
from scoped_api.errors import ApiError
from scoped_api.logging_config import configure_app_logging
from scoped_api.models.shop import Order, Product
from scoped_api.models.user import User
from scoped_api.registry import ResourceRegistry
from scoped_api.routers.home import build_home_router, health_router
from scoped_api.routers.resources import build_resource_router
from scoped_api.security.config import SecurityConfig, load_security_config
from scoped_api.security.gate import AuthorizationGate
from scoped_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_RESOURCES: tuple[type, ...] = (Product, Order)

REQUEST_ID_HEADER = "X-Request-ID"


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "malformed request")


def create_app(
    auth_provider: AuthProvider | None = None,
    resources: Sequence[type] | None = None,
    security_config: SecurityConfig | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the application.

    Everything shared between requests (registry, role table, gate) is
    created here, before the app can serve traffic, and is read-only from
    then on. The built-in ``user`` resource is always registered first.
    """

    settings = settings or get_settings()
    configure_app_logging(settings.log_level)

    if security_config is None:
        security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

    registry = ResourceRegistry()
    registry.register(User)
    for model in DEFAULT_RESOURCES if resources is None else resources:
        registry.register(model)
    logger.info("Resource registry initialized: %s", registry.names())

    if auth_provider is None:
        auth_provider = KeycloakAuthProvider()

    gate = AuthorizationGate(auth_provider, security_config, registry, settings.page_bounds())
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("App startup beginning")
        init_db(engine)
        logger.info("Database initialized (tables ensured)")
        yield
        engine.dispose()

    app = FastAPI(title="scoped-api", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.gate = gate
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    _install_error_handlers(app)

    app.include_router(health_router)
    app.include_router(build_home_router(settings.api_path))
    for descriptor in registry:
        app.include_router(build_resource_router(descriptor, settings.api_path))
        logger.info(
            "Registered routes /%s/%s[/{id}] global=%s",
            settings.api_path,
            descriptor.name,
            descriptor.is_global,
        )

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("scoped_api.main:create_app", factory=True, host=settings.host, port=settings.port)
