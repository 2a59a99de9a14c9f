from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from scoped_api.registry import ResourceRegistry
from scoped_api.security.dependencies import get_registry


def build_home_router(api_path: str) -> APIRouter:
    router = APIRouter(tags=["home"])

    @router.get(f"/{api_path.strip('/')}/", response_model=list[str])
    def resource_names(registry: ResourceRegistry = Depends(get_registry)) -> list[str]:
        # Public: lists what can be addressed, not what the caller may touch.
        return registry.names()

    return router


health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "OK"
