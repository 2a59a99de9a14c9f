from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from scoped_api.errors import MalformedIdentifier
from scoped_api.models.base import Resource
from scoped_api.registry import ResourceDescriptor
from scoped_api.repository import ScopedRepository
from scoped_api.schemas.envelopes import ErrorOut, ListOut
from scoped_api.security.dependencies import scoped_repository
from scoped_api.security.permissions import Action

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorOut},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorOut},
    status.HTTP_404_NOT_FOUND: {"model": ErrorOut},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorOut},
}


def parse_id(raw: str, descriptor: ResourceDescriptor) -> str:
    """Normalize a path id; UUID-keyed types get the canonical lowercase form."""
    if getattr(descriptor.model, "__uuid_ids__", True):
        try:
            return str(uuid.UUID(raw))
        except ValueError:
            raise MalformedIdentifier(f"invalid {descriptor.name} id: {raw!r}") from None

    value = raw.strip()
    if not value or len(value) > 255:
        raise MalformedIdentifier(f"invalid {descriptor.name} id: {raw!r}")
    return value


def _json(obj: Resource, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(obj.to_dict()), status_code=status_code)


def build_resource_router(descriptor: ResourceDescriptor, api_path: str) -> APIRouter:
    """
    CRUD routes for one registered resource.

    Reads need ``<name>.read``, writes need ``<name>.write``; the check and
    the row scoping both happen in the ``scoped_repository`` dependency.
    """

    name = descriptor.name
    router = APIRouter(prefix=f"/{api_path.strip('/')}/{name}", tags=[name], responses=_ERROR_RESPONSES)
    read = scoped_repository(name, Action.READ)
    write = scoped_repository(name, Action.WRITE)

    @router.get("", response_model=ListOut)
    def list_objects(repository: ScopedRepository = Depends(read)) -> ListOut:
        return repository.list()

    @router.get("/{id}")
    def get_object(id: str, repository: ScopedRepository = Depends(read)) -> JSONResponse:
        # Rows outside the caller's scope look exactly like missing rows (404).
        return _json(repository.get(parse_id(id, descriptor)))

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_object(request: Request, repository: ScopedRepository = Depends(write)) -> JSONResponse:
        body = await request.body()
        obj = await run_in_threadpool(repository.create, body)
        response = _json(obj, status.HTTP_201_CREATED)
        response.headers["Location"] = f"{request.url.path.rstrip('/')}/{obj.get_id()}"
        return response

    @router.put("/{id}")
    async def update_object(id: str, request: Request, repository: ScopedRepository = Depends(write)) -> JSONResponse:
        object_id = parse_id(id, descriptor)
        body = await request.body()
        obj = await run_in_threadpool(repository.update, object_id, body)
        return _json(obj)

    @router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_object(id: str, repository: ScopedRepository = Depends(write)) -> Response:
        object_id = parse_id(id, descriptor)
        repository.delete(object_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers={"Entity": object_id})

    return router
