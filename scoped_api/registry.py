from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from scoped_api.errors import TypeMismatch, UnknownResource
from scoped_api.models.base import OwnedResource, Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Registered resource: its public name, visibility and model class."""

    name: str
    is_global: bool
    model: type


class ResourceRegistry:
    """
    Maps resource names to model classes.

    Fill it at startup, before the app serves traffic. After that it is only
    read, so it can be shared by every request without locking.
    """

    def __init__(self) -> None:
        self._resources: dict[str, ResourceDescriptor] = {}

    def register(self, model: type) -> ResourceDescriptor:
        """
        Register ``model`` under its ``__resource_name__``.

        The global flag comes from the class shape: anything that is not an
        ``OwnedResource`` is global. Registering a name twice replaces the
        earlier entry (last registration wins).
        """

        name = getattr(model, "__resource_name__", None)
        if not isinstance(name, str) or not name:
            raise TypeMismatch(f"{model!r} does not declare a __resource_name__")

        is_global = not (isinstance(model, type) and issubclass(model, OwnedResource))
        if name in self._resources:
            logger.warning("Resource %r registered twice; replacing %s with %s", name, self._resources[name].model, model)

        descriptor = ResourceDescriptor(name=name, is_global=is_global, model=model)
        self._resources[name] = descriptor
        logger.debug("Registered resource name=%s global=%s model=%s", name, is_global, model.__name__)
        return descriptor

    def names(self) -> list[str]:
        return sorted(self._resources)

    def descriptor(self, name: str) -> ResourceDescriptor:
        try:
            return self._resources[name]
        except KeyError:
            raise UnknownResource(f"unrecognized resource name: {name}") from None

    def instantiate(self, name: str) -> Resource:
        """Return a new blank instance of the type registered as ``name``."""
        descriptor = self.descriptor(name)
        instance = descriptor.model()
        if not isinstance(instance, Resource):
            raise TypeMismatch(f"type {descriptor.model.__name__} does not implement Resource")
        return instance

    def is_global(self, name: str) -> bool:
        """Registered flag, or False for unknown names (not proof of existence)."""
        descriptor = self._resources.get(name)
        return descriptor.is_global if descriptor is not None else False

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter([self._resources[name] for name in self.names()])

    def __len__(self) -> int:
        return len(self._resources)
