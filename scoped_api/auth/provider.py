"""Identity-provider contract consumed by the authorization gate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class AuthProviderError(Exception):
    """Raised when the provider cannot answer. Do not put the token in the message."""


class TokenValidationError(AuthProviderError):
    """Raised when a token is invalid, expired or reported inactive."""


@dataclass(frozen=True)
class Identity:
    """Profile of the caller, as asserted by the identity provider."""

    subject_id: str
    """Provider subject id; opaque, provider-specific format."""

    username: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "subject_id": self.subject_id,
            "username": self.username,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "email": self.email,
        }


@runtime_checkable
class AuthProvider(Protocol):
    def validate(self, token: str) -> None:
        """Raise TokenValidationError unless the provider reports the token active."""

    def resolve_identity(self, token: str) -> Identity:
        ...

    def resolve_roles(self, token: str) -> list[str]:
        ...
