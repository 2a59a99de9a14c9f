from __future__ import annotations

from fastapi import status


class ApiError(Exception):
    """
    Base class for errors that are rendered as ``{"error": "<message>"}``.

    Each subclass carries the HTTP status the boundary should use.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnknownResource(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class TypeMismatch(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailed(ApiError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class MalformedBody(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class MalformedIdentifier(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PersistenceError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
