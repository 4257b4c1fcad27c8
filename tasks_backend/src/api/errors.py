from __future__ import annotations

from typing import Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


# PUBLIC_INTERFACE
class AppError(Exception):
    """
    Base class for errors surfaced to API clients.

    Each subclass binds a human-readable message to an HTTP status code. The
    exception handler installed by the app factory renders any AppError as
    ``{"message": <message>}`` with that status.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(AppError):
    """A required field is missing or empty."""

    default_message = "Missing fields"


class DuplicateUsername(AppError):
    default_message = "Username already exists"


class InvalidCredentials(AppError):
    """Unknown username or wrong password; the two cases are not distinguished."""

    default_message = "Invalid credentials"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Task not found"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a JSON body with a ``message`` key."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=exc.headers,
    )
