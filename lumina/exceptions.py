"""
Domain exceptions and their HTTP translation.

Services raise these; the handlers registered by ``register_exception_handlers``
render them as ``{"message": ...}`` with the matching status code.
"""
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lumina.utils.logger import log_warning


class LuminaError(Exception):
    """Base exception for the API. Carries the HTTP status it maps to."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.field = field
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(LuminaError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthorized(LuminaError):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(LuminaError):
    """Authenticated, but not allowed to touch the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(LuminaError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


def _first_validation_message(exc: RequestValidationError) -> tuple[str, Optional[str]]:
    errors = exc.errors()
    if not errors:
        return "Invalid request", None
    first = errors[0]
    # loc 예: ("body", "email") → "email"
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "form")]
    field = ".".join(loc) or None
    return first.get("msg", "Invalid request"), field


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain errors and request validation errors."""

    @app.exception_handler(LuminaError)
    async def lumina_error_handler(request: Request, exc: LuminaError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message, field = _first_validation_message(exc)
        log_warning(
            "Request validation failed",
            event="validation",
            http_path=request.url.path,
            field=field,
        )
        content: dict[str, Any] = {"message": message}
        if field:
            content["field"] = field
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)
