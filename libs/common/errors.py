"""Domain error hierarchy and its mapping onto HTTP responses.

Services raise these; ``register_exception_handlers`` turns them into
``{"detail": ...}`` JSON at the request boundary.

Usage:
    from libs.common.errors import ConflictError

    if not updated:
        raise ConflictError("insufficient stock")
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


class DomainError(Exception):
    """Base class for errors that map onto a client-facing HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict with current state"


class ExternalServiceError(DomainError):
    """A collaborator (payment gateway, shipping provider) failed.

    The message is logged; callers only see ``public_message``.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service unavailable"
    public_message = "Upstream service unavailable, please retry later"


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    headers = None
    if isinstance(exc, ExternalServiceError):
        logger.error(
            "External service failure: %s",
            exc.message,
            extra={"extra_fields": {"path": request.url.path}},
        )
        detail = exc.public_message
    else:
        detail = exc.message
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code, content={"detail": detail}, headers=headers
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": f"{location}: {message}" if location else message,
            "errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
            ],
        },
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install domain, request-validation and catch-all handlers on ``app``."""
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
