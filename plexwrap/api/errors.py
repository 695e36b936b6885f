"""Error codes, the client error envelope and Falcon error handlers.

Every failure leaving the API is rendered as::

    {"code": "<ErrorCode>", "message": "<user-safe text>"}

with the HTTP status taken from ``STATUS_BY_CODE``. Domain errors are
mapped by type; anything unrecognised becomes ``INTERNAL_ERROR`` and its
detail is logged under the request's operation tag, never returned.

Usage
-----
Register all handlers on an app::

    from plexwrap.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import enum
import typing as typ

import falcon

from plexwrap.jobs.errors import (
    AccessDeniedError,
    DispatchFailedError,
    GenerationDisabledError,
    JobNotFoundError,
    SubjectNotFoundError,
    WrappedError,
)
from plexwrap.logging import get_logger, log_operation_failure

if typ.TYPE_CHECKING:
    import falcon.asgi
    from falcon.asgi import Request, Response

    from plexwrap.api.gateway import RateLimitVerdict

__all__ = [
    "STATUS_BY_CODE",
    "ApiError",
    "ErrorCode",
    "code_for_domain_error",
    "error_envelope",
    "register_error_handlers",
    "status_for",
]

logger = get_logger(__name__)

UNKNOWN_OPERATION = "unknown"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorCode(enum.StrEnum):
    """Machine-readable error codes returned to clients."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    GENERATION_DISABLED = "GENERATION_DISABLED"
    DISPATCH_FAILED = "DISPATCH_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_BY_CODE: typ.Final[typ.Mapping[ErrorCode, str]] = {
    ErrorCode.VALIDATION_ERROR: falcon.HTTP_400,
    ErrorCode.UNAUTHORIZED: falcon.HTTP_401,
    ErrorCode.FORBIDDEN: falcon.HTTP_403,
    ErrorCode.NOT_FOUND: falcon.HTTP_404,
    ErrorCode.RATE_LIMIT_EXCEEDED: falcon.HTTP_429,
    ErrorCode.GENERATION_DISABLED: falcon.HTTP_503,
    ErrorCode.DISPATCH_FAILED: falcon.HTTP_503,
    ErrorCode.INTERNAL_ERROR: falcon.HTTP_500,
}

_DOMAIN_ERROR_CODES: tuple[tuple[type[WrappedError], ErrorCode], ...] = (
    (AccessDeniedError, ErrorCode.FORBIDDEN),
    (SubjectNotFoundError, ErrorCode.NOT_FOUND),
    (JobNotFoundError, ErrorCode.NOT_FOUND),
    (GenerationDisabledError, ErrorCode.GENERATION_DISABLED),
    (DispatchFailedError, ErrorCode.DISPATCH_FAILED),
)


def status_for(code: ErrorCode | str) -> str:
    """Return the HTTP status line for *code*; unknown codes map to 500."""
    try:
        return STATUS_BY_CODE[ErrorCode(code)]
    except ValueError:
        return falcon.HTTP_500


def error_envelope(code: ErrorCode, message: str) -> dict[str, typ.Any]:
    """Build the JSON body for an error response."""
    return {"code": code.value, "message": message}


def code_for_domain_error(exc: WrappedError) -> ErrorCode:
    """Return the error code for a domain error; unmapped types are internal."""
    for error_type, code in _DOMAIN_ERROR_CODES:
        if isinstance(exc, error_type):
            return code
    return ErrorCode.INTERNAL_ERROR


class ApiError(Exception):
    """An error raised by the API layer itself, already client-safe.

    Attributes
    ----------
    code
        Error code rendered in the envelope.
    message
        User-safe message rendered in the envelope.
    headers
        Extra response headers, such as rate-limit headers.
    extra
        Extra envelope fields, such as ``retry_after``.

    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        headers: typ.Mapping[str, str] | None = None,
        extra: typ.Mapping[str, typ.Any] | None = None,
    ) -> None:
        """Initialise with a code, message and optional headers and fields."""
        self.code = code
        self.message = message
        self.headers = dict(headers or {})
        self.extra = dict(extra or {})
        super().__init__(f"{code}: {message}")

    @classmethod
    def validation(cls, message: str) -> ApiError:
        """Build a ``VALIDATION_ERROR``."""
        return cls(ErrorCode.VALIDATION_ERROR, message)

    @classmethod
    def unauthenticated(cls) -> ApiError:
        """Build the error for a request without a valid session."""
        return cls(ErrorCode.UNAUTHORIZED, "Authentication required")

    @classmethod
    def forbidden(cls, message: str = "Admin access required") -> ApiError:
        """Build the error for a session lacking the required privilege."""
        return cls(ErrorCode.FORBIDDEN, message)

    @classmethod
    def rate_limited(cls, verdict: RateLimitVerdict) -> ApiError:
        """Build the error for a caller over its request budget."""
        return cls(
            ErrorCode.RATE_LIMIT_EXCEEDED,
            "Too many requests",
            headers={
                "Retry-After": str(verdict.retry_after),
                "X-RateLimit-Limit": str(verdict.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(verdict.reset_at),
            },
            extra={"retry_after": verdict.retry_after},
        )

    @classmethod
    def internal(cls, message: str = INTERNAL_ERROR_MESSAGE) -> ApiError:
        """Build an ``INTERNAL_ERROR`` with a generic message."""
        return cls(ErrorCode.INTERNAL_ERROR, message)


def operation_of(req: Request) -> str:
    """Return the operation tag recorded on *req* by the gateway middleware."""
    return getattr(req.context, "operation", None) or UNKNOWN_OPERATION


def _render(
    resp: Response,
    code: ErrorCode,
    message: str,
    *,
    extra: typ.Mapping[str, typ.Any] | None = None,
) -> None:
    resp.status = status_for(code)
    media = error_envelope(code, message)
    if extra:
        media.update(extra)
    resp.media = media


async def handle_api_error(
    _req: Request,
    resp: Response,
    ex: ApiError,
    _params: dict[str, typ.Any],
) -> None:
    """Render an ``ApiError`` with its headers and extra fields."""
    for name, value in ex.headers.items():
        resp.set_header(name, value)
    _render(resp, ex.code, ex.message, extra=ex.extra)


async def handle_domain_error(
    req: Request,
    resp: Response,
    ex: WrappedError,
    _params: dict[str, typ.Any],
) -> None:
    """Render a domain error using its public message.

    Domain errors without a mapped code (for example ``JobStoreError``) are
    logged and rendered as ``INTERNAL_ERROR``.
    """
    code = code_for_domain_error(ex)
    if code is ErrorCode.INTERNAL_ERROR:
        log_operation_failure(logger, operation_of(req), ex)
        _render(resp, code, INTERNAL_ERROR_MESSAGE)
        return
    _render(resp, code, ex.public_message)


async def handle_unexpected_error(
    req: Request,
    resp: Response,
    ex: Exception,
    _params: dict[str, typ.Any],
) -> None:
    """Log an unhandled exception and render a generic ``INTERNAL_ERROR``."""
    log_operation_failure(logger, operation_of(req), ex)
    _render(resp, ErrorCode.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)


def register_error_handlers(app: falcon.asgi.App) -> None:
    """Install the Plexwrap error handlers on *app*.

    Falcon resolves handlers by the most specific exception type, so its
    own ``HTTPError`` rendering (for unknown routes and bad methods) is
    left in place.
    """
    app.add_error_handler(Exception, handle_unexpected_error)
    app.add_error_handler(WrappedError, handle_domain_error)
    app.add_error_handler(ApiError, handle_api_error)
