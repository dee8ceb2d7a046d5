"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Two sources raise them:
- infrastructure adapters raise UpstreamError when the identity provider or
  the data store cannot be reached or answers with a server error;
- route handlers translate a failed FlowResult via error_for_result(), so the
  Portuguese notice produced by the service becomes the JSON error body.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class UpstreamError(AppError):
    status_code = 502
    error_code = "upstream_error"


# FlowResult.reason values that do not map to a plain 400
_REASON_ERRORS: dict[str, type[AppError]] = {
    "rate_limited": RateLimitError,
    "upstream_unavailable": UpstreamError,
    "store_unavailable": UpstreamError,
    "dispatch_failed": UpstreamError,
    "enroll_failed": UpstreamError,
    "challenge_failed": UpstreamError,
}


def error_for_result(result: Any) -> AppError:
    """Build the AppError that represents a failed FlowResult.

    The notice description becomes the message; the notice title and the
    machine-readable reason travel in ``details`` together with any
    resumable state the flow attached (e.g. a disable ``request_id``).
    """
    error_cls = _REASON_ERRORS.get(result.reason or "", ValidationError)
    details: dict[str, Any] = {"title": result.notice.title, "reason": result.reason}
    if result.data:
        details.update(result.data)
    return error_cls(result.notice.description, details=details)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error(
                "request_failed",
                path=request.url.path,
                error_code=exc.error_code,
                error=exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Ocorreu um erro interno no servidor.", "code": "internal_error"},
        )
