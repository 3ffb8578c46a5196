"""Error taxonomy shared by the approval and metadata services."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

LOGGER = structlog.get_logger(__name__)


class ApprovalsError(Exception):
    """Base error rendered as ``{"error", "message"}`` by the API layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Something went wrong!"

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error

    def with_label(self, error: str) -> "ApprovalsError":
        """Attach a route-specific label unless one was set explicitly."""

        if type(self).error == self.error:
            self.error = error
        return self


class ValidationError(ApprovalsError):
    """Missing or malformed caller input."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class UnauthorizedError(ApprovalsError):
    """Missing or unreadable caller identity."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"


class NotFoundError(ApprovalsError):
    """Requested approval or metadata does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class UpstreamError(ApprovalsError):
    """Failure reported by Graph, OneDrive or the document store."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Upstream request failed"

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message, error=error)
        self.upstream_status = upstream_status


class NoRequestsError(ApprovalsError):
    """The approval item has no per-approver requests."""

    status_code = status.HTTP_409_CONFLICT
    error = "No approval requests"


class RequestNotFoundError(ApprovalsError):
    """None of the per-approver requests belong to the caller."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "Approval request not found for user"


class AlreadyCompletedError(ApprovalsError):
    """The caller's request was already answered."""

    status_code = status.HTTP_409_CONFLICT
    error = "Approval request already completed"


async def _handle_approvals_error(request: Request, exc: ApprovalsError) -> JSONResponse:
    LOGGER.warning(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.error,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )


async def _handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    LOGGER.info("request_validation_failed", path=request.url.path, details=details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": ValidationError.error, "message": details},
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Something went wrong!", "message": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install JSON error handlers on the application."""

    app.add_exception_handler(ApprovalsError, _handle_approvals_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = [
    "AlreadyCompletedError",
    "ApprovalsError",
    "NoRequestsError",
    "NotFoundError",
    "RequestNotFoundError",
    "UnauthorizedError",
    "UpstreamError",
    "ValidationError",
    "register_error_handlers",
]
