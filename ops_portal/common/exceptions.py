"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

BASE_ERROR_URI = "https://ops-portal.local/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
        extensions: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        self.extensions = extensions or {}
        super().__init__(detail)


class NotFoundException(AppException):
    """404: entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409: the stored record moved on before this write landed.

    ``current_status`` is the authoritative status the caller should
    refresh to.
    """

    def __init__(
        self,
        detail: str,
        current_status: Optional[str] = None,
    ) -> None:
        self.current_status = current_status
        extensions = {"current_status": current_status} if current_status else None
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=detail,
            extensions=extensions,
        )


class DuplicateException(ConflictError):
    """409: unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(detail=f"An entry with {field}='{value}' already exists.")
        self.errors = {field: [f"'{value}' is already in use."]}


class InvalidStateException(AppException):
    """409: stored workflow state is not legal for its approval mode."""

    def __init__(self, detail: str, current_status: Optional[str] = None) -> None:
        super().__init__(
            status_code=409,
            error_type="invalid-state",
            title="Invalid Workflow State",
            detail=detail,
            extensions={"current_status": current_status} if current_status else None,
        )


class LockedException(AppException):
    """409: requester tried to modify a request an approver already acted on."""

    def __init__(self, detail: str, current_status: Optional[str] = None) -> None:
        super().__init__(
            status_code=409,
            error_type="locked",
            title="Request Locked",
            detail=detail,
            extensions={"current_status": current_status} if current_status else None,
        )


class ForbiddenException(AppException):
    """403: insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422: business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    body.update(exc.extensions)
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


async def _handle_stale_data(
    request: Request,
    exc: StaleDataError,
) -> JSONResponse:
    # a versioned row changed between read and flush
    logger.warning("Stale write on %s: %s", request.url.path, exc)
    problem = ConflictError("The record was changed by someone else; reload and retry.")
    return await _handle_app_exception(request, problem)


async def _handle_rate_limited(
    request: Request,
    exc: RateLimitExceeded,
) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "type": f"{BASE_ERROR_URI}/rate-limited",
            "title": "Too Many Requests",
            "status": 429,
            "detail": f"Rate limit exceeded: {exc.detail}.",
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(StaleDataError, _handle_stale_data)          # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _handle_rate_limited)     # type: ignore[arg-type]
