"""Application errors rendered as RFC 7807 ``application/problem+json``.

Services raise the subclasses below; ``register_exception_handlers`` turns
them (and request validation failures) into problem documents.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

BASE_ERROR_URI = "https://hr.example.com/errors"
PROBLEM_JSON = "application/problem+json"

FieldErrors = dict[str, list[str]]


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions.

    Subclasses pin ``status_code``, ``error_type`` and ``title``; instances
    carry the human readable ``detail`` and optional per-field ``errors``.
    """

    status_code: int = 500
    error_type: str = "internal-error"
    title: str = "Internal Server Error"

    def __init__(
        self,
        detail: str,
        *,
        errors: Optional[FieldErrors] = None,
        title: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.errors = errors
        if title is not None:
            self.title = title

    def to_problem(self, instance: str) -> dict[str, Any]:
        return _problem(self.status_code, self.error_type, self.title, self.detail, instance, self.errors)


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity_type} with id '{entity_id}' does not exist.",
            title=f"{entity_type} Not Found",
        )


class ConflictError(AppException):
    """Duplicate key, or a balance update that kept losing to concurrent writers."""

    status_code = 409
    error_type = "conflict"
    title = "Conflict"

    def __init__(self, field: str, value: Any, *, detail: Optional[str] = None) -> None:
        if detail is None:
            super().__init__(
                f"An entry with {field}='{value}' already exists.",
                errors={field: [f"'{value}' is already in use."]},
            )
        else:
            super().__init__(detail)


class BadRequestException(AppException):
    """A business rule rejected the operation; ``detail`` names the rule."""

    status_code = 400
    error_type = "bad-request"
    title = "Bad Request"

    def __init__(self, detail: str, *, field: Optional[str] = None) -> None:
        super().__init__(detail, errors={field: [detail]} if field else None)


class UnauthorizedException(AppException):
    status_code = 401
    error_type = "unauthorized"
    title = "Unauthorized"

    def __init__(self, detail: str = "Authentication required.") -> None:
        super().__init__(detail)


class ForbiddenException(AppException):
    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action.") -> None:
        super().__init__(detail)


# ── Problem documents ───────────────────────────────────────────────

def _problem(
    status: int,
    error_type: str,
    title: str,
    detail: str,
    instance: str,
    errors: Optional[FieldErrors] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": instance,
    }
    if errors:
        body["errors"] = errors
    return body


def _field_errors(exc: RequestValidationError) -> FieldErrors:
    """Group pydantic errors by dotted field path, dropping the body/query prefix."""
    grouped: FieldErrors = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        name = ".".join(loc[1:]) if len(loc) > 1 else (loc[0] if loc else "unknown")
        grouped.setdefault(name, []).append(err.get("msg", "Invalid value"))
    return grouped


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem(request.url.path),
        media_type=PROBLEM_JSON,
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_problem(
            422,
            "validation-error",
            "Validation Error",
            "Request validation failed.",
            request.url.path,
            _field_errors(exc),
        ),
        media_type=PROBLEM_JSON,
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_problem(
            500,
            AppException.error_type,
            AppException.title,
            "An unexpected error occurred.",
            request.url.path,
        ),
        media_type=PROBLEM_JSON,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)
