"""Problem-detail error responses.

Every error leaving the API is rendered here as an
``application/problem+json`` body.
"""

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog_api.api.schemas import ProblemDetail
from catalog_api.domain.exceptions import (
    CatalogError,
    CatalogValidationError,
    EntityNotFoundError,
    ExportFailedError,
    ExportPathError,
    UnsupportedExportFormatError,
)

logger = structlog.get_logger()

PROBLEM_CONTENT_TYPE = "application/problem+json"

# Location prefixes FastAPI puts in front of field names
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def problem_response(
    request: Request,
    status_code: int,
    title: str,
    detail: str,
    errors: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Build a problem-detail response.

    Args:
        request: Request being answered.
        status_code: HTTP status code.
        title: Short summary of the problem.
        detail: Human-readable explanation.
        errors: Optional field-level messages.
        **extra: Additional problem members (e.g. ``execution_id``).

    Returns:
        JSON response with the problem content type.
    """
    problem = ProblemDetail(
        title=title,
        status=status_code,
        detail=detail,
        instance=request.url.path,
        timestamp=datetime.now(timezone.utc),
        request_id=getattr(request.state, "request_id", None),
        errors=errors,
        **extra,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        media_type=PROBLEM_CONTENT_TYPE,
    )


def validation_errors(exc: RequestValidationError) -> dict[str, str]:
    """Flatten FastAPI validation errors into ``field -> message``."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        field = ".".join(loc) or "request"
        message = error.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        errors.setdefault(field, message.removeprefix("Value error, "))
    return errors


# ============================================================================
# Handlers
# ============================================================================


async def not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
    logger.info("Entity not found", path=request.url.path, error=exc.message)
    return problem_response(request, status.HTTP_404_NOT_FOUND, exc.title, exc.message)


async def catalog_validation_handler(
    request: Request, exc: CatalogValidationError
) -> JSONResponse:
    logger.info("Validation failed", path=request.url.path, errors=exc.errors)
    return problem_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation Failed",
        "Request validation failed",
        errors=exc.errors,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = validation_errors(exc)
    logger.info("Request validation failed", path=request.url.path, errors=errors)
    return problem_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation Failed",
        "Request validation failed",
        errors=errors,
    )


async def export_failed_handler(request: Request, exc: ExportFailedError) -> JSONResponse:
    logger.error(
        "Export failed",
        path=request.url.path,
        execution_id=exc.execution_id,
        errors=exc.details.get("errors"),
    )
    return problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Export Failed",
        exc.message,
        execution_id=exc.execution_id,
    )


async def export_request_handler(
    request: Request, exc: ExportPathError | UnsupportedExportFormatError
) -> JSONResponse:
    logger.info("Export request rejected", path=request.url.path, error=exc.message)
    return problem_response(
        request, status.HTTP_400_BAD_REQUEST, "Invalid Export Request", exc.message
    )


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    logger.error("Catalog error", path=request.url.path, error=exc.message)
    return problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        exc.message,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    title = _reason_phrase(exc.status_code)
    response = problem_response(request, exc.status_code, title, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the problem-detail exception handlers.

    Starlette picks the handler of the closest class in the MRO, so the
    generic ``CatalogError`` handler only sees errors without a more
    specific one.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(EntityNotFoundError, not_found_handler)
    app.add_exception_handler(CatalogValidationError, catalog_validation_handler)
    app.add_exception_handler(ExportFailedError, export_failed_handler)
    app.add_exception_handler(ExportPathError, export_request_handler)
    app.add_exception_handler(UnsupportedExportFormatError, export_request_handler)
    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
