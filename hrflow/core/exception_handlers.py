"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Domain errors carry an
error_code; this module is the only place that turns a code into an HTTP
status.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hrflow.core.config import get_settings
from hrflow.domain.exceptions import HRFlowException
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

# Map domain error_code to HTTP status when applicable
_ERROR_CODE_STATUS: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "TENANT_REQUIRED": 400,
    "RESOURCE_NOT_FOUND": 404,
    "NO_APPLICABLE_FLOW": 422,
    "UNSATISFIABLE_STEP": 422,
    "UNAUTHORIZED_APPROVER": 403,
    "OUT_OF_ORDER_DECISION": 409,
    "STALE_STATE": 409,
    "INSTANCE_VERSION_CONFLICT": 409,
    "DELEGATION_CONFLICT": 409,
    "DEFAULT_FLOW_DELETION": 409,
    "DUPLICATE_SUBMISSION": 409,
    "SQL_NOT_CONFIGURED": 503,
}


def status_for_error_code(error_code: str) -> int:
    """Return the HTTP status for a domain error_code (400 when unmapped)."""
    return _ERROR_CODE_STATUS.get(error_code, 400)


def _hrflow_exception_handler(request: Request, exc: HRFlowException) -> JSONResponse:
    """Return JSON from HRFlowException.to_dict() with the mapped status code."""
    status = status_for_error_code(exc.error_code)
    if status >= 500:
        logger.error("%s: %s", exc.error_code, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with validation error details."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": jsonable_errors(exc.errors()),
        },
    )


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Drop non-serializable ctx values (e.g. the raised ValueError) from pydantic errors."""
    cleaned: list[dict[str, Any]] = []
    for err in errors:
        item = {k: v for k, v in dict(err).items() if k != "ctx"}
        ctx = dict(err).get("ctx")
        if ctx:
            item["ctx"] = {k: str(v) for k, v in ctx.items()}
        cleaned.append(item)
    return cleaned


def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Return JSON for Starlette HTTP exceptions (status + detail)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500; include detail only when debug is True."""
    logger.exception("Unhandled exception: %s", exc)
    settings = get_settings()
    detail: Any = str(exc) if settings.debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app.

    Handlers: HRFlowException (and subclasses), RequestValidationError,
    StarletteHTTPException, generic Exception.
    """
    app.add_exception_handler(HRFlowException, _hrflow_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
