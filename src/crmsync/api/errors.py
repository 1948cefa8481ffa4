"""Error responses for the HTTP API.

Every error body has the same shape: {"ok": false, "error": <code>,
"message": <text>}. Domain exceptions carry their own stable ``code``; the
handlers here only choose the status and render the body.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.crmsync.config import Environment, get_settings
from src.crmsync.connectors.errors import CRMConfigurationError, CRMRequestError
from src.crmsync.core.dates import InvalidWindowError
from src.crmsync.services.sheets import SheetWriteError

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """An error with a fixed HTTP status and machine-readable code."""

    def __init__(self, status_code: int, error: str, message: str = "") -> None:
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(message or error)


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error, "message": message},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.error, exc.message)


async def crm_configuration_error_handler(
    request: Request, exc: CRMConfigurationError
) -> JSONResponse:
    logger.warning("api.crm_configuration_error", path=request.url.path, code=exc.code, error=str(exc))
    return error_response(400, exc.code, str(exc))


async def crm_request_error_handler(request: Request, exc: CRMRequestError) -> JSONResponse:
    logger.error("api.sync_failed", path=request.url.path, operation=exc.operation, error=str(exc))
    return error_response(500, "sync_failed", str(exc))


async def invalid_window_handler(request: Request, exc: InvalidWindowError) -> JSONResponse:
    return error_response(400, exc.code, str(exc))


async def sheet_write_error_handler(request: Request, exc: SheetWriteError) -> JSONResponse:
    return error_response(502, exc.code, str(exc))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("api.request_invalid", path=request.url.path, errors=exc.errors())
    return error_response(400, "invalid_request", "Request body failed validation")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(404, "not_found", f"Route not found: {request.method} {request.url.path}")
    if exc.status_code == 405:
        return error_response(405, "method_not_allowed", f"{request.method} not allowed on {request.url.path}")
    return error_response(exc.status_code, "http_error", str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_error", path=request.url.path, exc_info=exc)
    if get_settings().ENVIRONMENT == Environment.development:
        message = str(exc)
    else:
        message = "An unexpected error occurred"
    return error_response(500, "internal_server_error", message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(CRMConfigurationError, crm_configuration_error_handler)
    app.add_exception_handler(CRMRequestError, crm_request_error_handler)
    app.add_exception_handler(InvalidWindowError, invalid_window_handler)
    app.add_exception_handler(SheetWriteError, sheet_write_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
