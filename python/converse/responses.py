"""Response envelopes and the exception handlers that produce error envelopes.

    success: {"data": ...}
    error:   {"error": {"code": "E_...", "message": "...", "request_id": "..."}}

Store failures reach the client as a retry message (the banner the route
attached, or a generic one) that also becomes the board's error banner.
Backend detail only goes to the logs.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from converse.errors import ERROR_CODE_TO_STATUS, ConverseError, ConverseErrorCode, StoreError
from converse.logging import get_logger, get_request_id

logger = get_logger(__name__)

STORE_ERROR_MESSAGE = "Error talking to the message store. Please try again."

# Starlette statuses that reach us without a ConverseError
_HTTP_STATUS_CODES = {
    400: ConverseErrorCode.E_INVALID_REQUEST,
    404: ConverseErrorCode.E_NOT_FOUND,
    405: ConverseErrorCode.E_INVALID_REQUEST,
    422: ConverseErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    return {"data": data}


def error_response(
    code: ConverseErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Build an error envelope; request_id defaults to the one in the logging context."""
    error = {"code": code.value, "message": message}
    request_id = request_id or get_request_id()
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def error_json(code: ConverseErrorCode, message: str, status_code: int | None = None) -> JSONResponse:
    """JSONResponse carrying an error envelope, status derived from the code by default."""
    return JSONResponse(
        status_code=status_code or ERROR_CODE_TO_STATUS.get(code, 500),
        content=error_response(code, message),
    )


def _is_store_failure(exc: ConverseError) -> bool:
    # A missing parent is the caller's problem, not the store's
    return isinstance(exc, StoreError) and exc.code != ConverseErrorCode.E_PARENT_NOT_FOUND


async def converse_error_handler(request: Request, exc: ConverseError) -> JSONResponse:
    if not _is_store_failure(exc):
        return error_json(exc.code, exc.message, exc.status_code)

    banner = exc.banner or STORE_ERROR_MESSAGE
    logger.warning("store_error_response", code=exc.code.value, error=exc.message)
    reconciler = getattr(request.app.state, "reconciler", None)
    if reconciler is not None:
        reconciler.report_error(banner)
    return error_json(exc.code, banner, exc.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ConverseErrorCode.E_INTERNAL)
    return error_json(code, str(exc.detail) if exc.detail else "An error occurred", exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body and query validation failures, including malformed JSON, are plain 400s."""
    return error_json(ConverseErrorCode.E_INVALID_REQUEST, "Invalid request", 400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the exception server-side and answer 500 without leaking details."""
    logger.exception("unhandled_exception", error=str(exc))
    return error_json(ConverseErrorCode.E_INTERNAL, "Internal server error", 500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConverseError, converse_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
