"""Request correlation for the board API.

Each request is tagged with an ID taken from X-Request-ID when the client
sends a usable one, or minted here otherwise. While the request runs, the ID
plus path and method sit in the logging context, so refetches triggered by a
mutation log under the request that caused them. One access entry is written
per request.
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from converse.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_BYTES = 128

_TOKEN_RE = re.compile(r"[A-Za-z0-9._-]+")
_UUID_RE = re.compile(r"[0-9a-f]{8}(?:-[0-9a-f]{4}){3}-[0-9a-f]{12}", re.IGNORECASE)

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    """Non-empty, at most 128 bytes, and made of letters, digits, dots, hyphens, underscores."""
    return len(value.encode("utf-8")) <= MAX_REQUEST_ID_BYTES and bool(_TOKEN_RE.fullmatch(value))


def normalize_request_id(value: str) -> str:
    """Lowercase UUIDs so the same ID always logs the same way."""
    return value.lower() if _UUID_RE.fullmatch(value) else value


def resolve_request_id(header_value: str | None) -> str:
    """The client's ID when usable, otherwise a fresh UUID4."""
    if header_value and is_valid_request_id(header_value):
        return normalize_request_id(header_value)
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds the request ID to the logging context and echoes it on the response.

    Registered last so it wraps the exception handlers too.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
            return response
        except Exception:
            logger.exception("request_failed")
            raise
        finally:
            clear_request_context()
