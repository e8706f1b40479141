"""Error definitions.

All errors raised by the message board are defined here with their
corresponding HTTP status codes. The HTTP layer renders them as error
envelopes; the board session turns store failures into a banner message.
"""

from enum import Enum


class ConverseErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_EMPTY_CONTENT = "E_EMPTY_CONTENT"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_MESSAGE_NOT_FOUND = "E_MESSAGE_NOT_FOUND"

    # Conflict errors (409)
    E_PARENT_NOT_FOUND = "E_PARENT_NOT_FOUND"
    E_CONFIRMATION_REQUIRED = "E_CONFIRMATION_REQUIRED"

    # Store / server errors
    E_STORE_ERROR = "E_STORE_ERROR"  # 502
    E_STORE_UNAVAILABLE = "E_STORE_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ConverseErrorCode, int] = {
    ConverseErrorCode.E_INVALID_REQUEST: 400,
    ConverseErrorCode.E_EMPTY_CONTENT: 400,
    ConverseErrorCode.E_NOT_FOUND: 404,
    ConverseErrorCode.E_MESSAGE_NOT_FOUND: 404,
    ConverseErrorCode.E_PARENT_NOT_FOUND: 409,
    ConverseErrorCode.E_CONFIRMATION_REQUIRED: 409,
    ConverseErrorCode.E_STORE_ERROR: 502,
    ConverseErrorCode.E_STORE_UNAVAILABLE: 503,
    ConverseErrorCode.E_INTERNAL: 500,
}


class ConverseError(Exception):
    """Base exception for message board errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ConverseErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class ValidationError(ConverseError):
    """Rejected user input (e.g. empty or whitespace-only text)."""

    def __init__(
        self, code: ConverseErrorCode = ConverseErrorCode.E_EMPTY_CONTENT, message: str = "Empty message"
    ):
        super().__init__(code, message)


class NotFoundError(ConverseError):
    """Resource not found error."""

    def __init__(
        self, code: ConverseErrorCode = ConverseErrorCode.E_NOT_FOUND, message: str = "Not found"
    ):
        super().__init__(code, message)


class ConfirmationRequiredError(ConverseError):
    """A destructive operation was invoked without explicit confirmation."""

    def __init__(
        self,
        code: ConverseErrorCode = ConverseErrorCode.E_CONFIRMATION_REQUIRED,
        message: str = "Deleting a message and all its replies requires confirmation",
    ):
        super().__init__(code, message)


class StoreError(ConverseError):
    """Message store operation error (network or backend failure).

    Attributes:
        banner: User-facing text for the failed operation, set by the caller
            that knows what was being attempted (None: generic)
    """

    def __init__(
        self, message: str = "Message store error", code: ConverseErrorCode = ConverseErrorCode.E_STORE_ERROR
    ):
        super().__init__(code, message)
        self.banner: str | None = None
