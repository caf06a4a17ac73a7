"""Typed error taxonomy and API error formatting.

Three user-visible kinds:
- ValidationError: malformed/out-of-range client input (400, never retried)
- ExternalAPIError: upstream call failure or unusable payload (502, retryable)
- BusinessLogicError: domain dead-end such as "no packages found" (422)

Anything else is reported as INTERNAL_ERROR with a generic message.
"""

import logging
from enum import StrEnum

logger = logging.getLogger(__name__)


class ErrorCode(StrEnum):
    """Error codes returned in the ``code`` field of failed responses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    BUSINESS_LOGIC_ERROR = "BUSINESS_LOGIC_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class AppError(Exception):
    """Base application error carrying a code, HTTP status, and retry hint."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class ValidationError(AppError):
    """Client input failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message, 400, False)


class ExternalAPIError(AppError):
    """An upstream service failed or returned an unusable payload."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(ErrorCode.EXTERNAL_API_ERROR, message, 502, retryable)


class BusinessLogicError(AppError):
    """A domain rule made the request impossible to fulfil."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.BUSINESS_LOGIC_ERROR, message, 422, False)


def to_error_response(exc: BaseException) -> dict:
    """Format any exception as a ``{success, error, code}`` response body.

    Unknown exceptions are logged with traceback and hidden behind a
    generic message.
    """
    if isinstance(exc, AppError):
        return {
            "success": False,
            "error": exc.message,
            "code": exc.code.value,
            "retryable": exc.retryable,
        }

    logger.error("Unexpected error: %r", exc, exc_info=exc)
    return {
        "success": False,
        "error": GENERIC_ERROR_MESSAGE,
        "code": ErrorCode.INTERNAL_ERROR.value,
    }


def status_code_for(exc: BaseException) -> int:
    """HTTP status code for an exception (500 for anything untyped)."""
    if isinstance(exc, AppError):
        return exc.status_code
    return 500
