"""
Error code catalog for the location gateway.

Every error response carries one of these codes so clients can react
programmatically without parsing messages.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    - Client errors (4xx): the request itself is at fault
    - Store errors (5xx): the record store could not be reached or failed
    - Internal errors (5xx): anything unexpected
    """

    # Client errors (4xx)
    MALFORMED_INPUT = "MALFORMED_INPUT"
    """Body failed to parse, or a required field is missing or mistyped (HTTP 400)"""

    RATE_LIMITED = "RATE_LIMITED"
    """Too many requests (HTTP 429)"""

    # Record store errors (5xx)
    STORE_ERROR = "STORE_ERROR"
    """Communication with or execution against the record store failed (HTTP 500)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.MALFORMED_INPUT: 400,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.STORE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
