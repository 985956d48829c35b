"""
Standardized error messages and response envelope builders.

All user-facing messages live in ``ErrorMessages`` so that wording stays
consistent between single and batch operations and between the service layer
and the HTTP layer.

Every JSON body this API returns uses one envelope::

    {"success": bool, "message": str, "data": {...}?, "errors": [str]?}

``errors`` is only present for batch operations (and request validation
failures), matching what existing portal clients expect.

Usage:
    from cbt.core.error_responses import ErrorMessages, envelope

    return envelope(True, "Test code activated successfully", data={...})
"""

from typing import Any, Dict, List, NoReturn, Optional

from fastapi import HTTPException, status


class ErrorMessages:
    """User-facing messages. Static ones are constants; ones that embed values
    are static methods."""

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    NOT_AUTHENTICATED = "Not authenticated."
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    TEST_CODE_NOT_FOUND = "Test code not found."

    # ==========================================================================
    # Activation Conflicts (409)
    # ==========================================================================
    ALREADY_ACTIVE = "Test code is already active."
    ALREADY_INACTIVE = "Test code is already inactive."

    # ==========================================================================
    # Submission Guards
    # ==========================================================================
    INVALID_SESSION = "Invalid test session."
    TEST_INACTIVE = "Invalid or inactive test code."
    TEST_CODE_DISABLED = "This test code has been disabled."
    ALREADY_SUBMITTED = "Test already submitted."

    # ==========================================================================
    # Validation Errors (422)
    # ==========================================================================
    NO_CODES_SELECTED = "No codes selected."
    INVALID_CODE_IDS = "Invalid code IDs."
    INVALID_OPERATION = "Invalid operation."
    TEST_CODE_REQUIRED = "Please enter a test code."
    REQUEST_VALIDATION_FAILED = "Validation failed."

    # ==========================================================================
    # Server Errors (500/503)
    # ==========================================================================
    CODE_GENERATION_FAILED = "Failed to generate test codes. Please try again."
    INTERNAL_ERROR = "Server error occurred."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def insufficient_questions(available: int, requested: int) -> str:
        """Message when the bank cannot supply the configured question count."""
        return (
            f"Only {available} questions available. "
            f"Cannot generate test requiring {requested} questions."
        )

    @staticmethod
    def has_submissions(students_count: int) -> str:
        return (
            f"Cannot deactivate code - {students_count} students "
            "have already taken this test."
        )

    @staticmethod
    def code_count_out_of_range(maximum: int) -> str:
        return f"Number of codes must be between 1 and {maximum}."

    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."

    # Batch item messages. These are collected into the top-level ``errors``
    # list, so they identify the code they refer to.
    @staticmethod
    def batch_code_not_found(code_id: int) -> str:
        return f"Code ID {code_id} not found"

    @staticmethod
    def batch_already_active(code: str) -> str:
        return f"Code {code} is already active"

    @staticmethod
    def batch_already_inactive(code: str) -> str:
        return f"Code {code} is already inactive"

    @staticmethod
    def batch_has_submissions(code: str, students_count: int) -> str:
        return (
            f"Cannot deactivate code {code} - "
            f"{students_count} students have taken this test"
        )


def envelope(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Build the response body shared by every endpoint."""
    body: Dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return body


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use for authentication failures (invalid/missing credentials).

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )
