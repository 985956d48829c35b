"""
Domain error taxonomy for the test-code lifecycle and submission engine.

Services raise these; they carry no HTTP types. ``cbt.main`` registers one
exception handler that renders any ``CBTError`` into the
``{success, message, data?}`` envelope with the class's ``status_code``.

Messages are user-facing. Guard and validation errors are specific;
internal failures (``StoreUnavailableError``, ``CodeGenerationExhaustedError``)
carry a generic message and keep technical detail in the logs only.
"""
from typing import Any, Dict, Optional

from cbt.core.error_responses import ErrorMessages


class CBTError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    default_message: str = "Request could not be processed."

    def __init__(self, message: Optional[str] = None, **data: Any):
        self.message = message or self.default_message
        self.data: Dict[str, Any] = data
        super().__init__(self.message)


class ValidationError(CBTError):
    """Missing or out-of-range input, rejected before any store access."""

    status_code = 422
    default_message = "Invalid request data."


class InsufficientQuestionsError(CBTError):
    status_code = 400

    def __init__(self, available: int, requested: int):
        super().__init__(
            ErrorMessages.insufficient_questions(available, requested),
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class TestCodeNotFoundError(CBTError):
    __test__ = False

    status_code = 404

    def __init__(self, code_id: Optional[int] = None):
        super().__init__(ErrorMessages.TEST_CODE_NOT_FOUND)
        self.code_id = code_id


class AlreadyActiveError(CBTError):
    """Activation requested for a code that is already active."""

    status_code = 409
    default_message = ErrorMessages.ALREADY_ACTIVE


class AlreadyInactiveError(CBTError):
    """Deactivation requested for a code that is already inactive."""

    status_code = 409
    default_message = ErrorMessages.ALREADY_INACTIVE


class HasSubmissionsError(CBTError):
    """Deactivation blocked because students have already submitted."""

    status_code = 409

    def __init__(self, students_count: int):
        super().__init__(
            ErrorMessages.has_submissions(students_count),
            students_count=students_count,
        )
        self.students_count = students_count


class InvalidSessionError(CBTError):
    status_code = 400
    default_message = ErrorMessages.INVALID_SESSION


class TestInactiveError(CBTError):
    __test__ = False

    status_code = 400
    default_message = ErrorMessages.TEST_INACTIVE


class TestCodeDisabledError(CBTError):
    __test__ = False

    status_code = 400
    default_message = ErrorMessages.TEST_CODE_DISABLED


class AlreadySubmittedError(CBTError):
    status_code = 409
    default_message = ErrorMessages.ALREADY_SUBMITTED


class CodeGenerationExhaustedError(CBTError):
    """No unique code found within the bounded number of attempts."""

    status_code = 500
    default_message = ErrorMessages.CODE_GENERATION_FAILED


class StoreUnavailableError(CBTError):
    """The relational store failed, timed out or was unreachable."""

    status_code = 503

    def __init__(self, operation_name: str, original_error: Optional[Exception] = None):
        super().__init__(ErrorMessages.database_operation_failed(operation_name))
        self.operation_name = operation_name
        self.original_error = original_error
