"""
Pydantic schemas for request/response validation.
"""
from .test_codes import (
    BatchOperationRequest,
    CodeTransitionResponse,
    GenerateCodesRequest,
    TestCodeResponse,
)
from .test_sessions import (
    QuestionPayload,
    SaveAnswersRequest,
    StartTestRequest,
    StartTestResponse,
    SubmitTestRequest,
    SubmitTestResponse,
)

__all__ = [
    "BatchOperationRequest",
    "CodeTransitionResponse",
    "GenerateCodesRequest",
    "TestCodeResponse",
    "QuestionPayload",
    "SaveAnswersRequest",
    "StartTestRequest",
    "StartTestResponse",
    "SubmitTestRequest",
    "SubmitTestResponse",
]
