"""
Pydantic schemas for the administrative test-code endpoints.

Request models only check shape and types. Range rules (batch size, positive
scoring parameters) are enforced by the services so that the same messages
are produced however the operation is invoked.
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cbt.models.models import TestType


class GenerateCodesRequest(BaseModel):
    """Schema for generating a batch of test codes."""

    class_id: int = Field(..., description="Class the test is for")
    subject_id: int = Field(..., description="Subject the test is for")
    session: str = Field(..., description='Academic session, e.g. "2024/2025"')
    term: str = Field(..., description='Term, e.g. "First Term"')
    test_type: TestType = Field(..., description="CA, Test or Exam")
    num_questions: int = Field(..., description="Questions per test")
    score_per_question: int = Field(..., description="Marks per correct answer")
    duration: int = Field(..., description="Test duration in minutes")
    count: int = Field(..., description="Number of codes to generate")


class TestCodeResponse(BaseModel):
    """Schema for a test code."""

    __test__ = False

    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    class_id: int
    subject_id: int
    session: str
    term: str
    test_type: TestType
    num_questions: int
    score_per_question: int
    duration: int
    total_score: int
    active: bool
    disabled: bool
    status: str
    activated_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None
    disabled_at: Optional[datetime] = None
    created_by: int
    created_at: datetime


class CodeTransitionResponse(BaseModel):
    """Outcome of a single activate/deactivate/toggle."""

    code: str
    action: str
    new_status: str


class BatchOperationRequest(BaseModel):
    """Schema for a batch activate/deactivate/toggle."""

    code_ids: List[Union[int, str]] = Field(
        default_factory=list, description="IDs of the codes to process"
    )
    operation: str = Field(..., description="activate, deactivate or toggle")
