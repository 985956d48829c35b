"""
Database models for the CBT portal core.

Only ``test_codes`` and ``test_results`` are owned by this service. The
``questions`` table is read as a collaborator (the question bank is managed
elsewhere) and ``activity_logs`` is an append-only audit sink.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class TestType(str, enum.Enum):
    """Assessment type a test code (and question) belongs to."""

    __test__ = False  # Not a pytest test class

    CA = "CA"
    TEST = "Test"
    EXAM = "Exam"


class TestCode(Base):
    """An access code students redeem to sit a test."""

    __test__ = False

    __tablename__ = "test_codes"

    id = Column(Integer, primary_key=True, index=True)
    # Uniqueness is enforced here, not by the generator's pre-check
    code = Column(String(32), nullable=False, unique=True, index=True)

    # Classification - must match the question bank rows the test draws from
    class_id = Column(Integer, nullable=False)
    subject_id = Column(Integer, nullable=False)
    session = Column(String(20), nullable=False)  # Academic session, e.g. "2024/2025"
    term = Column(String(50), nullable=False)  # e.g. "First Term"
    test_type = Column(Enum(TestType), nullable=False)

    num_questions = Column(Integer, nullable=False)
    score_per_question = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes

    active = Column(Boolean, default=False, nullable=False, index=True)
    # Orthogonal kill-switch, set when a student redeems the code
    disabled = Column(Boolean, default=False, nullable=False)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    disabled_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    results = relationship("TestResult", back_populates="test_code")

    __table_args__ = (
        CheckConstraint("num_questions > 0", name="ck_test_codes_num_questions"),
        CheckConstraint(
            "score_per_question > 0", name="ck_test_codes_score_per_question"
        ),
        CheckConstraint("duration > 0", name="ck_test_codes_duration"),
        Index(
            "ix_test_codes_classification",
            "class_id",
            "subject_id",
            "session",
            "term",
            "test_type",
        ),
    )

    @property
    def total_score(self) -> int:
        """Maximum attainable score for this code."""
        return self.num_questions * self.score_per_question

    @property
    def status(self) -> str:
        return "active" if self.active else "inactive"


class TestResult(Base):
    """A completed, scored attempt. Written once and never mutated."""

    __test__ = False

    __tablename__ = "test_results"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    test_code_id = Column(
        Integer, ForeignKey("test_codes.id"), nullable=False, index=True
    )

    score = Column(Integer, nullable=False)
    total_score = Column(Integer, nullable=False)
    time_taken = Column(Integer, nullable=False)  # seconds
    questions_answered = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    wrong_answers = Column(Integer, nullable=False)
    answers_json = Column(JSON, nullable=False)  # Raw submitted answer map
    completed_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    test_code = relationship("TestCode", back_populates="results")

    __table_args__ = (
        # The authoritative at-most-one-attempt guarantee
        UniqueConstraint(
            "student_id", "test_code_id", name="uq_test_results_student_code"
        ),
    )

    @property
    def percentage(self) -> float:
        return round(self.score / self.total_score * 100, 1)


class Question(Base):
    """Question bank entry (read-only for this service)."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, nullable=False)
    subject_id = Column(Integer, nullable=False)
    session = Column(String(20), nullable=False)
    term = Column(String(50), nullable=False)
    test_type = Column(Enum(TestType), nullable=False)

    question_text = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    correct_option = Column(String(1), nullable=False)  # "A".."D"
    image = Column(String(255), nullable=True)

    __table_args__ = (
        Index(
            "ix_questions_classification",
            "class_id",
            "subject_id",
            "session",
            "term",
            "test_type",
        ),
    )


class ActivityLog(Base):
    """Append-only audit trail of administrative and student actions."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(100), nullable=False)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    timestamp = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
