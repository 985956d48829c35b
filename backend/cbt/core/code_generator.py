"""
Test code generation.

Codes are random uppercase hex tokens (8 characters by default). Every code
in a batch is created inactive; making a code usable is a separate,
deliberate step through the activation gate.

Uniqueness
==========
The unique index on ``test_codes.code`` is the correctness mechanism. Before
inserting, the generator checks whether the candidate already exists; that
check only saves a round-trip, since a concurrent batch can insert the same
token in between. Each insert is flushed inside a savepoint, so a unique
violation rolls back just that insert and triggers a regeneration. Both paths
share one bounded attempt budget per code; running out fails the batch.

Atomicity
=========
All inserts for a batch commit together or not at all.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cbt.core.activity_log import ActivityAction, ActivitySink, record_activity
from cbt.core.config import settings
from cbt.core.db_error_handling import transaction
from cbt.core.error_responses import ErrorMessages
from cbt.core.exceptions import (
    CodeGenerationExhaustedError,
    InsufficientQuestionsError,
    ValidationError,
)
from cbt.core.repositories import (
    Classification,
    CodeRepository,
    QuestionBank,
    SqlCodeRepository,
    SqlQuestionBank,
)
from cbt.models.models import TestCode, TestType

logger = logging.getLogger(__name__)


@dataclass
class CodeBatchSpec:
    """Everything a generated code is stamped with."""

    class_id: int
    subject_id: int
    session: str
    term: str
    test_type: TestType
    num_questions: int
    score_per_question: int
    duration: int
    created_by: int

    def classification(self) -> Classification:
        return Classification.of(self)


def _random_code(length: int) -> str:
    return secrets.token_hex(length // 2).upper()


class CodeGenerator:
    """Creates batches of unique, inactive test codes."""

    def __init__(
        self,
        db: Session,
        codes: CodeRepository,
        questions: QuestionBank,
        activity: ActivitySink,
        *,
        code_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        max_batch_size: Optional[int] = None,
    ):
        self.db = db
        self.codes = codes
        self.questions = questions
        self.activity = activity
        self.code_length = code_length or settings.CODE_LENGTH
        self.max_attempts = max_attempts or settings.CODE_GENERATION_MAX_ATTEMPTS
        self.max_batch_size = max_batch_size or settings.MAX_CODES_PER_BATCH

    @classmethod
    def from_session(cls, db: Session, activity: ActivitySink) -> "CodeGenerator":
        return cls(db, SqlCodeRepository(db), SqlQuestionBank(db), activity)

    def generate_batch(self, spec: CodeBatchSpec, count: int) -> List[TestCode]:
        """
        Generate ``count`` inactive codes for ``spec``.

        Args:
            spec: Classification, scoring parameters and requesting user
            count: Number of codes to create (1..MAX_CODES_PER_BATCH)

        Returns:
            The created TestCode rows, in generation order

        Raises:
            ValidationError: Bad input; raised before any store access
            InsufficientQuestionsError: The bank holds fewer questions than
                ``spec.num_questions`` for this classification
            CodeGenerationExhaustedError: No unique token within the attempt
                budget; nothing from the batch is persisted
            StoreUnavailableError: The store failed; nothing is persisted
        """
        self._validate(spec, count)
        classification = spec.classification()

        with transaction(self.db, "generate test codes"):
            available = self.questions.count(classification)
            if available < spec.num_questions:
                raise InsufficientQuestionsError(
                    available=available, requested=spec.num_questions
                )
            generated = [self._insert_unique(spec) for _ in range(count)]

        logger.info(
            f"Generated {count} test codes for {classification.describe()} "
            f"(user {spec.created_by})"
        )
        record_activity(
            self.activity,
            spec.created_by,
            ActivityAction.CODES_GENERATED,
            f"Generated {count} codes for {classification.describe()}",
        )
        return generated

    def _validate(self, spec: CodeBatchSpec, count: int) -> None:
        if not 1 <= count <= self.max_batch_size:
            raise ValidationError(
                ErrorMessages.code_count_out_of_range(self.max_batch_size)
            )
        for field_name in ("num_questions", "score_per_question", "duration"):
            if getattr(spec, field_name) <= 0:
                raise ValidationError(f"{field_name} must be a positive integer.")
        if spec.class_id <= 0 or spec.subject_id <= 0:
            raise ValidationError("A class and subject must be selected.")
        if not spec.session.strip() or not spec.term.strip():
            raise ValidationError("Session and term are required.")
        try:
            TestType(spec.test_type)
        except ValueError:
            raise ValidationError(f"Unknown test type: {spec.test_type}.")

    def _insert_unique(self, spec: CodeBatchSpec) -> TestCode:
        for attempt in range(1, self.max_attempts + 1):
            candidate = _random_code(self.code_length)
            if self.codes.code_exists(candidate):
                logger.debug(f"Code {candidate} already exists (attempt {attempt})")
                continue

            test_code = TestCode(
                code=candidate,
                class_id=spec.class_id,
                subject_id=spec.subject_id,
                session=spec.session,
                term=spec.term,
                test_type=TestType(spec.test_type),
                num_questions=spec.num_questions,
                score_per_question=spec.score_per_question,
                duration=spec.duration,
                active=False,
                disabled=False,
                created_by=spec.created_by,
            )
            try:
                self.codes.add(test_code)
            except IntegrityError:
                # Lost a race with a concurrent batch for the same token
                logger.warning(
                    f"Code {candidate} collided on insert (attempt {attempt}), "
                    "regenerating"
                )
                continue
            return test_code

        logger.error(
            f"Could not generate a unique code in {self.max_attempts} attempts"
        )
        raise CodeGenerationExhaustedError()
