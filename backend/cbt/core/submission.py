"""
Test submission and scoring.

A submission is accepted at most once per (student, test code). The existence
check before scoring is only a fast path: the unique constraint on
``test_results(student_id, test_code_id)`` decides, and a conflict on insert
is reported exactly like the pre-check.

The student's tracker is destroyed when a result is stored and when a
duplicate is rejected. Any other failure leaves it in place so the student
can retry.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cbt.core.activity_log import ActivityAction, ActivitySink, record_activity
from cbt.core.datetime_utils import elapsed_seconds
from cbt.core.db_error_handling import transaction
from cbt.core.exceptions import (
    AlreadySubmittedError,
    InvalidSessionError,
    TestInactiveError,
)
from cbt.core.repositories import (
    Classification,
    CodeRepository,
    QuestionBank,
    ResultRepository,
    SqlCodeRepository,
    SqlQuestionBank,
    SqlResultRepository,
)
from cbt.core.test_sessions import TestSessionStore
from cbt.models.models import TestResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreTally:
    score: int
    correct: int
    wrong: int
    answered: int


def _canonical_question_id(raw_id: Any) -> Optional[int]:
    """Return the id only when ``raw_id`` is its canonical decimal spelling."""
    key = str(raw_id)
    if not key.isdigit() or key != str(int(key)):
        return None
    return int(key)


def score_answers(
    answers: Mapping[str, str],
    answer_key: Dict[int, str],
    score_per_question: int,
) -> ScoreTally:
    """
    Mark submitted answers against the answer key.

    Answers are compared exactly (case-sensitive). Question ids that are not
    in the key or not spelled canonically (``"07"``, ``" 7"``) are ignored;
    they still count towards ``answered``. Each question is marked at most once.
    """
    correct = wrong = 0
    marked = set()
    for raw_id, answer in answers.items():
        question_id = _canonical_question_id(raw_id)
        if question_id is None or question_id in marked:
            continue
        expected = answer_key.get(question_id)
        if expected is None:
            continue
        marked.add(question_id)
        if answer == expected:
            correct += 1
        else:
            wrong += 1
    return ScoreTally(
        score=correct * score_per_question,
        correct=correct,
        wrong=wrong,
        answered=len(answers),
    )


@dataclass
class SubmissionOutcome:
    result: TestResult
    score: int
    total_score: int

    @property
    def percentage(self) -> float:
        if not self.total_score:
            return 0.0
        return round(self.score / self.total_score * 100, 1)


class SubmissionScorer:
    """Validates a submission against the student's tracker, scores it once."""

    def __init__(
        self,
        db: Session,
        codes: CodeRepository,
        results: ResultRepository,
        questions: QuestionBank,
        store: TestSessionStore,
        activity: ActivitySink,
    ):
        self.db = db
        self.codes = codes
        self.results = results
        self.questions = questions
        self.store = store
        self.activity = activity

    @classmethod
    def from_session(
        cls, db: Session, store: TestSessionStore, activity: ActivitySink
    ) -> "SubmissionScorer":
        return cls(
            db,
            SqlCodeRepository(db),
            SqlResultRepository(db),
            SqlQuestionBank(db),
            store,
            activity,
        )

    def submit(
        self,
        session_id: str,
        test_code_id: int,
        student_id: int,
        answers: Mapping[str, str],
    ) -> SubmissionOutcome:
        """
        Score and persist a test submission.

        Args:
            session_id: Token issued when the test was started
            test_code_id: Code the student claims to be submitting for
            student_id: Authenticated student
            answers: question id (as a string) -> chosen option letter

        Returns:
            SubmissionOutcome with the stored result and its score

        Raises:
            InvalidSessionError: No live tracker matching session and code
            AlreadySubmittedError: A result already exists for this student/code
            TestInactiveError: Code missing or no longer active
            StoreUnavailableError: The store failed; nothing is persisted
        """
        tracker = self.store.get(student_id)
        if tracker is None or not tracker.matches(session_id, test_code_id):
            logger.warning(
                f"Rejected submission from student {student_id} for test code "
                f"{test_code_id}: no matching session"
            )
            raise InvalidSessionError()

        try:
            with transaction(self.db, "submit test"):
                if self.results.exists(student_id, test_code_id):
                    raise AlreadySubmittedError()

                test_code = self.codes.get(test_code_id)
                if test_code is None or not test_code.active:
                    raise TestInactiveError()

                answer_key = self.questions.correct_options(
                    Classification.of(test_code)
                )
                tally = score_answers(
                    answers, answer_key, test_code.score_per_question
                )
                result = TestResult(
                    student_id=student_id,
                    test_code_id=test_code.id,
                    score=tally.score,
                    total_score=test_code.total_score,
                    time_taken=elapsed_seconds(tracker.start_time),
                    questions_answered=tally.answered,
                    correct_answers=tally.correct,
                    wrong_answers=tally.wrong,
                    answers_json=dict(answers),
                )
                try:
                    self.results.add(result)
                except IntegrityError:
                    logger.info(
                        f"Concurrent duplicate submission by student {student_id} "
                        f"for test code {test_code_id}"
                    )
                    raise AlreadySubmittedError()
        except AlreadySubmittedError:
            self.store.discard(student_id)
            raise

        self.store.discard(student_id)
        logger.info(
            f"Student {student_id} submitted test {test_code.code}: "
            f"{result.score}/{result.total_score}"
        )
        record_activity(
            self.activity,
            student_id,
            ActivityAction.TEST_COMPLETED,
            f"Completed test {test_code.code} "
            f"with score {result.score}/{result.total_score}",
        )
        return SubmissionOutcome(
            result=result, score=result.score, total_score=result.total_score
        )
