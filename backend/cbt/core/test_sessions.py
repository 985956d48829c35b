"""
Student test sessions: redemption of a test code and the per-student tracker.

A tracker proves that a student legitimately started a specific test. It is
issued when the student redeems an active code, carries an opaque token the
client must echo back on submission, and expires ``duration`` minutes plus a
grace period after the start time. Expired trackers read as absent.

Trackers are plain values (``to_dict``/``from_dict``) so they can live in any
caller-owned store. The HTTP layer keeps them in the signed cookie session
(``RequestSessionStore``); tests use ``InMemoryTestSessionStore``.
"""
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, MutableMapping, Optional, Protocol

from sqlalchemy.orm import Session

from cbt.core.activity_log import ActivityAction, ActivitySink, record_activity
from cbt.core.config import settings
from cbt.core.datetime_utils import ensure_timezone_aware, utc_now
from cbt.core.db_error_handling import transaction
from cbt.core.error_responses import ErrorMessages
from cbt.core.exceptions import (
    AlreadySubmittedError,
    InsufficientQuestionsError,
    InvalidSessionError,
    TestCodeDisabledError,
    TestInactiveError,
    ValidationError,
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
from cbt.models.models import Question, TestCode

logger = logging.getLogger(__name__)

SESSION_KEY = "test_sessions"


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    return ensure_timezone_aware(datetime.fromisoformat(value))


@dataclass
class TestSessionTracker:
    """Server-side record of a started test."""

    __test__ = False

    id: str
    student_id: int
    test_code_id: int
    start_time: datetime
    expires_at: datetime
    question_ids: List[int] = field(default_factory=list)
    saved_answers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def issue(
        cls,
        student_id: int,
        test_code: TestCode,
        question_ids: List[int],
        grace_seconds: Optional[int] = None,
    ) -> "TestSessionTracker":
        if grace_seconds is None:
            grace_seconds = settings.TEST_SESSION_GRACE_SECONDS
        start = utc_now()
        return cls(
            id=secrets.token_urlsafe(24),
            student_id=student_id,
            test_code_id=test_code.id,
            start_time=start,
            expires_at=start
            + timedelta(minutes=test_code.duration, seconds=grace_seconds),
            question_ids=list(question_ids),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return now > ensure_timezone_aware(self.expires_at)

    def matches(self, session_id: str, test_code_id: Optional[int] = None) -> bool:
        if not session_id or not secrets.compare_digest(
            self.id.encode(), session_id.encode()
        ):
            return False
        return test_code_id is None or self.test_code_id == test_code_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "test_code_id": self.test_code_id,
            "start_time": self.start_time.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "question_ids": list(self.question_ids),
            "saved_answers": dict(self.saved_answers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestSessionTracker":
        return cls(
            id=data["id"],
            student_id=int(data["student_id"]),
            test_code_id=int(data["test_code_id"]),
            start_time=_parse_datetime(data["start_time"]),
            expires_at=_parse_datetime(data["expires_at"]),
            question_ids=[int(qid) for qid in data.get("question_ids", [])],
            saved_answers=dict(data.get("saved_answers", {})),
        )


class TestSessionStore(Protocol):
    """Per-student tracker storage. ``get`` never returns an expired tracker."""

    def get(self, student_id: int) -> Optional[TestSessionTracker]:
        ...

    def put(self, tracker: TestSessionTracker) -> None:
        ...

    def discard(self, student_id: int) -> None:
        ...


class _MappingTestSessionStore:
    """Store backed by a mapping of student id -> serialized tracker.

    Every change replaces the whole bucket so session backends that only
    track top-level writes (Starlette's cookie session) persist it.
    """

    def _read_bucket(self) -> Dict[str, Dict[str, Any]]:
        raise NotImplementedError

    def _write_bucket(self, bucket: Dict[str, Dict[str, Any]]) -> None:
        raise NotImplementedError

    def get(self, student_id: int) -> Optional[TestSessionTracker]:
        data = self._read_bucket().get(str(student_id))
        if data is None:
            return None
        try:
            tracker = TestSessionTracker.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Discarding malformed test session for student {student_id}")
            self.discard(student_id)
            return None
        if tracker.is_expired():
            logger.info(f"Test session for student {student_id} expired")
            self.discard(student_id)
            return None
        return tracker

    def put(self, tracker: TestSessionTracker) -> None:
        bucket = self._read_bucket()
        bucket[str(tracker.student_id)] = tracker.to_dict()
        self._write_bucket(bucket)

    def discard(self, student_id: int) -> None:
        bucket = self._read_bucket()
        if bucket.pop(str(student_id), None) is not None:
            self._write_bucket(bucket)


class InMemoryTestSessionStore(_MappingTestSessionStore):
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def _read_bucket(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._data)

    def _write_bucket(self, bucket: Dict[str, Dict[str, Any]]) -> None:
        self._data = bucket


class RequestSessionStore(_MappingTestSessionStore):
    """Keeps trackers in Starlette's signed cookie session (``request.session``)."""

    def __init__(self, session: MutableMapping[str, Any]):
        self._session = session

    def _read_bucket(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._session.get(SESSION_KEY) or {})

    def _write_bucket(self, bucket: Dict[str, Dict[str, Any]]) -> None:
        self._session[SESSION_KEY] = bucket


def question_payload(question: Question) -> Dict[str, Any]:
    """Public view of a question; never includes the correct option."""
    return {
        "id": question.id,
        "question_text": question.question_text,
        "options": {
            "A": question.option_a,
            "B": question.option_b,
            "C": question.option_c,
            "D": question.option_d,
        },
        "image": question.image,
    }


@dataclass
class StartedTest:
    tracker: TestSessionTracker
    test_code: TestCode
    questions: List[Dict[str, Any]]
    resumed: bool = False


class TestSessionService:
    """Redeems test codes and maintains the student's tracker."""

    __test__ = False

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
    ) -> "TestSessionService":
        return cls(
            db,
            SqlCodeRepository(db),
            SqlResultRepository(db),
            SqlQuestionBank(db),
            store,
            activity,
        )

    def start_test(self, student_id: int, code: str) -> StartedTest:
        """
        Redeem ``code`` for ``student_id`` and issue a tracker.

        A student who already holds a live tracker for the same code gets it
        back with the same questions, so reloading the test page does not
        trip the single-redemption switch.

        Raises:
            ValidationError: Empty code
            TestInactiveError: Unknown or inactive code
            TestCodeDisabledError: Code has already been redeemed
            AlreadySubmittedError: Student already has a result for this code
            InsufficientQuestionsError: The question bank slice is empty
            StoreUnavailableError: The store failed
        """
        token = (code or "").strip().upper()
        if not token:
            raise ValidationError(ErrorMessages.TEST_CODE_REQUIRED)

        resumed = False
        with transaction(self.db, "start test"):
            test_code = self.codes.get_by_code(token)
            if test_code is None or not test_code.active:
                raise TestInactiveError()

            tracker = self.store.get(student_id)
            if self.results.exists(student_id, test_code.id):
                # A replayed cookie can still hold the pre-submission tracker
                if tracker is not None and tracker.test_code_id == test_code.id:
                    self.store.discard(student_id)
                raise AlreadySubmittedError()

            if tracker is not None and tracker.test_code_id == test_code.id:
                questions = self.questions.get_many(tracker.question_ids)
                resumed = True
            else:
                if test_code.disabled:
                    raise TestCodeDisabledError()

                questions = self.questions.draw(
                    Classification.of(test_code), test_code.num_questions
                )
                if not questions:
                    raise InsufficientQuestionsError(
                        available=0, requested=test_code.num_questions
                    )

                test_code.disabled = True
                test_code.disabled_at = utc_now()
                self.db.flush()
                tracker = TestSessionTracker.issue(
                    student_id, test_code, [q.id for q in questions]
                )

        self.store.put(tracker)
        if resumed:
            logger.info(f"Student {student_id} resumed test {test_code.code}")
        else:
            logger.info(
                f"Student {student_id} started test {test_code.code} "
                f"with {len(questions)} questions"
            )
            record_activity(
                self.activity,
                student_id,
                ActivityAction.CODE_ACCESSED,
                f"Accessed test code {test_code.code}",
            )
        return StartedTest(
            tracker=tracker,
            test_code=test_code,
            questions=[question_payload(q) for q in questions],
            resumed=resumed,
        )

    def save_answers(
        self, student_id: int, session_id: str, answers: Dict[str, str]
    ) -> TestSessionTracker:
        """Merge ``answers`` into the tracker's answer cache.

        Raises:
            InvalidSessionError: No live tracker, or ``session_id`` does not match
        """
        tracker = self.store.get(student_id)
        if tracker is None or not tracker.matches(session_id):
            raise InvalidSessionError()
        tracker.saved_answers.update(
            {str(question_id): answer for question_id, answer in answers.items()}
        )
        self.store.put(tracker)
        return tracker
