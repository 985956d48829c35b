"""
Store access for the test-code lifecycle and submission engine.

Each component receives the repositories it needs explicitly instead of
issuing queries against a global handle. The protocols describe what the
services rely on; the ``Sql*`` classes implement them on a SQLAlchemy
session. Transaction boundaries stay with the services (see
``cbt.core.db_error_handling.transaction``).
"""
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from cbt.models.models import Question, TestCode, TestResult, TestType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """The five fields that tie a test code to its question bank slice."""

    class_id: int
    subject_id: int
    session: str
    term: str
    test_type: TestType

    @classmethod
    def of(cls, row: Any) -> "Classification":
        """Read the classification off a TestCode (or anything shaped like one)."""
        return cls(
            class_id=row.class_id,
            subject_id=row.subject_id,
            session=row.session,
            term=row.term,
            test_type=TestType(row.test_type),
        )

    def as_columns(self) -> Dict[str, Any]:
        return {
            "class_id": self.class_id,
            "subject_id": self.subject_id,
            "session": self.session,
            "term": self.term,
            "test_type": self.test_type,
        }

    def describe(self) -> str:
        return (
            f"class {self.class_id}, subject {self.subject_id}, "
            f"{self.session} {self.term} ({self.test_type.value})"
        )


class QuestionBank(Protocol):
    """Read-only lookup into the question bank."""

    def count(self, classification: Classification) -> int:
        ...

    def correct_options(self, classification: Classification) -> Dict[int, str]:
        ...

    def draw(self, classification: Classification, limit: int) -> List[Question]:
        ...

    def get_many(self, question_ids: List[int]) -> List[Question]:
        ...


class CodeRepository(Protocol):
    def get(self, code_id: int, *, for_update: bool = False) -> Optional[TestCode]:
        ...

    def get_by_code(self, code: str) -> Optional[TestCode]:
        ...

    def code_exists(self, code: str) -> bool:
        ...

    def add(self, test_code: TestCode) -> None:
        ...


class ResultRepository(Protocol):
    def exists(self, student_id: int, test_code_id: int) -> bool:
        ...

    def count_for_code(self, test_code_id: int) -> int:
        ...

    def get(self, result_id: int) -> Optional[TestResult]:
        ...

    def add(self, result: TestResult) -> None:
        ...


def _filter_by_classification(query, classification: Classification):
    return query.filter(
        Question.class_id == classification.class_id,
        Question.subject_id == classification.subject_id,
        Question.session == classification.session,
        Question.term == classification.term,
        Question.test_type == classification.test_type,
    )


class SqlQuestionBank:
    """QuestionBank backed by the ``questions`` table."""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self._rng = rng or random.SystemRandom()

    def count(self, classification: Classification) -> int:
        query = _filter_by_classification(
            self.db.query(func.count(Question.id)), classification
        )
        return query.scalar() or 0

    def correct_options(self, classification: Classification) -> Dict[int, str]:
        rows = _filter_by_classification(
            self.db.query(Question.id, Question.correct_option), classification
        ).all()
        return {question_id: option for question_id, option in rows}

    def draw(self, classification: Classification, limit: int) -> List[Question]:
        """Pick ``limit`` questions at random, in random order."""
        # Sampled in Python so selection is independent of the dialect's
        # RANDOM()/RAND() spelling; question banks per classification are small.
        ids = [
            question_id
            for (question_id,) in _filter_by_classification(
                self.db.query(Question.id), classification
            ).all()
        ]
        chosen = self._rng.sample(ids, min(limit, len(ids)))
        if not chosen:
            return []
        by_id = {
            q.id: q for q in self.db.query(Question).filter(Question.id.in_(chosen))
        }
        return [by_id[question_id] for question_id in chosen]

    def get_many(self, question_ids: List[int]) -> List[Question]:
        """Load questions by id, in the order given; unknown ids are skipped."""
        if not question_ids:
            return []
        by_id = {
            q.id: q
            for q in self.db.query(Question).filter(Question.id.in_(question_ids))
        }
        return [by_id[qid] for qid in question_ids if qid in by_id]


class SqlCodeRepository:
    """CodeRepository backed by the ``test_codes`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, code_id: int, *, for_update: bool = False) -> Optional[TestCode]:
        query = self.db.query(TestCode).filter(TestCode.id == code_id)
        if for_update:
            # Serializes concurrent guard checks on the same code. Dialects
            # without row locks (SQLite) ignore this.
            query = query.with_for_update()
        return query.first()

    def get_by_code(self, code: str) -> Optional[TestCode]:
        return self.db.query(TestCode).filter(TestCode.code == code).first()

    def code_exists(self, code: str) -> bool:
        return (
            self.db.query(TestCode.id).filter(TestCode.code == code).first()
            is not None
        )

    def add(self, test_code: TestCode) -> None:
        """Insert and flush so the unique index on ``code`` is checked now.

        Runs in a savepoint: an IntegrityError rolls back only this insert
        and propagates to the caller.
        """
        with self.db.begin_nested():
            self.db.add(test_code)
            self.db.flush()


class SqlResultRepository:
    """ResultRepository backed by the ``test_results`` table."""

    def __init__(self, db: Session):
        self.db = db

    def exists(self, student_id: int, test_code_id: int) -> bool:
        return (
            self.db.query(TestResult.id)
            .filter(
                TestResult.student_id == student_id,
                TestResult.test_code_id == test_code_id,
            )
            .first()
            is not None
        )

    def count_for_code(self, test_code_id: int) -> int:
        return (
            self.db.query(func.count(TestResult.id))
            .filter(TestResult.test_code_id == test_code_id)
            .scalar()
            or 0
        )

    def get(self, result_id: int) -> Optional[TestResult]:
        return self.db.query(TestResult).filter(TestResult.id == result_id).first()

    def add(self, result: TestResult) -> None:
        """Insert and flush; a duplicate (student, code) raises IntegrityError."""
        with self.db.begin_nested():
            self.db.add(result)
            self.db.flush()
