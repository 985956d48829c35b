"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Settings are read at import time; point them at the test database and give
# the required secrets test values before anything from cbt is imported.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ.setdefault("SECRET_KEY", "test-session-secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ENV", "test")

from itertools import cycle  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from cbt.api.deps import get_activity_sink  # noqa: E402
from cbt.core.repositories import Classification  # noqa: E402
from cbt.core.security import create_access_token  # noqa: E402
from cbt.main import app  # noqa: E402
from cbt.models import Base, Question, TestCode, TestType, get_db  # noqa: E402
from cbt.models.base import enable_sqlite_savepoints  # noqa: E402

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_ID = 1
STUDENT_ID = 1001
OTHER_STUDENT_ID = 1002

DEFAULT_CLASSIFICATION = Classification(
    class_id=3,
    subject_id=7,
    session="2024/2025",
    term="First Term",
    test_type=TestType.EXAM,
)


class RecordingActivitySink:
    """Activity sink that keeps entries in memory for assertions."""

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def log(
        self,
        user_id: Optional[int],
        action: str,
        details: str = "",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.entries.append({"user_id": user_id, "action": action, "details": details})

    def actions(self) -> List[str]:
        return [entry["action"] for entry in self.entries]


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def activity_sink():
    return RecordingActivitySink()


@pytest.fixture(scope="function")
def client(db_session, activity_sink):
    """
    Create a test client with database dependency override.

    Requests share the test's session so data created by fixtures is visible
    to the endpoints without a second SQLite connection competing for locks.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_activity_sink] = lambda: activity_sink
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers_for(user_id: int, role: str = "student") -> Dict[str, str]:
    access_token = create_access_token({"user_id": user_id, "role": role})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def admin_headers():
    return auth_headers_for(ADMIN_ID, role="admin")


@pytest.fixture
def student_headers():
    return auth_headers_for(STUDENT_ID)


def add_questions(
    db,
    count: int,
    classification: Classification = DEFAULT_CLASSIFICATION,
    correct_options: str = "ABCD",
) -> List[Question]:
    """Insert ``count`` questions; correct options cycle through ``correct_options``."""
    letters = cycle(correct_options)
    questions = [
        Question(
            **classification.as_columns(),
            question_text=f"Question {i + 1}",
            option_a="Option A",
            option_b="Option B",
            option_c="Option C",
            option_d="Option D",
            correct_option=next(letters),
        )
        for i in range(count)
    ]
    db.add_all(questions)
    db.commit()
    return questions


@pytest.fixture
def question_bank(db_session):
    """Ten questions for the default classification."""
    return add_questions(db_session, 10)


@pytest.fixture
def make_test_code(db_session):
    """Factory for test codes in the default classification."""
    counter = iter(range(1, 10_000))

    def _make(
        code: Optional[str] = None,
        active: bool = True,
        disabled: bool = False,
        num_questions: int = 10,
        score_per_question: int = 2,
        duration: int = 30,
        classification: Classification = DEFAULT_CLASSIFICATION,
    ) -> TestCode:
        test_code = TestCode(
            code=code or f"C0DE{next(counter):04d}",
            **classification.as_columns(),
            num_questions=num_questions,
            score_per_question=score_per_question,
            duration=duration,
            active=active,
            disabled=disabled,
            created_by=ADMIN_ID,
        )
        db_session.add(test_code)
        db_session.commit()
        db_session.refresh(test_code)
        return test_code

    return _make
