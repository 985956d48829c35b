"""
Shared FastAPI dependencies for the v1 endpoints.

Services are built per request from the request's database session. The
activity sink and the test-session store are dependencies of their own so
tests can override them through ``app.dependency_overrides``.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cbt.core.activation import ActivationGate
from cbt.core.activity_log import ActivitySink, DatabaseActivitySink
from cbt.core.code_generator import CodeGenerator
from cbt.core.submission import SubmissionScorer
from cbt.core.test_sessions import (
    RequestSessionStore,
    TestSessionService,
    TestSessionStore,
)
from cbt.models import SessionLocal, get_db


def get_activity_sink() -> ActivitySink:
    return DatabaseActivitySink(SessionLocal)


def get_test_session_store(request: Request) -> TestSessionStore:
    return RequestSessionStore(request.session)


def get_code_generator(
    db: Session = Depends(get_db),
    activity: ActivitySink = Depends(get_activity_sink),
) -> CodeGenerator:
    return CodeGenerator.from_session(db, activity)


def get_activation_gate(
    db: Session = Depends(get_db),
    activity: ActivitySink = Depends(get_activity_sink),
) -> ActivationGate:
    return ActivationGate.from_session(db, activity)


def get_test_session_service(
    db: Session = Depends(get_db),
    store: TestSessionStore = Depends(get_test_session_store),
    activity: ActivitySink = Depends(get_activity_sink),
) -> TestSessionService:
    return TestSessionService.from_session(db, store, activity)


def get_submission_scorer(
    db: Session = Depends(get_db),
    store: TestSessionStore = Depends(get_test_session_store),
    activity: ActivitySink = Depends(get_activity_sink),
) -> SubmissionScorer:
    return SubmissionScorer.from_session(db, store, activity)
