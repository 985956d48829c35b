"""
Student test endpoints: redeem a code, cache answers, submit.

The student's test session lives in the signed session cookie, so these
endpoints must be called with the cookie returned by ``/test/start``.
"""
import logging

from fastapi import APIRouter, Depends

from cbt.api.deps import get_submission_scorer, get_test_session_service
from cbt.core.auth import CurrentUser, get_current_user
from cbt.core.error_responses import envelope
from cbt.core.submission import SubmissionScorer
from cbt.core.test_sessions import TestSessionService
from cbt.schemas.test_sessions import (
    SaveAnswersRequest,
    StartTestRequest,
    StartTestResponse,
    SubmitTestRequest,
    SubmitTestResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/start")
def start_test(
    request: StartTestRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: TestSessionService = Depends(get_test_session_service),
):
    """
    Redeem a test code and start (or resume) the student's test.

    Returns the session token and the questions without their answers.
    Calling this again with the same code while the session is live returns
    the same session and questions.
    """
    started = service.start_test(current_user.id, request.code)
    tracker = started.tracker
    data = StartTestResponse(
        session_id=tracker.id,
        test_code_id=started.test_code.id,
        code=started.test_code.code,
        duration=started.test_code.duration,
        num_questions=len(started.questions),
        start_time=tracker.start_time,
        expires_at=tracker.expires_at,
        resumed=started.resumed,
        saved_answers=tracker.saved_answers,
        questions=started.questions,
    )
    return envelope(True, "Test started", data=data.model_dump(mode="json"))


@router.post("/answers")
def save_answers(
    request: SaveAnswersRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: TestSessionService = Depends(get_test_session_service),
):
    """Cache in-progress answers on the student's session."""
    tracker = service.save_answers(
        current_user.id, request.session_id, request.answers
    )
    return envelope(
        True,
        "Answers saved",
        data={"saved_count": len(tracker.saved_answers)},
    )


@router.post("/submit")
def submit_test(
    request: SubmitTestRequest,
    current_user: CurrentUser = Depends(get_current_user),
    scorer: SubmissionScorer = Depends(get_submission_scorer),
):
    """
    Submit a completed test. Accepted at most once per student and code.

    Raises:
        InvalidSessionError: 400 if the session token does not match
        AlreadySubmittedError: 409 on any repeat submission
        TestInactiveError: 400 if the code was deactivated or removed
    """
    outcome = scorer.submit(
        request.session_id, request.test_code_id, current_user.id, request.answers
    )
    result = outcome.result
    data = SubmitTestResponse(
        result_id=result.id,
        score=outcome.score,
        total_score=outcome.total_score,
        percentage=outcome.percentage,
        correct_answers=result.correct_answers,
        wrong_answers=result.wrong_answers,
        questions_answered=result.questions_answered,
        time_taken=result.time_taken,
    )
    return envelope(True, "Test submitted successfully", data=data.model_dump())
