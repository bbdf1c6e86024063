"""
Free-tier endpoints.

Free tests need no account: attempts are graded with the same scoring
engine and appended as anonymous submissions. They are never ranked.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dailytest.api.v1.common import (
    display_score,
    get_test_or_404,
    score_from_breakdown,
)
from dailytest.api.v1.tests import build_today_response
from dailytest.core.datetime_utils import Clock, get_clock, to_platform_time
from dailytest.core.db_error_handling import handle_db_error
from dailytest.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_not_found,
)
from dailytest.core.scoring import score_answers
from dailytest.core.window import WindowState, window_state_of
from dailytest.models import Test, TestKind, get_db
from dailytest.schemas import (
    FreeSubmitResponse,
    FreeTestStatsResponse,
    SubmitPhaseRequest,
    TodayTestResponse,
)
from dailytest.services.catalog import TestCatalog
from dailytest.services.ledger import SubmissionLedger

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_free_test_or_404(catalog: TestCatalog, test_id: int) -> Test:
    test = get_test_or_404(catalog, test_id)
    if test.kind != TestKind.FREE:
        raise_bad_request(ErrorMessages.NOT_A_FREE_TEST)
    return test


@router.get("/tests/today", response_model=TodayTestResponse)
def get_free_today_test(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get today's free test. No authentication required.

    Raises:
        HTTPException: 404 if no free test is scheduled today
    """
    catalog = TestCatalog(db)
    test = catalog.find_test_by_date_and_kind(clock.today(), TestKind.FREE)
    if test is None:
        raise_not_found(ErrorMessages.NO_TEST_TODAY)
    return build_today_response(catalog, test, clock)


@router.post("/tests/{test_id}/submit", response_model=FreeSubmitResponse)
def submit_free_test(
    test_id: int,
    submission: SubmitPhaseRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Grade an anonymous attempt at a free test.

    Every question of the test is scored; attempts are not deduplicated.

    Raises:
        HTTPException: 404 if the test doesn't exist, 400 if it is not a free
            test or has not started
    """
    now = clock.now()
    catalog = TestCatalog(db)
    test = _get_free_test_or_404(catalog, test_id)
    if window_state_of(test, now) == WindowState.NOT_STARTED:
        raise_bad_request(ErrorMessages.TEST_NOT_STARTED)

    answer_key = {
        q.id: q.correct_option for q in catalog.find_questions_by_test(test.id)
    }
    breakdown = score_answers(submission.answers, answer_key)

    with handle_db_error(db, "record free attempt"):
        attempt = SubmissionLedger(db).record_anonymous(test.id, breakdown, now)
        db.commit()
        db.refresh(attempt)

    logger.info(
        f"Anonymous attempt recorded: score {breakdown.display_score}",
        extra={"test_id": test.id},
    )

    return FreeSubmitResponse(
        attempt_id=attempt.id,
        test_id=test.id,
        submitted_at=to_platform_time(now),
        score=score_from_breakdown(breakdown),
    )


@router.get("/tests/{test_id}/stats", response_model=FreeTestStatsResponse)
def get_free_test_stats(test_id: int, db: Session = Depends(get_db)):
    """Attempt count and average score of a free test."""
    catalog = TestCatalog(db)
    test = _get_free_test_or_404(catalog, test_id)
    summary = SubmissionLedger(db).anonymous_summary(test.id)
    return FreeTestStatsResponse(
        test_id=test.id,
        attempts=summary.attempts,
        average_score=display_score(summary.average_score),
    )
