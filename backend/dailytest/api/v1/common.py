"""
Helpers shared by the v1 endpoint modules.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from dailytest.core.datetime_utils import to_platform_time
from dailytest.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_not_found,
)
from dailytest.core.ranking import calculate_percentile
from dailytest.core.scoring import SCORE_DISPLAY_DECIMALS, ScoreBreakdown
from dailytest.core.window import is_rank_revealed, rank_reveal_at
from dailytest.models import Phase, Submission, Test, User
from dailytest.schemas import RankInfo, ScoreResponse
from dailytest.services.catalog import TestCatalog
from dailytest.services.ledger import SubmissionLedger

logger = logging.getLogger(__name__)


def display_score(value: Optional[float]) -> Optional[float]:
    """Round a stored score for presentation."""
    if value is None:
        return None
    return round(value, SCORE_DISPLAY_DECIMALS)


def get_test_or_404(catalog: TestCatalog, test_id: int) -> Test:
    """
    Fetch a test by ID or raise 404 if not found.

    Raises:
        HTTPException: 404 if the test doesn't exist
    """
    test = catalog.get_test(test_id)
    if test is None:
        raise_not_found(ErrorMessages.test_not_found(test_id))
    return test


def require_phase_offered(test: Test, phase: Phase) -> None:
    """
    Reject phases the test does not have.

    Raises:
        HTTPException: 400 if ``phase`` is not one of the test's phases
    """
    if phase not in TestCatalog.phases_for(test):
        raise_bad_request(ErrorMessages.phase_not_offered(phase.value, test.id))


def score_from_breakdown(breakdown: ScoreBreakdown) -> ScoreResponse:
    return ScoreResponse(
        correct=breakdown.correct,
        incorrect=breakdown.incorrect,
        unattempted=breakdown.unattempted,
        attempted=breakdown.attempted,
        total_questions=breakdown.total_questions,
        net_score=breakdown.display_score,
    )


def score_from_submission(submission: Submission) -> ScoreResponse:
    return ScoreResponse(
        correct=submission.correct_count,
        incorrect=submission.incorrect_count,
        unattempted=submission.unattempted_count,
        attempted=submission.attempted_count,
        total_questions=submission.total_questions,
        net_score=display_score(submission.net_score),
    )


def reveal_time_of(test: Test) -> datetime:
    """Rank-reveal instant for ``test`` in platform time."""
    return to_platform_time(rank_reveal_at(test.scheduled_date))


def closed_rank_info(test: Test, now: datetime) -> RankInfo:
    """Rank block with the gate state but no numbers."""
    return RankInfo(
        revealed=is_rank_revealed(test.scheduled_date, now),
        reveal_at=reveal_time_of(test),
    )


def phase_rank_info(
    ledger: SubmissionLedger,
    test: Test,
    submission: Submission,
    now: datetime,
) -> RankInfo:
    """
    Build the rank block for one phase submission.

    Numbers are only computed and returned when the reveal gate is open and
    the submission is on-time; late submissions are never ranked.
    """
    info = closed_rank_info(test, now)
    if not info.revealed or submission.is_late:
        return info

    total = ledger.cohort_size(submission.test_id, submission.phase)
    rank = ledger.count_ahead(submission) + 1
    info.rank = rank
    info.percentile = calculate_percentile(rank, total)
    info.total_participants = total
    return info


def load_profiles(db: Session, user_ids: Iterable[str]) -> Dict[str, User]:
    """Fetch user profiles for a set of ids in one query."""
    ids = set(user_ids)
    if not ids:
        return {}
    return {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}


def profile_fields(
    profiles: Dict[str, User], user_id: str
) -> Dict[str, Optional[str]]:
    """Display fields for a leaderboard row; empty when the profile is missing."""
    user = profiles.get(user_id)
    if user is None:
        return {"display_name": None, "photo_url": None}
    return {"display_name": user.display_name, "photo_url": user.photo_url}
