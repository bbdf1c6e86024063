"""
Submission history endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dailytest.api.v1.common import display_score
from dailytest.core.datetime_utils import to_platform_time
from dailytest.core.identity import VerifiedIdentity, get_current_identity
from dailytest.models import Submission, Test, get_db
from dailytest.schemas import PaginatedSubmissionHistory, SubmissionSummary
from dailytest.services.ledger import SubmissionLedger

router = APIRouter()

DEFAULT_HISTORY_PAGE_SIZE = 50
MAX_HISTORY_PAGE_SIZE = 100


@router.get("/me", response_model=PaginatedSubmissionHistory)
def get_my_submissions(
    limit: int = Query(
        default=DEFAULT_HISTORY_PAGE_SIZE,
        ge=1,
        le=MAX_HISTORY_PAGE_SIZE,
        description=f"Maximum number of results to return (default {DEFAULT_HISTORY_PAGE_SIZE}, max {MAX_HISTORY_PAGE_SIZE})",
    ),
    offset: int = Query(
        default=0,
        ge=0,
        description="Number of results to skip for pagination",
    ),
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Get the caller's submissions with pagination.

    Results are returned in reverse chronological order (most recent first)
    and include both on-time and late submissions.

    Args:
        limit: Maximum number of results per page (default 50, max 100)
        offset: Number of results to skip for pagination (default 0)
        identity: Verified caller
        db: Database session

    Returns:
        Paginated submissions with total count and pagination metadata
    """
    ledger = SubmissionLedger(db)
    filters = {"user_id": identity.subject_id}

    total_count = ledger.count(filters)
    submissions = ledger.query(
        filters,
        order_by=(Submission.submitted_at.desc(), Submission.id.desc()),
        limit=limit,
        offset=offset,
    )

    # Pre-fetch titles once to avoid N+1 queries
    test_ids = {s.test_id for s in submissions}
    titles = (
        dict(db.query(Test.id, Test.title).filter(Test.id.in_(test_ids)).all())
        if test_ids
        else {}
    )

    results = [
        SubmissionSummary(
            id=s.id,
            test_id=s.test_id,
            test_title=titles.get(s.test_id),
            phase=s.phase,
            net_score=display_score(s.net_score),
            correct_count=s.correct_count,
            incorrect_count=s.incorrect_count,
            unattempted_count=s.unattempted_count,
            total_questions=s.total_questions,
            is_late=s.is_late,
            submitted_at=to_platform_time(s.submitted_at),
        )
        for s in submissions
    ]

    return PaginatedSubmissionHistory(
        results=results,
        total_count=total_count,
        limit=limit,
        offset=offset,
        has_more=(offset + len(results)) < total_count,
    )
