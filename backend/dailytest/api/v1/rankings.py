"""
Rank and leaderboard endpoints.

Every rank is derived from the submission ledger on each request; nothing
is cached. Ranks and leaderboards are gated by the daily rank-reveal
cutoff; the global leaderboard only counts tests whose gate has opened.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dailytest.api.v1.common import (
    closed_rank_info,
    display_score,
    get_test_or_404,
    load_profiles,
    profile_fields,
    phase_rank_info,
    require_phase_offered,
)
from dailytest.core.config import settings
from dailytest.core.datetime_utils import Clock, get_clock, to_platform_time
from dailytest.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_not_found,
)
from dailytest.core.identity import VerifiedIdentity, get_current_identity
from dailytest.core.ranking import (
    build_combined_cohort,
    find_standing,
    rank_combined,
)
from dailytest.core.scoring import (
    calculate_net_score,
    net_score_from_thirds,
    score_in_thirds,
)
from dailytest.core.window import latest_revealed_date
from dailytest.models import Phase, Test, get_db
from dailytest.schemas import (
    CombinedRankResponse,
    GlobalLeaderboardEntry,
    GlobalLeaderboardResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    PhaseRankResponse,
)
from dailytest.services.catalog import TestCatalog
from dailytest.services.ledger import SubmissionKey, SubmissionLedger

router = APIRouter()
logger = logging.getLogger(__name__)


def _limit_query():
    return Query(
        default=settings.LEADERBOARD_DEFAULT_LIMIT,
        ge=1,
        le=settings.LEADERBOARD_MAX_LIMIT,
        description=(
            f"Maximum number of entries to return (default "
            f"{settings.LEADERBOARD_DEFAULT_LIMIT}, max "
            f"{settings.LEADERBOARD_MAX_LIMIT})"
        ),
    )


def _require_dual_phase(test: Test) -> None:
    if not test.has_dual_phase:
        raise_bad_request(ErrorMessages.NOT_A_DUAL_PHASE_TEST)


def _combined_standings(ledger: SubmissionLedger, test: Test):
    phases = TestCatalog.phases_for(test)
    entries_by_phase = {
        phase: ledger.cohort_entries(test.id, phase) for phase in phases
    }
    return rank_combined(build_combined_cohort(entries_by_phase, phases))


@router.get(
    "/tests/{test_id}/phases/{phase}/rank", response_model=PhaseRankResponse
)
def get_phase_rank(
    test_id: int,
    phase: Phase,
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get the caller's rank in one phase.

    Scores are always visible to the submitter; rank numbers only once the
    reveal gate has opened. A caller with only a late submission gets
    ``is_late=true`` and no rank.

    Raises:
        HTTPException: 404 if the test or the caller's submission doesn't exist
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    require_phase_offered(test, phase)

    submission = ledger.find(
        SubmissionKey(identity.subject_id, test.id, phase, False)
    ) or ledger.find(SubmissionKey(identity.subject_id, test.id, phase, True))
    if submission is None:
        raise_not_found(ErrorMessages.SUBMISSION_NOT_FOUND)

    return PhaseRankResponse(
        test_id=test.id,
        phase=phase,
        is_late=submission.is_late,
        net_score=display_score(submission.net_score),
        correct=submission.correct_count,
        incorrect=submission.incorrect_count,
        unattempted=submission.unattempted_count,
        rank=phase_rank_info(ledger, test, submission, clock.now()),
    )


@router.get("/tests/{test_id}/rank/combined", response_model=CombinedRankResponse)
def get_combined_rank(
    test_id: int,
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get the caller's combined rank across both phases of a dual-phase test.

    Raises:
        HTTPException: 400 if the test has a single phase, 404 unless the
            caller has on-time submissions for every phase
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    _require_dual_phase(test)

    own = {}
    for phase in TestCatalog.phases_for(test):
        submission = ledger.find(
            SubmissionKey(identity.subject_id, test.id, phase, False)
        )
        if submission is None:
            raise_not_found(ErrorMessages.COMBINED_RANK_NOT_AVAILABLE)
        own[phase] = submission.net_score

    now = clock.now()
    info = closed_rank_info(test, now)
    if info.revealed:
        standing = find_standing(
            _combined_standings(ledger, test), identity.subject_id
        )
        if standing is not None:
            info.rank = standing.rank
            info.percentile = standing.percentile
            info.total_participants = standing.total_participants

    return CombinedRankResponse(
        test_id=test.id,
        combined_score=display_score(
            net_score_from_thirds(sum(score_in_thirds(s) for s in own.values()))
        ),
        phase_scores={phase: display_score(score) for phase, score in own.items()},
        rank=info,
    )


@router.get(
    "/tests/{test_id}/phases/{phase}/leaderboard",
    response_model=LeaderboardResponse,
)
def get_phase_leaderboard(
    test_id: int,
    phase: Phase,
    limit: int = _limit_query(),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Top of the on-time cohort for one phase.

    Before the reveal gate opens the response has ``revealed=false`` and no
    entries.

    Raises:
        HTTPException: 404 if the test doesn't exist
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    require_phase_offered(test, phase)

    info = closed_rank_info(test, clock.now())
    response = LeaderboardResponse(
        test_id=test.id,
        phase=phase,
        revealed=info.revealed,
        reveal_at=info.reveal_at,
    )
    if not info.revealed:
        return response

    top = ledger.top_of_cohort(test.id, phase, limit)
    profiles = load_profiles(db, (s.user_id for s in top))
    response.total_participants = ledger.cohort_size(test.id, phase)
    response.entries = [
        LeaderboardEntry(
            rank=position,
            user_id=submission.user_id,
            **profile_fields(profiles, submission.user_id),
            score=display_score(submission.net_score),
            correct=submission.correct_count,
            submitted_at=to_platform_time(submission.submitted_at),
        )
        for position, submission in enumerate(top, start=1)
    ]
    return response


@router.get(
    "/tests/{test_id}/leaderboard/combined", response_model=LeaderboardResponse
)
def get_combined_leaderboard(
    test_id: int,
    limit: int = _limit_query(),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Top of the combined cohort of a dual-phase test.

    Only users with on-time submissions for every phase appear.

    Raises:
        HTTPException: 404 if the test doesn't exist, 400 for single-phase tests
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    _require_dual_phase(test)

    info = closed_rank_info(test, clock.now())
    response = LeaderboardResponse(
        test_id=test.id,
        phase=None,
        revealed=info.revealed,
        reveal_at=info.reveal_at,
    )
    if not info.revealed:
        return response

    standings = _combined_standings(ledger, test)
    top = standings[:limit]
    profiles = load_profiles(db, (s.user_id for s in top))
    response.total_participants = len(standings)
    response.entries = [
        LeaderboardEntry(
            rank=standing.rank,
            user_id=standing.user_id,
            **profile_fields(profiles, standing.user_id),
            score=display_score(standing.score),
            submitted_at=to_platform_time(standing.submitted_at),
        )
        for standing in top
    ]
    return response


@router.get("/leaderboard/global", response_model=GlobalLeaderboardResponse)
def get_global_leaderboard(
    limit: int = _limit_query(),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Cross-test leaderboard over every on-time submission on the platform.

    Submissions to tests whose rank-reveal gate is still closed are left
    out, so today's standings cannot be read off before the cutoff. Users
    are ordered by total net score, then total correct answers, then user id.
    """
    ledger = SubmissionLedger(db)
    totals = ledger.score_totals(
        scheduled_through=latest_revealed_date(clock.now()),
        limit=limit,
    )
    profiles = load_profiles(db, (t.key for t in totals))

    return GlobalLeaderboardResponse(
        entries=[
            GlobalLeaderboardEntry(
                rank=position,
                user_id=total.key,
                **profile_fields(profiles, total.key),
                total_score=display_score(
                    calculate_net_score(
                        int(total.sums["correct_count"]),
                        int(total.sums["incorrect_count"]),
                    )
                ),
                total_correct=int(total.sums["correct_count"]),
                submissions=total.count,
            )
            for position, total in enumerate(totals, start=1)
        ],
        limit=limit,
    )
