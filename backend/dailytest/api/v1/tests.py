"""
Daily test endpoints: today's test, phase submission, review and stats.
"""
import logging
from collections import Counter
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dailytest.api.v1.common import (
    display_score,
    get_test_or_404,
    phase_rank_info,
    reveal_time_of,
    require_phase_offered,
    score_from_breakdown,
    score_from_submission,
)
from dailytest.core.datetime_utils import (
    Clock,
    get_clock,
    to_platform_time,
    to_utc,
)
from dailytest.core.db_error_handling import handle_db_error
from dailytest.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_conflict,
    raise_not_found,
)
from dailytest.core.identity import VerifiedIdentity, get_current_identity
from dailytest.core.scoring import (
    AnswerOutcome,
    grade_answers,
    summarize,
    unknown_question_ids,
)
from dailytest.core.window import (
    WindowState,
    is_late_submission,
    window_state_of,
)
from dailytest.models import Phase, Submission, Test, TestKind, get_db
from dailytest.schemas import (
    PhaseStatsResponse,
    QuestionAccuracy,
    QuestionResponse,
    ReviewItem,
    ReviewResponse,
    SubmitPhaseRequest,
    SubmitPhaseResponse,
    TodayTestResponse,
)
from dailytest.services.catalog import TestCatalog, question_to_public
from dailytest.services.ledger import InsertOutcome, SubmissionKey, SubmissionLedger
from dailytest.services.users import upsert_user

router = APIRouter()
logger = logging.getLogger(__name__)


def build_today_response(
    catalog: TestCatalog,
    test: Test,
    clock: Clock,
    submitted_phases: Optional[list] = None,
) -> TodayTestResponse:
    """
    Describe a test as seen right now.

    Questions (without correct options) are only included while the window
    is active.
    """
    now = clock.now()
    state = window_state_of(test, now)

    questions = []
    if state == WindowState.ACTIVE:
        questions = [
            QuestionResponse(**question_to_public(q))
            for q in catalog.find_questions_by_test(test.id)
        ]

    return TodayTestResponse(
        test_id=test.id,
        title=test.title,
        kind=test.kind,
        scheduled_date=test.scheduled_date,
        status=state,
        window_start=to_platform_time(test.window_start),
        window_end=to_platform_time(test.window_end),
        server_time=to_platform_time(now),
        question_count=test.question_count,
        has_dual_phase=test.has_dual_phase,
        phases=TestCatalog.phases_for(test),
        submitted_phases=submitted_phases or [],
        rank_reveal_at=reveal_time_of(test),
        questions=questions,
    )


@router.get("/today", response_model=TodayTestResponse)
def get_today_test(
    kind: TestKind = Query(default=TestKind.PAID, description="paid or free"),
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get the test scheduled for today (platform date).

    The response carries the window status and, while the window is active,
    the questions without their correct options. ``submitted_phases`` lists
    the phases the caller has already submitted on time.

    Raises:
        HTTPException: 404 if no test is scheduled today
    """
    catalog = TestCatalog(db)
    test = catalog.find_test_by_date_and_kind(clock.today(), kind)
    if test is None:
        raise_not_found(ErrorMessages.NO_TEST_TODAY)

    ledger = SubmissionLedger(db)
    submitted = [
        submission.phase
        for submission in ledger.query(
            {"user_id": identity.subject_id, "test_id": test.id, "is_late": False},
            order_by=(Submission.id,),
        )
    ]
    return build_today_response(catalog, test, clock, submitted)


@router.post(
    "/{test_id}/phases/{phase}/submit", response_model=SubmitPhaseResponse
)
def submit_phase(
    test_id: int,
    phase: Phase,
    submission: SubmitPhaseRequest,
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Grade and record the caller's answers for one phase.

    A submission after the window closes is accepted as late practice: it is
    graded and stored but never ranked. Each user may record one on-time and
    one late submission per phase.

    Raises:
        HTTPException: 404 if the test doesn't exist, 400 if the test hasn't
            started or doesn't offer the phase, 409 if already submitted
    """
    now = clock.now()
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)

    # Step 1: Validate the target
    test = get_test_or_404(catalog, test_id)
    if test.kind != TestKind.PAID:
        raise_bad_request(ErrorMessages.FREE_TEST_REQUIRES_FREE_ENDPOINT)
    require_phase_offered(test, phase)
    if window_state_of(test, now) == WindowState.NOT_STARTED:
        raise_bad_request(ErrorMessages.TEST_NOT_STARTED)

    # Step 2: Admission control (app-level check; the unique constraint
    # backs it up in Step 4)
    is_late = is_late_submission(test.window_end, now)
    key = SubmissionKey(identity.subject_id, test.id, phase, is_late)
    if ledger.exists(key):
        logger.warning(
            f"Duplicate submission: user {identity.subject_id} test {test.id} "
            f"phase {phase.value} late={is_late}"
        )
        raise_conflict(ErrorMessages.ALREADY_SUBMITTED)

    # Step 3: Grade
    answer_key = catalog.answer_key(test.id, phase)
    unknown = unknown_question_ids(submission.answers, answer_key)
    if unknown:
        logger.debug(
            f"Dropping answers for unknown questions {sorted(unknown)} "
            f"(test {test.id}, phase {phase.value})"
        )
    graded = grade_answers(submission.answers, answer_key)
    breakdown = summarize(graded)

    started_at = to_utc(submission.started_at) if submission.started_at else None

    # Step 4: Persist (all-or-nothing)
    with handle_db_error(
        db, "record submission", detail=ErrorMessages.SUBMISSION_FAILED
    ):
        upsert_user(db, identity, now)
        record = Submission(
            user_id=identity.subject_id,
            test_id=test.id,
            phase=phase,
            correct_count=breakdown.correct,
            incorrect_count=breakdown.incorrect,
            unattempted_count=breakdown.unattempted,
            attempted_count=breakdown.attempted,
            total_questions=breakdown.total_questions,
            net_score=breakdown.net_score,
            started_at=started_at,
            submitted_at=now,
            is_late=is_late,
            answers=[
                {"question_id": g.question_id, "selected_option": g.selected_option}
                for g in graded
            ],
        )
        if ledger.insert_if_absent(record) == InsertOutcome.ALREADY_EXISTS:
            logger.warning(
                f"Race condition detected: user {identity.subject_id} submitted "
                f"test {test.id} phase {phase.value} concurrently"
            )
            raise_conflict(ErrorMessages.ALREADY_SUBMITTED)
        db.commit()
        db.refresh(record)

    logger.info(
        f"Submission accepted: user {identity.subject_id} score "
        f"{breakdown.display_score}",
        extra={"test_id": test.id, "phase": phase.value},
    )

    return SubmitPhaseResponse(
        submission_id=record.id,
        test_id=test.id,
        phase=phase,
        is_late=is_late,
        submitted_at=to_platform_time(now),
        score=score_from_breakdown(breakdown),
        rank=phase_rank_info(ledger, test, record, now),
    )


@router.get(
    "/{test_id}/phases/{phase}/review", response_model=ReviewResponse
)
def review_phase(
    test_id: int,
    phase: Phase,
    late: Optional[bool] = Query(
        default=None,
        description="Review the late submission (true) or the on-time one "
        "(false). Defaults to the on-time submission when both exist.",
    ),
    identity: VerifiedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Compare the caller's submitted answers with the correct options.

    Only available to a caller who has submitted the phase.

    Raises:
        HTTPException: 404 if the test or the caller's submission doesn't exist
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    require_phase_offered(test, phase)

    candidates = [late] if late is not None else [False, True]
    submission = None
    for is_late in candidates:
        submission = ledger.find(
            SubmissionKey(identity.subject_id, test.id, phase, is_late)
        )
        if submission is not None:
            break
    if submission is None:
        raise_not_found(ErrorMessages.SUBMISSION_NOT_FOUND)

    questions = catalog.find_questions_by_test(test.id, phase)
    graded = grade_answers(
        submission.answers or [], {q.id: q.correct_option for q in questions}
    )
    items = [
        ReviewItem(
            question_id=question.id,
            ordinal=question.ordinal,
            statement=question.statement,
            options=question_to_public(question)["options"],
            selected_option=result.selected_option,
            correct_option=result.correct_option,
            outcome=result.outcome.value,
        )
        for question, result in zip(questions, graded)
    ]

    return ReviewResponse(
        submission_id=submission.id,
        test_id=test.id,
        phase=phase,
        is_late=submission.is_late,
        submitted_at=to_platform_time(submission.submitted_at),
        score=score_from_submission(submission),
        items=items,
    )


@router.get("/{test_id}/phases/{phase}/stats", response_model=PhaseStatsResponse)
def get_phase_stats(
    test_id: int,
    phase: Phase,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Aggregate statistics for a phase once the test window has ended.

    Score aggregates and per-question accuracy cover on-time submissions
    only; late submissions are counted separately.

    Raises:
        HTTPException: 404 if the test doesn't exist, 400 while the window
            has not ended
    """
    catalog = TestCatalog(db)
    ledger = SubmissionLedger(db)
    test = get_test_or_404(catalog, test_id)
    require_phase_offered(test, phase)
    if window_state_of(test, clock.now()) != WindowState.ARCHIVED:
        raise_bad_request(ErrorMessages.TEST_NOT_ENDED)

    on_time = ledger.score_summary(test.id, phase, is_late=False)
    late_count = ledger.count({"test_id": test.id, "phase": phase, "is_late": True})

    questions = catalog.find_questions_by_test(test.id, phase)
    answer_key = {q.id: q.correct_option for q in questions}
    tallies: Dict[int, Counter] = {q.id: Counter() for q in questions}
    for submission in ledger.query(ledger.cohort_filters(test.id, phase)):
        for result in grade_answers(submission.answers or [], answer_key):
            tallies[result.question_id][result.outcome] += 1

    question_stats = []
    for question in questions:
        tally = tallies[question.id]
        correct = tally[AnswerOutcome.CORRECT]
        incorrect = tally[AnswerOutcome.INCORRECT]
        attempted = correct + incorrect
        question_stats.append(
            QuestionAccuracy(
                question_id=question.id,
                ordinal=question.ordinal,
                correct=correct,
                incorrect=incorrect,
                unattempted=tally[AnswerOutcome.UNATTEMPTED],
                accuracy=round(correct / attempted, 4) if attempted else None,
            )
        )

    return PhaseStatsResponse(
        test_id=test.id,
        phase=phase,
        on_time_submissions=on_time.count,
        late_submissions=late_count,
        mean_score=display_score(on_time.mean),
        max_score=display_score(on_time.maximum),
        min_score=display_score(on_time.minimum),
        questions=question_stats,
    )
