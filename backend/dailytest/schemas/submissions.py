"""
Pydantic schemas for submitting, reviewing and listing phase submissions.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from dailytest.models import OPTION_KEYS, Phase

# Upper bound on answers accepted per request
MAX_ANSWERS_PER_SUBMISSION = 500


class AnswerItem(BaseModel):
    """One answer entry. A null or empty option means unattempted."""

    question_id: int = Field(..., description="ID of the question being answered")
    selected_option: Optional[str] = Field(
        None, description="Chosen option key (option1..option4) or null"
    )

    @field_validator("selected_option", mode="before")
    @classmethod
    def normalize_option(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator("selected_option")
    @classmethod
    def validate_option(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in OPTION_KEYS:
            raise ValueError(f"selected_option must be one of {', '.join(OPTION_KEYS)}")
        return v


class SubmitPhaseRequest(BaseModel):
    """Schema for submitting answers for one phase."""

    answers: List[AnswerItem] = Field(
        ...,
        max_length=MAX_ANSWERS_PER_SUBMISSION,
        description="Answers in any order; questions without an entry are unattempted",
    )
    started_at: Optional[datetime] = Field(
        None, description="When the caller started the phase (client clock)"
    )


class ScoreResponse(BaseModel):
    """Score breakdown for one phase submission."""

    correct: int = Field(..., description="Correct answers")
    incorrect: int = Field(..., description="Incorrect answers")
    unattempted: int = Field(..., description="Unattempted questions")
    attempted: int = Field(..., description="Attempted questions")
    total_questions: int = Field(..., description="Questions in the phase")
    net_score: float = Field(
        ..., description="Net score with negative marking, rounded to 2 decimals"
    )


class RankInfo(BaseModel):
    """
    Rank block attached to submission and rank responses.

    rank, percentile and total_participants are only populated once the
    reveal gate is open and the submission is on-time.
    """

    revealed: bool = Field(..., description="Whether ranks are visible yet")
    reveal_at: datetime = Field(..., description="When ranks become visible")
    rank: Optional[int] = Field(None, description="1-based rank in the cohort")
    percentile: Optional[int] = Field(
        None, description="Share of the cohort ranked below the caller"
    )
    total_participants: Optional[int] = Field(
        None, description="Number of on-time submissions in the cohort"
    )


class SubmitPhaseResponse(BaseModel):
    """Schema returned after a phase submission is graded and recorded."""

    submission_id: int = Field(..., description="Recorded submission ID")
    test_id: int = Field(..., description="Test ID")
    phase: Phase = Field(..., description="Submitted phase")
    is_late: bool = Field(
        ..., description="Submitted after the window closed (excluded from ranking)"
    )
    submitted_at: datetime = Field(..., description="Server-side submission time")
    score: ScoreResponse = Field(..., description="Score breakdown")
    rank: RankInfo = Field(..., description="Rank information (reveal gated)")


class ReviewItem(BaseModel):
    """One question in a submission review."""

    question_id: int = Field(..., description="Question ID")
    ordinal: int = Field(..., description="Position within the phase")
    statement: str = Field(..., description="Question text")
    options: Dict[str, Optional[str]] = Field(
        ..., description="Option texts keyed option1..option4"
    )
    selected_option: Optional[str] = Field(None, description="Caller's answer")
    correct_option: str = Field(..., description="Correct option key")
    outcome: str = Field(..., description="correct, incorrect or unattempted")


class ReviewResponse(BaseModel):
    """Answer-by-answer diff of a past submission against the correct keys."""

    submission_id: int = Field(..., description="Reviewed submission ID")
    test_id: int = Field(..., description="Test ID")
    phase: Phase = Field(..., description="Reviewed phase")
    is_late: bool = Field(..., description="Whether the reviewed submission was late")
    submitted_at: datetime = Field(..., description="Submission time")
    score: ScoreResponse = Field(..., description="Score breakdown")
    items: List[ReviewItem] = Field(..., description="Per-question review")


class SubmissionSummary(BaseModel):
    """Schema for a submission in the caller's history."""

    id: int = Field(..., description="Submission ID")
    test_id: int = Field(..., description="Test ID")
    test_title: Optional[str] = Field(None, description="Test title")
    phase: Phase = Field(..., description="Phase")
    net_score: float = Field(..., description="Net score, rounded to 2 decimals")
    correct_count: int = Field(..., description="Correct answers")
    incorrect_count: int = Field(..., description="Incorrect answers")
    unattempted_count: int = Field(..., description="Unattempted questions")
    total_questions: int = Field(..., description="Questions in the phase")
    is_late: bool = Field(..., description="Submitted after the window closed")
    submitted_at: datetime = Field(..., description="Submission time")


class PaginatedSubmissionHistory(BaseModel):
    """Paginated list of the caller's submissions, newest first."""

    results: List[SubmissionSummary] = Field(..., description="Submissions in this page")
    total_count: int = Field(..., description="Total submissions for the caller")
    limit: int = Field(..., description="Page size requested")
    offset: int = Field(..., description="Offset requested")
    has_more: bool = Field(..., description="Whether more results follow")


class FreeSubmitResponse(BaseModel):
    """Schema returned after an anonymous free-test attempt is graded."""

    attempt_id: int = Field(..., description="Recorded anonymous attempt ID")
    test_id: int = Field(..., description="Test ID")
    submitted_at: datetime = Field(..., description="Server-side submission time")
    score: ScoreResponse = Field(..., description="Score breakdown")
