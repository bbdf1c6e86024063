"""
Pydantic schemas for rank and leaderboard endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dailytest.models import Phase
from dailytest.schemas.submissions import RankInfo


class PhaseRankResponse(BaseModel):
    """The caller's standing in one phase cohort."""

    test_id: int = Field(..., description="Test ID")
    phase: Phase = Field(..., description="Ranked phase")
    is_late: bool = Field(
        ..., description="True when the caller only has a late (unranked) submission"
    )
    net_score: float = Field(..., description="Caller's net score, rounded")
    correct: int = Field(..., description="Correct answers")
    incorrect: int = Field(..., description="Incorrect answers")
    unattempted: int = Field(..., description="Unattempted questions")
    rank: RankInfo = Field(..., description="Rank information (reveal gated)")


class CombinedRankResponse(BaseModel):
    """The caller's standing in the combined (all phases) cohort."""

    test_id: int = Field(..., description="Test ID")
    combined_score: float = Field(..., description="Sum of phase net scores, rounded")
    phase_scores: Dict[Phase, float] = Field(
        ..., description="Rounded net score per phase"
    )
    rank: RankInfo = Field(..., description="Rank information (reveal gated)")


class LeaderboardEntry(BaseModel):
    """One row of a leaderboard."""

    rank: int = Field(..., description="1-based rank")
    user_id: str = Field(..., description="User ID")
    display_name: Optional[str] = Field(None, description="User display name")
    photo_url: Optional[str] = Field(None, description="User photo URL")
    score: float = Field(..., description="Score, rounded to 2 decimals")
    correct: Optional[int] = Field(None, description="Correct answers")
    submitted_at: Optional[datetime] = Field(
        None, description="Submission (or completion) time"
    )


class LeaderboardResponse(BaseModel):
    """Top of a test cohort."""

    test_id: int = Field(..., description="Test ID")
    phase: Optional[Phase] = Field(
        None, description="Phase, or null for the combined leaderboard"
    )
    revealed: bool = Field(..., description="Whether the leaderboard is visible yet")
    reveal_at: datetime = Field(..., description="When the leaderboard becomes visible")
    total_participants: int = Field(
        0, description="Cohort size (0 until revealed)"
    )
    entries: List[LeaderboardEntry] = Field(
        default_factory=list, description="Entries, best first"
    )


class GlobalLeaderboardEntry(BaseModel):
    """One row of the cross-test leaderboard."""

    rank: int = Field(..., description="1-based rank")
    user_id: str = Field(..., description="User ID")
    display_name: Optional[str] = Field(None, description="User display name")
    photo_url: Optional[str] = Field(None, description="User photo URL")
    total_score: float = Field(..., description="Summed net score, rounded")
    total_correct: int = Field(..., description="Summed correct answers")
    submissions: int = Field(..., description="On-time submissions counted")


class GlobalLeaderboardResponse(BaseModel):
    """Cross-test aggregate leaderboard."""

    entries: List[GlobalLeaderboardEntry] = Field(
        ..., description="Entries, best first"
    )
    limit: int = Field(..., description="Page size applied")
