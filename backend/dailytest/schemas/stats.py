"""
Pydantic schemas for test analytics endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from dailytest.models import Phase


class QuestionAccuracy(BaseModel):
    """Answer distribution for a single question across on-time submissions."""

    question_id: int = Field(..., description="Question ID")
    ordinal: int = Field(..., description="Position within the phase")
    correct: int = Field(..., description="Correct answers")
    incorrect: int = Field(..., description="Incorrect answers")
    unattempted: int = Field(..., description="Unattempted")
    accuracy: Optional[float] = Field(
        None, description="correct / attempted, rounded to 4 decimals"
    )


class PhaseStatsResponse(BaseModel):
    """Aggregate statistics for one phase of an ended test."""

    test_id: int = Field(..., description="Test ID")
    phase: Phase = Field(..., description="Phase")
    on_time_submissions: int = Field(..., description="Ranked submissions")
    late_submissions: int = Field(..., description="Practice submissions")
    mean_score: Optional[float] = Field(None, description="Mean on-time net score")
    max_score: Optional[float] = Field(None, description="Highest on-time net score")
    min_score: Optional[float] = Field(None, description="Lowest on-time net score")
    questions: List[QuestionAccuracy] = Field(
        default_factory=list, description="Per-question accuracy"
    )


class FreeTestStatsResponse(BaseModel):
    """Attempt statistics for a free test."""

    test_id: int = Field(..., description="Test ID")
    attempts: int = Field(..., description="Anonymous attempts recorded")
    average_score: Optional[float] = Field(None, description="Mean score, rounded")
