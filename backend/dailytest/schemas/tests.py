"""
Pydantic schemas for test catalog endpoints.
"""
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dailytest.core.window import WindowState
from dailytest.models import Phase, TestKind


class QuestionResponse(BaseModel):
    """A question as served before submission. Never carries the answer."""

    id: int = Field(..., description="Question ID")
    ordinal: int = Field(..., description="Position within its phase")
    phase: Phase = Field(..., description="Phase the question belongs to")
    statement: str = Field(..., description="Question text")
    options: Dict[str, Optional[str]] = Field(
        ..., description="Option texts keyed option1..option4"
    )


class TodayTestResponse(BaseModel):
    """Schema for today's test as seen by a given caller."""

    test_id: int = Field(..., description="Test ID")
    title: str = Field(..., description="Test title")
    kind: TestKind = Field(..., description="paid or free")
    scheduled_date: date = Field(..., description="Platform-local scheduled date")
    status: WindowState = Field(
        ..., description="Window status (not_started, active, ended)"
    )
    window_start: datetime = Field(
        ..., description="Window opening time (platform timezone)"
    )
    window_end: datetime = Field(
        ..., description="Window closing time (platform timezone)"
    )
    server_time: datetime = Field(
        ..., description="Current server time (platform timezone)"
    )
    question_count: int = Field(..., description="Number of questions in the test")
    has_dual_phase: bool = Field(..., description="Whether the test has a CSAT phase")
    phases: List[Phase] = Field(..., description="Phases offered by the test")
    submitted_phases: List[Phase] = Field(
        default_factory=list,
        description="Phases the caller has already submitted on time",
    )
    rank_reveal_at: datetime = Field(
        ..., description="When ranks for this test become visible"
    )
    questions: List[QuestionResponse] = Field(
        default_factory=list,
        description="Questions (only while the window is active)",
    )
