"""
Pydantic schemas for request/response validation.
"""
from .tests import QuestionResponse, TodayTestResponse
from .submissions import (
    AnswerItem,
    SubmitPhaseRequest,
    ScoreResponse,
    RankInfo,
    SubmitPhaseResponse,
    ReviewItem,
    ReviewResponse,
    SubmissionSummary,
    PaginatedSubmissionHistory,
    FreeSubmitResponse,
)
from .rankings import (
    PhaseRankResponse,
    CombinedRankResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    GlobalLeaderboardEntry,
    GlobalLeaderboardResponse,
)
from .stats import QuestionAccuracy, PhaseStatsResponse, FreeTestStatsResponse

__all__ = [
    "QuestionResponse",
    "TodayTestResponse",
    "AnswerItem",
    "SubmitPhaseRequest",
    "ScoreResponse",
    "RankInfo",
    "SubmitPhaseResponse",
    "ReviewItem",
    "ReviewResponse",
    "SubmissionSummary",
    "PaginatedSubmissionHistory",
    "FreeSubmitResponse",
    "PhaseRankResponse",
    "CombinedRankResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "GlobalLeaderboardEntry",
    "GlobalLeaderboardResponse",
    "QuestionAccuracy",
    "PhaseStatsResponse",
    "FreeTestStatsResponse",
]
