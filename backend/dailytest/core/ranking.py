"""
Ranking engine for test cohorts.

Phase rank
----------
Within the on-time cohort of a (test, phase), submission S is ranked

    rank(S) = 1 + |{T : T.score > S.score}|
                + |{T : T.score == S.score and T.submitted_at < S.submitted_at}|

Higher score wins and, among equal scores, the earlier submission wins.
Ranks are a strict total order: no two submissions share a rank. If both
score and timestamp are equal, the lower submission id (earlier insert)
wins.

Combined rank
-------------
For dual-phase tests, users with on-time submissions in every required
phase are ranked on the sum of their phase scores. Equal sums are ordered
by completion time, i.e. the later of the user's phase timestamps (earlier
completion wins), then by user id. Users missing a phase are excluded.
Sums are taken over the integer score numerators (thirds of a mark), so
equal totals compare equal regardless of float addition order.

Percentile
----------
    percentile = round(((total - rank) / total) * 100)    (half-up)
"""
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dailytest.core.datetime_utils import ensure_timezone_aware
from dailytest.core.scoring import net_score_from_thirds, score_in_thirds


@dataclass(frozen=True)
class CohortEntry:
    """One on-time submission as seen by the ranking engine."""

    submission_id: int
    user_id: str
    net_score: float
    submitted_at: datetime


@dataclass(frozen=True)
class CombinedEntry:
    """A user's summed score across all required phases."""

    user_id: str
    score_thirds: int
    completed_at: datetime
    phase_scores: Dict[str, float] = field(default_factory=dict)

    @property
    def combined_score(self) -> float:
        return net_score_from_thirds(self.score_thirds)


@dataclass(frozen=True)
class Standing:
    """A ranked position in a cohort."""

    user_id: str
    score: float
    rank: int
    percentile: int
    total_participants: int
    submitted_at: Optional[datetime] = None


def phase_sort_key(entry: CohortEntry) -> Tuple[float, datetime, int]:
    """Sort key placing better phase submissions first."""
    return (
        -entry.net_score,
        ensure_timezone_aware(entry.submitted_at),
        entry.submission_id,
    )


def combined_sort_key(entry: CombinedEntry) -> Tuple[int, datetime, str]:
    """Sort key placing better combined entries first."""
    return (
        -entry.score_thirds,
        ensure_timezone_aware(entry.completed_at),
        entry.user_id,
    )


def calculate_percentile(rank: int, total: int) -> int:
    """
    Convert a rank into a percentile (share of the cohort ranked below).

    Args:
        rank: 1-based rank
        total: Cohort size

    Returns:
        Integer percentile in [0, 100)

    Raises:
        ValueError: If total is not positive or rank is out of range
    """
    if total <= 0:
        raise ValueError("cohort must not be empty")
    if not 1 <= rank <= total:
        raise ValueError(f"rank {rank} outside cohort of {total}")
    return math.floor((total - rank) / total * 100 + 0.5)


def compute_rank(entry: CohortEntry, cohort: Iterable[CohortEntry]) -> int:
    """
    Rank a single submission against a cohort by counting who beats it.

    ``entry`` may or may not be a member of ``cohort``; it never counts
    against itself.
    """
    key = phase_sort_key(entry)
    return 1 + sum(
        1
        for other in cohort
        if other.submission_id != entry.submission_id and phase_sort_key(other) < key
    )


def rank_cohort(entries: Iterable[CohortEntry]) -> List[Standing]:
    """
    Rank every member of a phase cohort.

    Returns:
        Standings ordered best first with ranks 1..n
    """
    ordered = sorted(entries, key=phase_sort_key)
    total = len(ordered)
    return [
        Standing(
            user_id=entry.user_id,
            score=entry.net_score,
            rank=position,
            percentile=calculate_percentile(position, total),
            total_participants=total,
            submitted_at=entry.submitted_at,
        )
        for position, entry in enumerate(ordered, start=1)
    ]


def build_combined_cohort(
    entries_by_phase: Mapping[str, Iterable[CohortEntry]],
    required_phases: Sequence[str],
) -> List[CombinedEntry]:
    """
    Group phase submissions by user and sum the scores.

    Args:
        entries_by_phase: On-time cohort entries keyed by phase
        required_phases: Phases a user must have completed to be included

    Returns:
        One CombinedEntry per user who completed every required phase
    """
    by_user: Dict[str, Dict[str, CohortEntry]] = defaultdict(dict)
    for phase in required_phases:
        for entry in entries_by_phase.get(phase, ()):
            by_user[entry.user_id][phase] = entry

    combined: List[CombinedEntry] = []
    for user_id, phases in by_user.items():
        if len(phases) != len(required_phases):
            continue
        combined.append(
            CombinedEntry(
                user_id=user_id,
                score_thirds=sum(
                    score_in_thirds(e.net_score) for e in phases.values()
                ),
                completed_at=max(
                    ensure_timezone_aware(e.submitted_at) for e in phases.values()
                ),
                phase_scores={phase: e.net_score for phase, e in phases.items()},
            )
        )
    return combined


def rank_combined(entries: Iterable[CombinedEntry]) -> List[Standing]:
    """Rank combined entries best first with ranks 1..n."""
    ordered = sorted(entries, key=combined_sort_key)
    total = len(ordered)
    return [
        Standing(
            user_id=entry.user_id,
            score=entry.combined_score,
            rank=position,
            percentile=calculate_percentile(position, total),
            total_participants=total,
            submitted_at=entry.completed_at,
        )
        for position, entry in enumerate(ordered, start=1)
    ]


def find_standing(standings: Iterable[Standing], user_id: str) -> Optional[Standing]:
    """Return the standing for ``user_id`` or None if absent."""
    for standing in standings:
        if standing.user_id == user_id:
            return standing
    return None
