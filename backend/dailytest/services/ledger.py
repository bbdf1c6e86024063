"""
Submission ledger: the durable record of graded attempts.

Admission Control Strategy
==========================
At most one on-time and at most one late submission may exist per
(user, test, phase). Two layers enforce this:

1. Application check (``exists``): rejects the common duplicate with a clear
   409 before any grading work happens.
2. Storage constraint (``uq_submissions_attempt``): two concurrent requests
   can both pass the application check. The insert is flushed inside a
   SAVEPOINT and the constraint violation surfaces as an IntegrityError,
   which ``insert_if_absent`` reports as ALREADY_EXISTS. Only the savepoint
   is rolled back, so the caller's transaction stays usable.

No lock is held in the process; replicas share nothing but the database.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from dailytest.core.ranking import CohortEntry
from dailytest.core.scoring import (
    CORRECT_MARKS_THIRDS,
    INCORRECT_PENALTY_THIRDS,
    ScoreBreakdown,
)
from dailytest.models import AnonymousSubmission, Phase, Submission, Test

logger = logging.getLogger(__name__)

# Columns ``query``/``count``/``group_sum`` accept as equality filters
FILTERABLE_FIELDS = ("user_id", "test_id", "phase", "is_late")


class InsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class SubmissionKey:
    """Uniqueness key of a submission."""

    user_id: str
    test_id: int
    phase: Phase
    is_late: bool = False


@dataclass(frozen=True)
class GroupTotal:
    """One row of a grouped sum."""

    key: Any
    sums: Dict[str, float]
    count: int


@dataclass(frozen=True)
class ScoreSummary:
    count: int
    mean: Optional[float]
    maximum: Optional[float]
    minimum: Optional[float]


@dataclass(frozen=True)
class AnonymousSummary:
    attempts: int
    average_score: Optional[float]


class SubmissionLedger:
    """Read and write access to submissions over one database session."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def _filtered(self, filters: Dict[str, Any]) -> Query:
        query = self.db.query(Submission)
        for name, value in filters.items():
            if name not in FILTERABLE_FIELDS:
                raise ValueError(f"Unsupported submission filter: {name}")
            if value is not None:
                query = query.filter(getattr(Submission, name) == value)
        return query

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    def exists(self, key: SubmissionKey) -> bool:
        """Whether a submission with this uniqueness key is recorded."""
        return self.find(key) is not None

    def find(self, key: SubmissionKey) -> Optional[Submission]:
        return (
            self._filtered(
                {
                    "user_id": key.user_id,
                    "test_id": key.test_id,
                    "phase": key.phase,
                    "is_late": key.is_late,
                }
            )
            .order_by(Submission.id)
            .first()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_if_absent(self, record: Submission) -> InsertOutcome:
        """
        Insert ``record`` unless its uniqueness key is already taken.

        The caller owns the enclosing transaction and commits it.

        Returns:
            INSERTED, or ALREADY_EXISTS when the unique constraint rejected it
        """
        try:
            with self.db.begin_nested():
                self.db.add(record)
                self.db.flush()
        except IntegrityError:
            logger.warning(
                f"Duplicate submission rejected by constraint: user {record.user_id} "
                f"test {record.test_id} phase {record.phase.value} "
                f"late={record.is_late}"
            )
            return InsertOutcome.ALREADY_EXISTS
        return InsertOutcome.INSERTED

    def record_anonymous(
        self, test_id: int, breakdown: ScoreBreakdown, submitted_at: datetime
    ) -> AnonymousSubmission:
        """Append a free-tier attempt. Anonymous attempts are never deduplicated."""
        record = AnonymousSubmission(
            test_id=test_id,
            score=breakdown.net_score,
            correct_count=breakdown.correct,
            total_questions=breakdown.total_questions,
            submitted_at=submitted_at,
        )
        self.db.add(record)
        self.db.flush()
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Submission]:
        """Submissions matching ``filters`` with optional ordering and paging."""
        query = self._filtered(filters or {})
        if order_by:
            query = query.order_by(*order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return self._filtered(filters or {}).count()

    def group_sum(
        self,
        filters: Optional[Dict[str, Any]] = None,
        group_key: str = "user_id",
        sum_fields: Sequence[str] = ("net_score", "correct_count"),
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        scheduled_through: Optional[date] = None,
    ) -> List[GroupTotal]:
        """
        Sum ``sum_fields`` per distinct ``group_key``.

        Groups are ordered by ``order_by`` when given, otherwise by the sums
        in ``sum_fields`` order (descending), then by the group key ascending.
        ``scheduled_through`` keeps only submissions to tests scheduled on or
        before that date.
        """
        key_column = getattr(Submission, group_key)
        sum_columns = [
            func.sum(getattr(Submission, name)).label(name) for name in sum_fields
        ]
        query = self.db.query(
            key_column, *sum_columns, func.count(Submission.id).label("n")
        )
        for name, value in (filters or {}).items():
            if name not in FILTERABLE_FIELDS:
                raise ValueError(f"Unsupported submission filter: {name}")
            if value is not None:
                query = query.filter(getattr(Submission, name) == value)
        if scheduled_through is not None:
            query = query.join(Test, Test.id == Submission.test_id).filter(
                Test.scheduled_date <= scheduled_through
            )

        if order_by is None:
            order_by = [column.desc() for column in sum_columns] + [key_column.asc()]
        query = query.group_by(key_column).order_by(*order_by)
        if limit is not None:
            query = query.limit(limit)

        return [
            GroupTotal(
                key=row[0],
                sums={
                    name: row[index + 1] or 0
                    for index, name in enumerate(sum_fields)
                },
                count=row[-1],
            )
            for row in query.all()
        ]

    def score_totals(
        self,
        scheduled_through: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[GroupTotal]:
        """
        Per-user totals of correct and incorrect answers over on-time submissions.

        Users are ordered by the exact net score of those totals, then by
        correct answers, then by user id.
        """
        correct = func.sum(Submission.correct_count)
        incorrect = func.sum(Submission.incorrect_count)
        score_thirds = (
            CORRECT_MARKS_THIRDS * correct - INCORRECT_PENALTY_THIRDS * incorrect
        )
        return self.group_sum(
            {"is_late": False},
            group_key="user_id",
            sum_fields=("correct_count", "incorrect_count"),
            order_by=(score_thirds.desc(), correct.desc(), Submission.user_id.asc()),
            limit=limit,
            scheduled_through=scheduled_through,
        )

    # ------------------------------------------------------------------
    # Cohorts
    # ------------------------------------------------------------------

    @staticmethod
    def cohort_order() -> Tuple[Any, ...]:
        """ORDER BY clause matching the ranking engine's strict order."""
        return (
            Submission.net_score.desc(),
            Submission.submitted_at.asc(),
            Submission.id.asc(),
        )

    def cohort_filters(self, test_id: int, phase: Phase) -> Dict[str, Any]:
        return {"test_id": test_id, "phase": phase, "is_late": False}

    def cohort_size(self, test_id: int, phase: Phase) -> int:
        """Number of on-time submissions for a (test, phase)."""
        return self.count(self.cohort_filters(test_id, phase))

    def count_ahead(self, submission: Submission) -> int:
        """
        Number of on-time submissions ranked strictly ahead of ``submission``.

        Index-backed equivalent of ``ranking.compute_rank(...) - 1``.
        """
        score = submission.net_score
        submitted_at = submission.submitted_at
        return (
            self._filtered(
                self.cohort_filters(submission.test_id, submission.phase)
            )
            .filter(
                or_(
                    Submission.net_score > score,
                    and_(
                        Submission.net_score == score,
                        Submission.submitted_at < submitted_at,
                    ),
                    and_(
                        Submission.net_score == score,
                        Submission.submitted_at == submitted_at,
                        Submission.id < submission.id,
                    ),
                )
            )
            .count()
        )

    def top_of_cohort(
        self, test_id: int, phase: Phase, limit: int
    ) -> List[Submission]:
        """Best ``limit`` on-time submissions in rank order."""
        return self.query(
            self.cohort_filters(test_id, phase),
            order_by=self.cohort_order(),
            limit=limit,
        )

    def cohort_entries(self, test_id: int, phase: Phase) -> List[CohortEntry]:
        """The full on-time cohort as ranking-engine entries."""
        rows = (
            self.db.query(
                Submission.id,
                Submission.user_id,
                Submission.net_score,
                Submission.submitted_at,
            )
            .filter(
                Submission.test_id == test_id,
                Submission.phase == phase,
                Submission.is_late.is_(False),
            )
            .all()
        )
        return [
            CohortEntry(
                submission_id=row.id,
                user_id=row.user_id,
                net_score=row.net_score,
                submitted_at=row.submitted_at,
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def score_summary(
        self, test_id: int, phase: Phase, is_late: bool = False
    ) -> ScoreSummary:
        row = (
            self.db.query(
                func.count(Submission.id),
                func.avg(Submission.net_score),
                func.max(Submission.net_score),
                func.min(Submission.net_score),
            )
            .filter(
                Submission.test_id == test_id,
                Submission.phase == phase,
                Submission.is_late == is_late,
            )
            .one()
        )
        count, mean, maximum, minimum = row
        return ScoreSummary(
            count=count or 0,
            mean=float(mean) if mean is not None else None,
            maximum=maximum,
            minimum=minimum,
        )

    def anonymous_summary(self, test_id: int) -> AnonymousSummary:
        attempts, average = (
            self.db.query(
                func.count(AnonymousSubmission.id),
                func.avg(AnonymousSubmission.score),
            )
            .filter(AnonymousSubmission.test_id == test_id)
            .one()
        )
        return AnonymousSummary(
            attempts=attempts or 0,
            average_score=float(average) if average is not None else None,
        )
