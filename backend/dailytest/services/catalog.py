"""
Read-only access to scheduled tests and their questions.

Tests and questions are created by an external admin process; this service
never writes them.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from dailytest.models import OPTION_KEYS, Phase, Question, Test, TestKind

# Phase presentation order
PHASE_ORDER = (Phase.GS, Phase.CSAT)


class TestCatalog:
    """Query helpers over the tests and questions tables."""

    __test__ = False  # Not a pytest test class

    def __init__(self, db: Session):
        self.db = db

    def get_test(self, test_id: int) -> Optional[Test]:
        return self.db.query(Test).filter(Test.id == test_id).first()

    def find_test_by_date_and_kind(
        self, scheduled_date: date, kind: TestKind = TestKind.PAID
    ) -> Optional[Test]:
        """Return the single test scheduled for ``scheduled_date`` of ``kind``."""
        return (
            self.db.query(Test)
            .filter(Test.scheduled_date == scheduled_date, Test.kind == kind)
            .first()
        )

    def find_questions_by_test(
        self, test_id: int, phase: Optional[Phase] = None
    ) -> List[Question]:
        """
        Questions of a test ordered by phase then ordinal.

        Args:
            test_id: Owning test
            phase: Restrict to a single phase when given
        """
        query = self.db.query(Question).filter(Question.test_id == test_id)
        if phase is not None:
            query = query.filter(Question.phase == phase)
        questions = query.order_by(Question.ordinal, Question.id).all()
        return sorted(questions, key=lambda q: PHASE_ORDER.index(q.phase))

    def answer_key(self, test_id: int, phase: Phase) -> Dict[int, str]:
        """Correct option per question id for one phase, in ordinal order."""
        return {
            q.id: q.correct_option
            for q in self.find_questions_by_test(test_id, phase)
        }

    @staticmethod
    def phases_for(test: Test) -> List[Phase]:
        """Phases a test offers: GS only, or GS and CSAT for dual-phase tests."""
        if test.has_dual_phase:
            return list(PHASE_ORDER)
        return [Phase.GS]


def question_to_public(question: Question) -> Dict[str, Any]:
    """
    Serialise a question for a pre-submission read path.

    The correct option is never included.
    """
    options = question.options or {}
    return {
        "id": question.id,
        "ordinal": question.ordinal,
        "phase": question.phase.value,
        "statement": question.statement,
        "options": {key: options.get(key) for key in OPTION_KEYS},
    }
