"""
Scoring engine with negative marking.

Each question in the tested phase contributes:
    +2     for a correct answer
    -2/3   for an incorrect answer
     0     for an unattempted question

Answers that reference a question id outside the phase are dropped: they
count as neither attempted nor unattempted.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

# Marking scheme, expressed in thirds so that equal scores compare equal
# as floats (see calculate_net_score)
CORRECT_MARKS_THIRDS = 6
INCORRECT_PENALTY_THIRDS = 2

# Display precision for net scores; stored values keep full precision
SCORE_DISPLAY_DECIMALS = 2


class AnswerOutcome(str, enum.Enum):
    """Per-question grading outcome."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNATTEMPTED = "unattempted"


@dataclass(frozen=True)
class GradedAnswer:
    """Grading result for a single question."""

    question_id: int
    selected_option: Optional[str]
    correct_option: str
    outcome: AnswerOutcome

    @property
    def is_correct(self) -> bool:
        return self.outcome == AnswerOutcome.CORRECT


@dataclass(frozen=True)
class ScoreBreakdown:
    """Counts and net score for one graded submission."""

    correct: int
    incorrect: int
    unattempted: int
    total_questions: int
    net_score: float

    @property
    def attempted(self) -> int:
        return self.correct + self.incorrect

    @property
    def display_score(self) -> float:
        """Net score rounded for presentation."""
        return round(self.net_score, SCORE_DISPLAY_DECIMALS)


def calculate_net_score(correct: int, incorrect: int) -> float:
    """
    Calculate the net score for a phase.

    netScore = 2 * correct - (2/3) * incorrect

    The value is computed as a single division of an integer numerator so
    that two submissions with the same mathematical score always produce
    the same float; otherwise rank ties could be broken by rounding noise.

    Args:
        correct: Number of correct answers
        incorrect: Number of incorrect answers

    Returns:
        Net score at full float precision

    Raises:
        ValueError: If either count is negative
    """
    if correct < 0 or incorrect < 0:
        raise ValueError("answer counts cannot be negative")
    return (CORRECT_MARKS_THIRDS * correct - INCORRECT_PENALTY_THIRDS * incorrect) / 3


def score_in_thirds(net_score: float) -> int:
    """
    Recover the integer numerator of a net score produced by calculate_net_score.

    Sums of phase scores are compared on these integers: adding the floats
    can leave two equal totals one ulp apart.
    """
    return round(net_score * 3)


def net_score_from_thirds(thirds: int) -> float:
    """Inverse of score_in_thirds."""
    return thirds / 3


def _field(answer: Any, name: str) -> Any:
    if isinstance(answer, Mapping):
        return answer.get(name)
    return getattr(answer, name, None)


def _first_answer_by_question(answers: Iterable[Any]) -> Dict[int, Optional[str]]:
    # The first entry for a question wins; later duplicates are ignored
    selected: dict[int, Optional[str]] = {}
    for answer in answers:
        question_id = _field(answer, "question_id")
        if question_id is not None and question_id not in selected:
            selected[question_id] = _field(answer, "selected_option")
    return selected


def grade_answers(
    answers: Iterable[Any], answer_key: Mapping[int, str]
) -> List[GradedAnswer]:
    """
    Grade submitted answers against the correct options of a phase.

    Args:
        answers: Submitted entries with ``question_id`` and ``selected_option``
            (objects or dicts); ``selected_option`` may be None
        answer_key: Correct option per question id, in presentation order

    Returns:
        One GradedAnswer per question in ``answer_key``, in key order
    """
    selected = _first_answer_by_question(answers)

    graded: List[GradedAnswer] = []
    for question_id, correct_option in answer_key.items():
        choice = selected.get(question_id)
        if choice is None:
            outcome = AnswerOutcome.UNATTEMPTED
        elif choice == correct_option:
            outcome = AnswerOutcome.CORRECT
        else:
            outcome = AnswerOutcome.INCORRECT
        graded.append(
            GradedAnswer(
                question_id=question_id,
                selected_option=choice,
                correct_option=correct_option,
                outcome=outcome,
            )
        )
    return graded


def summarize(graded: Iterable[GradedAnswer]) -> ScoreBreakdown:
    """Aggregate graded answers into counts and a net score."""
    correct = incorrect = unattempted = 0
    for item in graded:
        if item.outcome == AnswerOutcome.CORRECT:
            correct += 1
        elif item.outcome == AnswerOutcome.INCORRECT:
            incorrect += 1
        else:
            unattempted += 1

    return ScoreBreakdown(
        correct=correct,
        incorrect=incorrect,
        unattempted=unattempted,
        total_questions=correct + incorrect + unattempted,
        net_score=calculate_net_score(correct, incorrect),
    )


def score_answers(
    answers: Iterable[Any], answer_key: Mapping[int, str]
) -> ScoreBreakdown:
    """Grade and summarize in one step."""
    return summarize(grade_answers(answers, answer_key))


def unknown_question_ids(
    answers: Iterable[Any], answer_key: Mapping[int, str]
) -> Set[int]:
    """Question ids present in the answers but not in the answer key."""
    return {
        question_id
        for question_id in _first_answer_by_question(answers)
        if question_id not in answer_key
    }
