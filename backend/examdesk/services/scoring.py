"""
Score calculation for multiple-choice answer sheets.

All point arithmetic uses decimal.Decimal; values are converted to float
only when a grade document is built for storage.
"""

from decimal import Decimal
from typing import Dict, List, Sequence

from ..models import ScoreBreakdown, SubjectFeedback, SubjectMatrixEntry
from .scoring_key import ScoringKey


class _SubjectTally:
    def __init__(self, subject: str):
        self.subject = subject
        self.correct = 0
        self.total = 0
        self.earned = Decimal("0")
        self.possible = Decimal("0")
        # dicts keep first-seen order while dropping duplicates
        self.met: Dict[str, None] = {}
        self.not_met: Dict[str, None] = {}


class ScoreCalculator:
    """Computes the final score and per-subject breakdown of one answer sheet."""

    def compute(self, answers: Sequence[str], key: ScoringKey) -> ScoreBreakdown:
        total = Decimal("0")
        correct_count = 0
        tallies: Dict[str, _SubjectTally] = {}

        for position, question in enumerate(key):
            if question is None:
                continue

            tally = tallies.get(question.subject)
            if tally is None:
                tally = tallies[question.subject] = _SubjectTally(question.subject)

            points = question.points
            tally.total += 1
            tally.possible += points

            answer = answers[position] if position < len(answers) else None
            if answer == question.correct_alternative:
                correct_count += 1
                total += points
                tally.correct += 1
                tally.earned += points
                if question.competency_met_message:
                    tally.met.setdefault(question.competency_met_message)
            elif question.competency_not_met_message:
                tally.not_met.setdefault(question.competency_not_met_message)

        return ScoreBreakdown(
            final_score=total,
            correct_count=correct_count,
            subject_matrix=self._matrix(tallies.values()),
            subject_feedback=self._feedback(tallies.values()),
        )

    @staticmethod
    def _matrix(tallies) -> List[SubjectMatrixEntry]:
        return [
            SubjectMatrixEntry(
                subject=t.subject,
                correct_count=t.correct,
                incorrect_count=t.total - t.correct,
                total_questions=t.total,
                points_earned=t.earned,
                points_possible=t.possible,
            )
            for t in tallies
        ]

    @staticmethod
    def _feedback(tallies) -> List[SubjectFeedback]:
        return [
            SubjectFeedback(
                subject=t.subject,
                competencies_met=list(t.met),
                competencies_not_met=list(t.not_met),
            )
            for t in tallies
        ]


def to_stored_number(value: Decimal) -> float:
    """Convert an exact decimal to the numeric representation stored in documents."""
    return float(value)
