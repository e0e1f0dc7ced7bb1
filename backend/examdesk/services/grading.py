"""
Grading service - scores answer sheets and builds grade documents.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from ..models import GradeRecord, ScoreBreakdown
from .errors import ExamNotEligibleError
from .scoring import ScoreCalculator, to_stored_number
from .scoring_key import load_scoring_key
from .validation import RecordValidator, parse_exam_date

logger = logging.getLogger(__name__)


def new_grade_id() -> str:
    return f"grade_{uuid.uuid4().hex[:12]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_exam_date(value: str) -> str:
    """Return the exam date as an ISO 8601 UTC timestamp (naive dates are taken as UTC)."""
    parsed = parse_exam_date(value)
    if parsed is None:
        raise ValueError(f"Invalid exam date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def build_grade_document(
    candidate_id: str,
    exam_id: str,
    answers: Sequence[str],
    breakdown: ScoreBreakdown,
    exam_date: str,
    created_by: str,
    timestamp: str,
) -> Dict[str, Any]:
    """Build the stored grade document; exact decimals become numbers here."""
    grade = GradeRecord(
        grade_id=new_grade_id(),
        candidate_id=candidate_id,
        exam_id=exam_id,
        answers=list(answers),
        correct_count=breakdown.correct_count,
        final_score=to_stored_number(breakdown.final_score),
        subject_matrix=[entry.to_document() for entry in breakdown.subject_matrix],
        subject_feedback=[fb.model_dump() for fb in breakdown.subject_feedback],
        exam_date=normalize_exam_date(exam_date),
        created_at=timestamp,
        created_by=created_by,
    )
    return grade.model_dump()


class GradingService:
    """Grades a single answer sheet of an existing candidate."""

    def __init__(self, exam_catalog, question_catalog, candidate_store, grade_store):
        self.exam_catalog = exam_catalog
        self.question_catalog = question_catalog
        self.candidate_store = candidate_store
        self.grade_store = grade_store
        self.calculator = ScoreCalculator()
        self.validator = RecordValidator()

    async def grade_answer_sheet(
        self,
        exam_id: str,
        candidate_id: str,
        answers: List[str],
        exam_date: str,
        created_by: str,
    ) -> Dict[str, Any]:
        """
        Score one answer sheet and store the grade.

        Returns:
            {"success": True, "grade": {...}} or {"success": False, "error": "...",
            "not_found": bool}
        """
        errors = self.validator.validate_answers(answers, row=1)
        if parse_exam_date(exam_date) is None:
            errors.append("Row 1: exam date is not a valid date")
        if errors:
            return {"success": False, "error": "; ".join(errors), "not_found": False}

        candidate = await self.candidate_store.get(candidate_id)
        if not candidate:
            return {"success": False, "error": "Candidate not found", "not_found": True}

        try:
            key = await load_scoring_key(self.exam_catalog, self.question_catalog, exam_id)
        except ExamNotEligibleError as e:
            return {"success": False, "error": str(e), "not_found": not e.exam_found}

        breakdown = self.calculator.compute(answers, key)
        document = build_grade_document(
            candidate_id=candidate_id,
            exam_id=exam_id,
            answers=answers,
            breakdown=breakdown,
            exam_date=exam_date,
            created_by=created_by,
            timestamp=utc_now_iso(),
        )
        await self.grade_store.insert(document)

        logger.info(
            f"✓ Graded candidate {candidate_id} on exam {exam_id}: "
            f"{breakdown.final_score} ({breakdown.correct_count} correct)"
        )
        return {"success": True, "grade": document}
