"""
Scoring key - the ordered answer key of one exam.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from ..config.settings import settings
from ..models import QuestionKey
from .errors import ExamNotEligibleError

logger = logging.getLogger(__name__)


class ScoringKey:
    """
    Immutable view of an exam's ordered questions.

    A slot is None when its question could not be loaded; such positions
    score zero and always count as incorrect.
    """

    def __init__(self, exam_id: str, slots: Sequence[Optional[QuestionKey]]):
        self.exam_id = exam_id
        self._slots = tuple(slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, position: int) -> Optional[QuestionKey]:
        return self._slots[position]

    def __iter__(self) -> Iterator[Optional[QuestionKey]]:
        return iter(self._slots)

    @property
    def missing_positions(self) -> List[int]:
        """1-based positions with no question."""
        return [i for i, slot in enumerate(self._slots, start=1) if slot is None]


async def load_scoring_key(
    exam_catalog,
    question_catalog,
    exam_id: str,
    question_count: int = settings.QUESTIONS_PER_EXAM,
) -> ScoringKey:
    """
    Load the scoring key of an exam.

    Raises:
        ExamNotEligibleError: exam missing or question count differs from
            ``question_count``
    """
    exam = await exam_catalog.get_exam(exam_id)
    if not exam:
        raise ExamNotEligibleError("Exam not found", exam_found=False)

    question_ids = exam.get("question_ids") or []
    if len(question_ids) != question_count:
        raise ExamNotEligibleError(
            f"The exam must have exactly {question_count} questions "
            f"(found {len(question_ids)})"
        )

    questions: Dict[str, QuestionKey] = await question_catalog.get_questions(question_ids)
    key = ScoringKey(exam_id, [questions.get(qid) for qid in question_ids])

    missing = key.missing_positions
    if missing:
        logger.warning(
            f"Exam {exam_id}: {len(missing)} question(s) not found at positions "
            f"{missing}; they will score zero"
        )
    return key
