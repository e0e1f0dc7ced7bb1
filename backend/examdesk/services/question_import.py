"""
Question import service - appends a batch of questions to an exam.

FLOW:
1. Load the exam and its current questions
2. Validate every record; invalid rows are reported and skipped
3. Check the valid rows against the exam: same area, combined points within
   MAX_EXAM_POINTS, combined question count within QUESTIONS_PER_EXAM
4. Write the new questions and the updated exam as one group
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config.settings import settings
from ..models import QuestionImportResult, QuestionKey, QuestionRecord
from .batch_writer import EXAMS, QUESTIONS, BatchWriter, WriteOperation
from .errors import ExamNotEligibleError, ImportAbortedError
from .grading import utc_now_iso
from .scoring import to_stored_number

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    ("subject", "subject"),
    ("topic", "topic"),
    ("cognitive_level", "cognitive level"),
    ("competency", "competency"),
    ("competency_met_message", "competency met message"),
    ("competency_not_met_message", "competency not met message"),
)


def new_question_id(exam_id: str) -> str:
    return f"{exam_id}_q_{uuid.uuid4().hex[:12]}"


def parse_points(value: Any) -> Optional[Decimal]:
    """Exact points of a JSON number, or None when it is not a positive number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    points = Decimal(str(value))
    if not points.is_finite() or points <= 0:
        return None
    return points


class QuestionValidator:
    """Validates one raw question record."""

    def __init__(
        self,
        areas: Sequence[str] = settings.EXAM_AREAS,
        alternatives: Sequence[str] = settings.VALID_ALTERNATIVES,
    ):
        self.areas = tuple(areas)
        self.alternatives = tuple(alternatives)

    @staticmethod
    def _choices(values: Sequence[str]) -> str:
        return ", ".join(values[:-1]) + f" or {values[-1]}"

    def validate(self, record: Any, row: int) -> List[str]:
        if not isinstance(record, Mapping):
            return [f"Row {row}: question must be an object"]

        errors = []
        for field, label in TEXT_FIELDS:
            value = record.get(field)
            if not isinstance(value, str) or not value.strip():
                errors.append(f"Row {row}: {label} is required")

        if record.get("area") not in self.areas:
            errors.append(f"Row {row}: area must be {self._choices(self.areas)}")
        if parse_points(record.get("points")) is None:
            errors.append(f"Row {row}: points must be a number greater than 0")
        if record.get("correct_alternative") not in self.alternatives:
            errors.append(
                f"Row {row}: correct alternative must be {self._choices(self.alternatives)}"
            )
        return errors


class QuestionImportService:
    """Imports questions into an exam's ordered question list."""

    def __init__(
        self,
        exam_catalog,
        question_catalog,
        unit_writer,
        question_count: int = settings.QUESTIONS_PER_EXAM,
        max_points: Decimal = settings.MAX_EXAM_POINTS,
        batch_size: int = settings.WRITE_BATCH_SIZE,
        validator: Optional[QuestionValidator] = None,
    ):
        self.exam_catalog = exam_catalog
        self.question_catalog = question_catalog
        self.unit_writer = unit_writer
        self.question_count = question_count
        self.max_points = max_points
        self.batch_size = batch_size
        self.validator = validator or QuestionValidator()

    @classmethod
    def from_database(cls, db, **kwargs) -> "QuestionImportService":
        """Build the service on top of a motor database."""
        from ..store import MongoExamCatalog, MongoQuestionCatalog, MongoUnitWriter

        return cls(
            exam_catalog=MongoExamCatalog(db),
            question_catalog=MongoQuestionCatalog(db),
            unit_writer=MongoUnitWriter(db, use_transactions=settings.MONGODB_TRANSACTIONS),
            **kwargs,
        )

    async def import_questions(
        self,
        exam_id: str,
        records: Sequence[Any],
        created_by: str,
    ) -> QuestionImportResult:
        """
        Append questions to an exam.

        Returns:
            QuestionImportResult; ``errors`` lists skipped rows. ``success`` is
            False only when the write itself failed.

        Raises:
            ImportAbortedError: precondition failure or an exam-level rule
                broken; nothing was written
            ExamNotEligibleError: the exam does not exist
        """
        logger.info(f"🚀 Question import started for exam {exam_id}: {len(records)} record(s)")
        if not created_by:
            raise ImportAbortedError("User not authenticated")
        if not records:
            raise ImportAbortedError("The import contains no questions")

        exam = await self.exam_catalog.get_exam(exam_id)
        if not exam:
            raise ExamNotEligibleError("Exam not found", exam_found=False)

        existing_ids = list(exam.get("question_ids") or [])
        found = await self.question_catalog.get_questions(existing_ids) if existing_ids else {}
        existing = [found[qid] for qid in existing_ids if qid in found]

        errors: List[str] = []
        valid: List[Mapping] = []
        for row, record in enumerate(records, start=1):
            row_errors = self.validator.validate(record, row)
            if row_errors:
                errors.extend(row_errors)
            else:
                valid.append(record)

        if not valid:
            raise ImportAbortedError(f"Validation errors found: {len(errors)}", errors)

        existing_points = sum((q.points for q in existing), Decimal("0"))
        new_points = sum((parse_points(record["points"]) for record in valid), Decimal("0"))
        self._check_exam_rules(exam, len(existing_ids), valid, existing_points, new_points, errors)

        timestamp = utc_now_iso()
        documents = [self._build_document(exam_id, record, created_by, timestamp) for record in valid]
        question_ids = existing_ids + [doc["question_id"] for doc in documents]
        status = "ready" if len(question_ids) == self.question_count else "draft"
        total_points = existing_points + new_points

        writer = BatchWriter(max_operations=self.batch_size)
        writer.add_group(
            [WriteOperation("create", QUESTIONS, doc["question_id"], doc) for doc in documents]
            + [WriteOperation("update", EXAMS, exam_id, {
                "question_ids": question_ids,
                "subject_matrix": self._subject_matrix(existing, valid),
                "status": status,
            })]
        )
        outcome = (await writer.commit_all(self.unit_writer.commit))[0]

        result = QuestionImportResult(
            question_count=len(existing_ids),
            total_points=to_stored_number(existing_points),
            status=exam.get("status") or "draft",
            errors=errors,
        )
        if not outcome.committed:
            result.errors.append(f"Error committing batch {outcome.unit.ordinal}: {outcome.error}")
            return result

        result.success = True
        result.questions_created = len(documents)
        result.question_count = len(question_ids)
        result.total_points = to_stored_number(total_points)
        result.status = status
        logger.info(
            f"✅ Question import for exam {exam_id} finished: {len(documents)} question(s) added, "
            f"{len(question_ids)}/{self.question_count} total, {total_points:.2f} points, "
            f"{len(errors)} skipped row error(s)"
        )
        return result

    def _check_exam_rules(
        self,
        exam: Dict[str, Any],
        existing_count: int,
        valid: List[Mapping],
        existing_points: Decimal,
        new_points: Decimal,
        errors: List[str],
    ) -> None:
        area = exam.get("area")
        if area and any(record["area"] != area for record in valid):
            message = f'All questions must belong to the exam area "{area}"'
            raise ImportAbortedError(message, errors + [message])

        combined = existing_points + new_points
        if combined > self.max_points:
            message = (
                f"Total points would exceed {self.max_points}. Existing: {existing_points:.2f}, "
                f"New: {new_points:.2f}, Total: {combined:.2f}"
            )
            raise ImportAbortedError(message, errors + [message])

        total_questions = existing_count + len(valid)
        if total_questions > self.question_count:
            message = (
                f"The exam cannot have more than {self.question_count} questions. "
                f"Existing: {existing_count}, New: {len(valid)}, Total: {total_questions}"
            )
            raise ImportAbortedError(message, errors + [message])

    @staticmethod
    def _build_document(exam_id: str, record: Mapping, created_by: str, timestamp: str) -> Dict[str, Any]:
        question = QuestionRecord(
            question_id=new_question_id(exam_id),
            exam_id=exam_id,
            subject=record["subject"].strip(),
            topic=record["topic"].strip(),
            area=record["area"],
            cognitive_level=record["cognitive_level"].strip(),
            competency=record["competency"].strip(),
            competency_met_message=record["competency_met_message"].strip(),
            competency_not_met_message=record["competency_not_met_message"].strip(),
            points=to_stored_number(parse_points(record["points"])),
            correct_alternative=record["correct_alternative"],
            created_at=timestamp,
            created_by=created_by,
        )
        return question.model_dump()

    @staticmethod
    def _subject_matrix(existing: List[QuestionKey], valid: List[Mapping]) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for subject in [q.subject for q in existing] + [r["subject"].strip() for r in valid]:
            counts[subject] = counts.get(subject, 0) + 1
        return [{"subject": subject, "question_count": n} for subject, n in counts.items()]
