"""
Grade import service - coordinates the bulk grading import.

FLOW:
1. Load the exam's scoring key (exam must exist and have 80 questions)
2. Validate every record; any error aborts the run before writing
3. Look up existing candidates by national ID (sub-groups, concurrently)
4. For each record:
   a. Resolve the candidate (create or update, deduplicated in-run)
   b. Compute the score and subject breakdown
   c. Queue the candidate write and the grade into a write unit
5. Commit all write units, then aggregate the result from committed units
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel

from ..config.settings import settings
from ..models import CandidateRecord, ImportRecord, ImportResult, ProgressEvent
from .batch_writer import CANDIDATES, GRADES, BatchWriter, WriteOperation, WriteUnit
from .candidates import CandidateResolver, lookup_chunks
from .errors import ExamNotEligibleError, ImportAbortedError
from .grading import build_grade_document, utc_now_iso
from .scoring import ScoreCalculator
from .scoring_key import ScoringKey, load_scoring_key
from .validation import RecordValidator

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Any]


class ImportState(str, Enum):
    IDLE = "idle"
    LOADING_KEY = "loading_key"
    VALIDATING = "validating"
    RESOLVING_CANDIDATES = "resolving_candidates"
    PROCESSING_RECORDS = "processing_records"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class _ImportRun:
    """State of one import invocation."""

    def __init__(self, exam_id: str, total: int, sink: Optional[ProgressSink]):
        self.exam_id = exam_id
        self.total = total
        self.sink = sink
        self.state = ImportState.IDLE
        self.processed = 0
        self.result = ImportResult()

    async def emit(self, current: int, message: str, total: Optional[int] = None) -> None:
        if self.sink is None:
            return
        event = ProgressEvent(current=current, total=self.total if total is None else total, message=message)
        try:
            outcome = self.sink(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Progress is an observation channel; a broken sink must not change the import
            logger.warning(f"Progress sink failed for exam {self.exam_id}: {e}")

    def abort(self, error: ImportAbortedError) -> ImportAbortedError:
        self.state = ImportState.FAILED
        self.result = error.result
        logger.error(f"❌ Import for exam {self.exam_id} aborted: {error} ({len(error.errors)} error(s))")
        return error


class GradeImportService:
    """Runs bulk grade imports for one exam at a time per call."""

    def __init__(
        self,
        exam_catalog,
        question_catalog,
        candidate_store,
        unit_writer,
        batch_size: int = settings.WRITE_BATCH_SIZE,
        validation_chunk_size: int = settings.VALIDATION_CHUNK_SIZE,
        lookup_chunk_size: int = settings.CANDIDATE_LOOKUP_CHUNK_SIZE,
        progress_every: int = settings.PROGRESS_EVERY,
        chunk_yield_seconds: float = settings.CHUNK_YIELD_SECONDS,
        validator: Optional[RecordValidator] = None,
    ):
        self.exam_catalog = exam_catalog
        self.question_catalog = question_catalog
        self.candidate_store = candidate_store
        self.unit_writer = unit_writer
        self.batch_size = batch_size
        self.validation_chunk_size = validation_chunk_size
        self.lookup_chunk_size = lookup_chunk_size
        self.progress_every = progress_every
        self.chunk_yield_seconds = chunk_yield_seconds
        self.validator = validator or RecordValidator()
        self.calculator = ScoreCalculator()

    @classmethod
    def from_database(cls, db, **kwargs) -> "GradeImportService":
        """Build the service on top of a motor database."""
        from ..store import (
            MongoCandidateStore,
            MongoExamCatalog,
            MongoQuestionCatalog,
            MongoUnitWriter,
        )

        return cls(
            exam_catalog=MongoExamCatalog(db),
            question_catalog=MongoQuestionCatalog(db),
            candidate_store=MongoCandidateStore(db),
            unit_writer=MongoUnitWriter(db, use_transactions=settings.MONGODB_TRANSACTIONS),
            **kwargs,
        )

    async def run_import(
        self,
        exam_id: str,
        records: Sequence[Any],
        created_by: str,
        on_progress: Optional[ProgressSink] = None,
    ) -> ImportResult:
        """
        Import a batch of answer sheets for an exam.

        Args:
            exam_id: Exam the answer sheets belong to
            records: Raw records (mappings or ImportRecord instances)
            created_by: Operator e-mail stamped on created documents
            on_progress: Optional sink receiving ProgressEvent objects; may be
                a coroutine function

        Returns:
            ImportResult with success=True once the commit phase ran. Per-record
            and per-batch failures are listed in ``errors``.

        Raises:
            ImportAbortedError: precondition or validation failure; nothing
                was written
        """
        records = [r.model_dump() if isinstance(r, BaseModel) else r for r in records]
        run = _ImportRun(exam_id, len(records), on_progress)
        logger.info(f"🚀 Import started for exam {exam_id}: {len(records)} record(s)")

        if not created_by:
            raise run.abort(ImportAbortedError("User not authenticated"))
        if not records:
            raise run.abort(ImportAbortedError("The import contains no grades"))

        run.state = ImportState.LOADING_KEY
        await run.emit(0, "Loading exam scoring key...")
        try:
            key = await load_scoring_key(self.exam_catalog, self.question_catalog, exam_id)
        except ExamNotEligibleError as e:
            raise run.abort(e)

        run.state = ImportState.VALIDATING
        await run.emit(0, "Validating records...")
        errors = await self._validate_all(records, run)
        if errors:
            raise run.abort(ImportAbortedError(f"Validation errors found: {len(errors)}", errors))

        run.state = ImportState.RESOLVING_CANDIDATES
        resolver = await self._resolve_candidates(records, run)

        run.state = ImportState.PROCESSING_RECORDS
        await run.emit(0, "Processing records...")
        writer = await self._build_units(records, key, resolver, created_by, run)

        run.state = ImportState.COMMITTING
        await self._commit(writer, run)

        run.result.success = True
        run.state = ImportState.DONE
        result = run.result
        logger.info(
            f"✅ Import for exam {exam_id} finished: {result.grades_created} grade(s), "
            f"{result.candidates_created} candidate(s) created, "
            f"{result.candidates_updated} updated, {len(result.errors)} error(s)"
        )
        return result

    # ============ VALIDATION ============

    async def _validate_all(self, records: List[Any], run: _ImportRun) -> List[str]:
        errors: List[str] = []
        size = self.validation_chunk_size
        for start in range(0, len(records), size):
            for offset, record in enumerate(records[start:start + size]):
                errors.extend(self.validator.validate(record, start + offset + 1))
            done = min(start + size, len(records))
            await run.emit(done, f"Validating records... ({done}/{len(records)})")
            await self._pause()
        return errors

    # ============ CANDIDATES ============

    async def _resolve_candidates(self, records: List[Any], run: _ImportRun) -> CandidateResolver:
        national_ids = [r["candidate"]["national_id"] for r in records]
        chunks = lookup_chunks(national_ids, self.lookup_chunk_size)
        distinct = sum(len(chunk) for chunk in chunks)
        await run.emit(0, "Looking up existing candidates...", total=distinct)

        looked_up = 0

        async def _fetch(chunk: List[str]) -> List[CandidateRecord]:
            nonlocal looked_up
            found = await self.candidate_store.find_by_national_ids(chunk)
            looked_up += len(chunk)
            await run.emit(
                looked_up,
                f"Looking up existing candidates... ({looked_up}/{distinct})",
                total=distinct,
            )
            return found

        existing: List[CandidateRecord] = []
        for found in await asyncio.gather(*(_fetch(chunk) for chunk in chunks)):
            existing.extend(found)

        resolver = CandidateResolver(existing)
        plan = resolver.plan(national_ids)
        to_update = sum(1 for action, _ in plan.values() if action == "update")
        logger.info(
            f"Exam {run.exam_id}: {len(plan)} distinct candidate(s), "
            f"{to_update} already registered, {len(plan) - to_update} new"
        )
        return resolver

    # ============ RECORD PROCESSING ============

    async def _build_units(
        self,
        records: List[Any],
        key: ScoringKey,
        resolver: CandidateResolver,
        created_by: str,
        run: _ImportRun,
    ) -> BatchWriter:
        writer = BatchWriter(max_operations=self.batch_size)
        processed = 0

        for index, raw in enumerate(records, start=1):
            try:
                record = ImportRecord.model_validate(raw)
                breakdown = self.calculator.compute(record.answers, key)
                timestamp = utc_now_iso()
                resolution = resolver.apply(record.candidate, created_by, timestamp)
                grade = build_grade_document(
                    candidate_id=resolution.candidate_id,
                    exam_id=run.exam_id,
                    answers=record.answers,
                    breakdown=breakdown,
                    exam_date=record.exam_date,
                    created_by=created_by,
                    timestamp=timestamp,
                )
                writer.add_group([
                    resolution.operation,
                    WriteOperation("create", GRADES, grade["grade_id"], grade),
                ])
                processed += 1
                if processed % self.progress_every == 0:
                    await run.emit(processed, f"Processing... ({processed}/{run.total})")
            except Exception as e:
                national_id = raw.get("candidate", {}).get("national_id")
                message = f"Error processing grade for national ID {national_id}: {e}"
                logger.error(message, exc_info=True)
                run.result.errors.append(message)

            if index % self.validation_chunk_size == 0:
                await self._pause()

        run.processed = processed
        return writer

    # ============ COMMIT ============

    async def _commit(self, writer: BatchWriter, run: _ImportRun) -> None:
        processed = run.processed
        await run.emit(processed, "Executing write operations...")

        async def _on_committed(unit: WriteUnit, total: int) -> None:
            await run.emit(processed, f"Executing batch {unit.ordinal}/{total}...")

        outcomes = await writer.commit_all(self.unit_writer.commit, on_committed=_on_committed)

        result = run.result
        for outcome in outcomes:
            unit = outcome.unit
            if outcome.committed:
                result.candidates_created += unit.count("create", CANDIDATES)
                result.candidates_updated += unit.count("update", CANDIDATES)
                result.grades_created += unit.count("create", GRADES)
            else:
                result.errors.append(f"Error committing batch {unit.ordinal}: {outcome.error}")

    async def _pause(self) -> None:
        await asyncio.sleep(self.chunk_yield_seconds)
