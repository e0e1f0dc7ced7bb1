"""
Grade import routes.

Endpoints:
- POST /api/exams/{exam_id}/grades/import
- GET /api/imports/{job_id}/status
"""

from fastapi import APIRouter, Body, Header, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Any, Dict, List, Optional
import logging
import uuid
from datetime import datetime, timezone

from ..models import ImportJob, ProgressEvent
from ..services import ExamNotEligibleError, GradeImportService, ImportAbortedError
from ..utils import summarize_import_result

logger = logging.getLogger(__name__)


def create_import_routes(
    db: AsyncIOMotorDatabase,
    importer: Optional[GradeImportService] = None
) -> APIRouter:
    """Create import routes with database connection."""

    router = APIRouter(tags=["imports"])
    importer = importer or GradeImportService.from_database(db)

    async def finish_job(job_id: str, status: str, **fields):
        await db.import_jobs.update_one(
            {"job_id": job_id},
            {
                "$set": {
                    "status": status,
                    "completed_at": datetime.now(timezone.utc).isoformat(),
                    **fields
                }
            }
        )

    @router.post("/api/exams/{exam_id}/grades/import")
    async def import_grades(
        exam_id: str,
        records: List[Dict[str, Any]] = Body(...),
        x_user_email: Optional[str] = Header(None)
    ):
        """
        Import a JSON array of answer sheets for an exam.

        Creates an import job that tracks progress, runs the import and
        returns the result with a short summary.
        """
        if not x_user_email:
            raise HTTPException(status_code=401, detail="Not authenticated")

        job_id = None
        try:
            job = ImportJob(
                job_id=str(uuid.uuid4()),
                exam_id=exam_id,
                created_by=x_user_email,
                total_records=len(records)
            )
            await db.import_jobs.insert_one(job.model_dump(mode="json"))
            job_id = job.job_id

            async def record_progress(event: ProgressEvent):
                await db.import_jobs.update_one(
                    {"job_id": job_id},
                    {"$set": {"progress": event.model_dump()}}
                )

            try:
                result = await importer.run_import(
                    exam_id=exam_id,
                    records=records,
                    created_by=x_user_email,
                    on_progress=record_progress
                )
            except ImportAbortedError as e:
                await finish_job(job_id, "failed", result=e.result.model_dump())
                not_found = isinstance(e, ExamNotEligibleError) and not e.exam_found
                raise HTTPException(
                    status_code=404 if not_found else 400,
                    detail={
                        "job_id": job_id,
                        "message": str(e),
                        "result": e.result.model_dump(),
                        "summary": summarize_import_result(e.result, headline=str(e))
                    }
                )

            await finish_job(job_id, "completed", result=result.model_dump())

            return {
                "job_id": job_id,
                "status": "completed",
                "exam_id": exam_id,
                "result": result.model_dump(),
                "summary": summarize_import_result(result)
            }

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"❌ Import job {job_id} for exam {exam_id} crashed: {e}", exc_info=True)
            if job_id:
                await finish_job(job_id, "failed", error=str(e))
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/api/imports/{job_id}/status")
    async def get_import_status(job_id: str):
        """Get import job status and latest progress."""
        try:
            job = await db.import_jobs.find_one(
                {"job_id": job_id},
                {"_id": 0}
            )

            if not job:
                raise HTTPException(status_code=404, detail="Import job not found")

            return job

        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
