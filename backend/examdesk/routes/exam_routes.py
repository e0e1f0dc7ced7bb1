"""
Exam grading routes.

Endpoints:
- GET /api/exams/{exam_id}/import-eligibility
- POST /api/exams/{exam_id}/questions/import
- POST /api/exams/{exam_id}/grades
"""

from fastapi import APIRouter, Body, Header, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..models import GradeCreate
from ..services import (
    ExamNotEligibleError,
    GradingService,
    ImportAbortedError,
    QuestionImportService,
)
from ..store import MongoCandidateStore, MongoExamCatalog, MongoGradeStore, MongoQuestionCatalog


def create_exam_routes(
    db: AsyncIOMotorDatabase,
    grading: Optional[GradingService] = None,
    question_importer: Optional[QuestionImportService] = None
) -> APIRouter:
    """Create exam routes with database connection."""

    router = APIRouter(prefix="/api/exams", tags=["exams"])
    exam_catalog = MongoExamCatalog(db)
    grading = grading or GradingService(
        exam_catalog=exam_catalog,
        question_catalog=MongoQuestionCatalog(db),
        candidate_store=MongoCandidateStore(db),
        grade_store=MongoGradeStore(db)
    )
    question_importer = question_importer or QuestionImportService.from_database(db)

    @router.get("/{exam_id}/import-eligibility")
    async def get_import_eligibility(exam_id: str):
        """Report whether grades can be imported for this exam."""
        try:
            exam = await exam_catalog.get_exam(exam_id)
            if not exam:
                raise HTTPException(status_code=404, detail="Exam not found")

            question_count = len(exam.get("question_ids") or [])
            return {
                "exam_id": exam_id,
                "question_count": question_count,
                "required_questions": settings.QUESTIONS_PER_EXAM,
                "eligible": question_count == settings.QUESTIONS_PER_EXAM
            }

        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/{exam_id}/questions/import")
    async def import_questions(
        exam_id: str,
        records: List[Dict[str, Any]] = Body(...),
        x_user_email: Optional[str] = Header(None)
    ):
        """Append a JSON array of questions to the exam."""
        if not x_user_email:
            raise HTTPException(status_code=401, detail="Not authenticated")

        try:
            result = await question_importer.import_questions(
                exam_id=exam_id,
                records=records,
                created_by=x_user_email
            )
            if not result.success:
                raise HTTPException(status_code=500, detail=result.model_dump())
            return result.model_dump()

        except ImportAbortedError as e:
            not_found = isinstance(e, ExamNotEligibleError) and not e.exam_found
            raise HTTPException(
                status_code=404 if not_found else 400,
                detail={"message": str(e), "errors": e.errors}
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/{exam_id}/grades")
    async def create_grade(
        exam_id: str,
        grade: GradeCreate,
        x_user_email: Optional[str] = Header(None)
    ):
        """Grade one answer sheet of an existing candidate."""
        if not x_user_email:
            raise HTTPException(status_code=401, detail="Not authenticated")

        try:
            result = await grading.grade_answer_sheet(
                exam_id=exam_id,
                candidate_id=grade.candidate_id,
                answers=grade.answers,
                exam_date=grade.exam_date,
                created_by=x_user_email
            )

            if not result["success"]:
                status_code = 404 if result.get("not_found") else 400
                raise HTTPException(status_code=status_code, detail=result.get("error"))

            return result["grade"]

        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
