"""Database and pipeline models using Pydantic for validation."""

from decimal import Decimal
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone


# ============ QUESTION ============
class QuestionKey(BaseModel):
    """One scored question of an exam's answer key."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    subject: str
    correct_alternative: str  # A-E
    points: Decimal = Decimal("0")
    competency_met_message: str = ""
    competency_not_met_message: str = ""


# ============ IMPORT INPUT ============
class CandidateImport(BaseModel):
    national_id: str
    last_names: str
    first_names: str
    program_of_application: str
    specialty: Optional[str] = None
    institutional_email: str


class ImportRecord(BaseModel):
    """One raw answer sheet, only built after the record passed validation."""
    candidate: CandidateImport
    answers: List[str]
    exam_date: str


# ============ CANDIDATE ============
class CandidateRecord(BaseModel):
    """Stored candidate; documents written outside the import may lack optional fields."""
    model_config = ConfigDict(extra="ignore")
    candidate_id: str
    national_id: str
    last_names: Optional[str] = None
    first_names: Optional[str] = None
    program_of_application: Optional[str] = None
    specialty: Optional[str] = None
    institutional_email: Optional[str] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None


# ============ GRADING ============
class SubjectMatrixEntry(BaseModel):
    subject: str
    correct_count: int = 0
    incorrect_count: int = 0
    total_questions: int = 0
    points_earned: Decimal = Decimal("0")
    points_possible: Decimal = Decimal("0")

    def to_document(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "total_questions": self.total_questions,
            "points_earned": float(self.points_earned),
            "points_possible": float(self.points_possible),
        }


class SubjectFeedback(BaseModel):
    subject: str
    competencies_met: List[str] = []
    competencies_not_met: List[str] = []


class ScoreBreakdown(BaseModel):
    """Result of scoring one answer sheet against a scoring key."""
    final_score: Decimal
    correct_count: int
    subject_matrix: List[SubjectMatrixEntry] = []
    subject_feedback: List[SubjectFeedback] = []


class GradeRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    grade_id: str
    candidate_id: str
    exam_id: str
    answers: List[str]
    correct_count: int
    final_score: float
    subject_matrix: List[Dict[str, Any]] = []
    subject_feedback: List[Dict[str, Any]] = []
    exam_date: str
    created_at: str
    created_by: str


class GradeCreate(BaseModel):
    """Request body for grading one answer sheet of an existing candidate."""
    candidate_id: str
    answers: List[str]
    exam_date: str


# ============ IMPORT RUN ============
class ProgressEvent(BaseModel):
    current: int
    total: int
    message: str


class ImportResult(BaseModel):
    success: bool = False
    grades_created: int = 0
    candidates_created: int = 0
    candidates_updated: int = 0
    errors: List[str] = []


class QuestionRecord(BaseModel):
    """Stored question document created by a question import."""
    model_config = ConfigDict(extra="ignore")
    question_id: str
    exam_id: str
    subject: str
    topic: str
    area: str
    cognitive_level: str
    competency: str
    competency_met_message: str
    competency_not_met_message: str
    points: float
    correct_alternative: str
    created_at: str
    created_by: str


class QuestionImportResult(BaseModel):
    success: bool = False
    questions_created: int = 0
    question_count: int = 0
    total_points: float = 0
    status: str = "draft"  # draft, ready
    errors: List[str] = []


# ============ IMPORT JOB ============
class ImportJob(BaseModel):
    job_id: str
    exam_id: str
    created_by: str
    total_records: int
    status: str = "processing"  # processing, completed, failed
    progress: Optional[ProgressEvent] = None
    result: Optional[ImportResult] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    error: Optional[str] = None  # unexpected failure message
