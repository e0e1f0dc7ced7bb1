"""Services for validating, scoring and importing exam grades."""

from .errors import ImportAbortedError, ExamNotEligibleError
from .validation import RecordValidator
from .scoring_key import ScoringKey, load_scoring_key
from .scoring import ScoreCalculator
from .candidates import CandidateResolver
from .batch_writer import BatchWriter, WriteOperation, WriteUnit
from .grading import GradingService
from .importer import GradeImportService, ImportState
from .question_import import QuestionImportService, QuestionValidator

__all__ = [
    "ImportAbortedError",
    "ExamNotEligibleError",
    "RecordValidator",
    "ScoringKey",
    "load_scoring_key",
    "ScoreCalculator",
    "CandidateResolver",
    "BatchWriter",
    "WriteOperation",
    "WriteUnit",
    "GradingService",
    "GradeImportService",
    "ImportState",
    "QuestionImportService",
    "QuestionValidator",
]
