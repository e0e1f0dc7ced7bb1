"""Exceptions raised by the grade import pipeline."""

from typing import List, Optional

from ..models import ImportResult


class ImportAbortedError(ValueError):
    """
    The import stopped before writing anything.

    Raised for precondition failures (missing exam, wrong question count,
    no operator) and for validation failures. ``result`` is the final
    ImportResult with ``success=False`` and every collected error.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.result = ImportResult(success=False, errors=list(errors) if errors is not None else [message])

    @property
    def errors(self) -> List[str]:
        return self.result.errors


class ExamNotEligibleError(ImportAbortedError):
    """The exam is missing or does not have the required number of questions."""

    def __init__(self, message: str, exam_found: bool = True):
        super().__init__(message)
        self.exam_found = exam_found
