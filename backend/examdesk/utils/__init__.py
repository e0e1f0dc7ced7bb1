"""Utility functions for the ExamDesk backend."""

from typing import List

from ..config.settings import settings
from ..models import ImportResult


def summarize_import_result(
    result: ImportResult,
    headline: str = "",
    limit: int = settings.ERROR_PREVIEW_LIMIT,
) -> str:
    """
    Build the short message shown to the operator after an import.

    Successful runs list the counts; failed runs use ``headline``. The first
    ``limit`` errors follow, with a count of the rest.
    """
    if result.success:
        lines: List[str] = [
            "Import completed:",
            f"{result.grades_created} grades created",
            f"{result.candidates_created} new candidates",
            f"{result.candidates_updated} candidates updated",
        ]
    else:
        lines = [headline or "Import failed"]

    if result.errors:
        lines.append("")
        lines.append("First errors:" if len(result.errors) > limit else "Errors:")
        lines.extend(result.errors[:limit])
        remaining = len(result.errors) - limit
        if remaining > 0:
            lines.append(f"... and {remaining} more")

    return "\n".join(lines)

