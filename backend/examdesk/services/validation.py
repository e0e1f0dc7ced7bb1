"""
Record validation for grade imports.

Every rule is evaluated for every record so the operator receives the full
list of problems in one pass.
"""

import re
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

from ..config.settings import settings

NATIONAL_ID_PATTERN = re.compile(r"[0-9]{8,10}")

# YYYY-MM-DD, optionally followed by T or a space and HH:MM[:SS[.f]] with
# 1-6 fraction digits and an optional Z or +HH:MM offset
EXAM_DATE_PATTERN = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<time>\d{2}:\d{2}(?::\d{2})?)(?:\.(?P<fraction>\d{1,6}))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})?)?"
)


def parse_exam_date(value: Any) -> Optional[datetime]:
    """
    Parse an exam date. Returns None when invalid.

    Only the formats of EXAM_DATE_PATTERN are accepted, whatever the
    interpreter's fromisoformat would allow.
    """
    if not isinstance(value, str):
        return None
    match = EXAM_DATE_PATTERN.fullmatch(value.strip())
    if not match:
        return None

    text = match["date"]
    if match["time"]:
        text += "T" + match["time"]
        if match["fraction"]:
            if match["time"].count(":") == 1:
                return None
            text += "." + match["fraction"].ljust(6, "0")
        offset = match["offset"]
        if offset:
            text += "+00:00" if offset == "Z" else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class RecordValidator:
    """Validates one raw import record against structural and domain rules."""

    def __init__(
        self,
        question_count: int = settings.QUESTIONS_PER_EXAM,
        alternatives: Sequence[str] = settings.VALID_ALTERNATIVES,
        email_domain: str = settings.INSTITUTIONAL_EMAIL_DOMAIN,
    ):
        self.question_count = question_count
        self.alternatives = tuple(alternatives)
        self.email_domain = email_domain

    def validate(self, record: Any, row: int) -> List[str]:
        """
        Validate a raw record.

        Args:
            record: Raw mapping as decoded from the upload
            row: 1-based row number used in the messages

        Returns:
            List of error strings, empty when the record is valid
        """
        errors: List[str] = []
        if not isinstance(record, Mapping):
            return [f"Row {row}: record must be an object"]

        candidate = record.get("candidate")
        if not isinstance(candidate, Mapping):
            candidate = {}

        errors.extend(self._validate_candidate(candidate, row))
        errors.extend(self.validate_answers(record.get("answers"), row))

        exam_date = record.get("exam_date")
        if exam_date is None or (isinstance(exam_date, str) and not exam_date.strip()):
            errors.append(f"Row {row}: exam date is required")
        elif parse_exam_date(exam_date) is None:
            errors.append(f"Row {row}: exam date is not a valid date")

        return errors

    def _validate_candidate(self, candidate: Mapping, row: int) -> List[str]:
        errors = []

        national_id = candidate.get("national_id")
        if not national_id:
            errors.append(f"Row {row}: candidate national ID is required")
        elif not isinstance(national_id, str) or not NATIONAL_ID_PATTERN.fullmatch(national_id):
            errors.append(f"Row {row}: national ID must have between 8 and 10 digits")

        if not _text(candidate.get("last_names")):
            errors.append(f"Row {row}: candidate last names are required")
        if not _text(candidate.get("first_names")):
            errors.append(f"Row {row}: candidate first names are required")
        if not _text(candidate.get("program_of_application")):
            errors.append(f"Row {row}: program of application is required")

        email = _text(candidate.get("institutional_email"))
        if not email:
            errors.append(f"Row {row}: institutional email is required")
        elif not email.endswith(self.email_domain):
            errors.append(f"Row {row}: email must end with {self.email_domain}")

        return errors

    def validate_answers(self, answers: Any, row: int) -> List[str]:
        if not isinstance(answers, list):
            return [f"Row {row}: answers must be a list"]
        if len(answers) != self.question_count:
            return [f"Row {row}: must have exactly {self.question_count} answers"]

        choices = ", ".join(self.alternatives[:-1]) + f" or {self.alternatives[-1]}"
        return [
            f"Row {row}, answer {position}: must be {choices}"
            for position, answer in enumerate(answers, start=1)
            if answer not in self.alternatives
        ]
