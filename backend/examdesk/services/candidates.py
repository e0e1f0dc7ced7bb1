"""
Candidate resolution for grade imports.

The resolver owns the in-run index of candidates keyed by national ID. The
index starts from the candidates already stored and grows with every
candidate created during the run, so two rows for the same new candidate
produce one creation and one update.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import CandidateImport, CandidateRecord
from .batch_writer import CANDIDATES, WriteOperation


def new_candidate_id() -> str:
    return f"cand_{uuid.uuid4().hex[:12]}"


def mutable_fields(candidate: CandidateImport) -> Dict[str, str]:
    """Candidate fields an import is allowed to overwrite, trimmed."""
    return {
        "last_names": candidate.last_names.strip(),
        "first_names": candidate.first_names.strip(),
        "program_of_application": candidate.program_of_application.strip(),
        "specialty": (candidate.specialty or "").strip(),
        "institutional_email": candidate.institutional_email.strip(),
    }


@dataclass
class _IndexEntry:
    candidate_id: str
    created_in_run: bool
    document: Optional[Dict] = None


@dataclass
class Resolution:
    action: str  # create, update
    candidate_id: str
    operation: WriteOperation


class CandidateResolver:
    """Resolves import rows to candidate ids, proposing creations and updates."""

    def __init__(self, existing: Iterable[CandidateRecord] = ()):
        self.index: Dict[str, _IndexEntry] = {
            c.national_id: _IndexEntry(candidate_id=c.candidate_id, created_in_run=False)
            for c in existing
        }

    def plan(self, national_ids: Iterable[str]) -> Dict[str, Tuple[str, Optional[str]]]:
        """
        Map each distinct national ID to ``("update", candidate_id)`` or
        ``("create", None)`` given the current index.
        """
        plan = {}
        for national_id in dict.fromkeys(national_ids):
            entry = self.index.get(national_id)
            plan[national_id] = ("update", entry.candidate_id) if entry else ("create", None)
        return plan

    def apply(self, candidate: CandidateImport, created_by: str, timestamp: str) -> Resolution:
        """Resolve one row, updating the in-run index when a candidate is created."""
        fields = mutable_fields(candidate)
        entry = self.index.get(candidate.national_id)

        if entry is None:
            candidate_id = new_candidate_id()
            document = {
                "candidate_id": candidate_id,
                "national_id": candidate.national_id,
                **fields,
                "created_at": timestamp,
                "created_by": created_by,
            }
            self.index[candidate.national_id] = _IndexEntry(
                candidate_id=candidate_id, created_in_run=True, document=document
            )
            return Resolution(
                action="create",
                candidate_id=candidate_id,
                operation=WriteOperation("create", CANDIDATES, candidate_id, document),
            )

        defaults = None
        if entry.created_in_run:
            defaults = {k: v for k, v in entry.document.items() if k not in fields}
        return Resolution(
            action="update",
            candidate_id=entry.candidate_id,
            operation=WriteOperation("update", CANDIDATES, entry.candidate_id, fields, defaults),
        )


def lookup_chunks(national_ids: Iterable[str], size: int) -> List[List[str]]:
    """Split distinct national IDs into groups no larger than the store's IN limit."""
    distinct = list(dict.fromkeys(national_ids))
    return [distinct[i:i + size] for i in range(0, len(distinct), size)]
