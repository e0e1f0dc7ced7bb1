import asyncio
import copy
import sys
from decimal import Decimal
from pathlib import Path
from typing import Dict, List

import pytest

# Add backend to sys.path so we can import examdesk
BACKEND_PATH = Path(__file__).resolve().parent.parent / "backend"
if BACKEND_PATH.as_posix() not in sys.path:
    sys.path.insert(0, BACKEND_PATH.as_posix())

from examdesk.models import CandidateRecord, QuestionKey  # noqa: E402
from examdesk.services import GradeImportService  # noqa: E402

EXAM_ID = "exam-2025-biomedicas-01"
OPERATOR = "admin@cepr.unsa.pe"
SUBJECTS = ["Mathematics", "Physics", "Biology", "History"]
ALTERNATIVES = "ABCDE"


def run(coro):
    return asyncio.run(coro)


def make_questions(points="1.25", count: int = 80) -> List[QuestionKey]:
    """80 questions cycling through SUBJECTS with one shared message per subject."""
    return [
        QuestionKey(
            question_id=f"q{i + 1:02d}",
            subject=SUBJECTS[i % len(SUBJECTS)],
            correct_alternative=ALTERNATIVES[i % 5],
            points=Decimal(points),
            competency_met_message=f"{SUBJECTS[i % len(SUBJECTS)]}: competency achieved",
            competency_not_met_message=f"{SUBJECTS[i % len(SUBJECTS)]}: needs reinforcement",
        )
        for i in range(count)
    ]


def make_answers(questions: List[QuestionKey], correct: int = 80) -> List[str]:
    """Answer the first ``correct`` questions correctly and the rest wrongly."""
    answers = []
    for i, question in enumerate(questions):
        if i < correct:
            answers.append(question.correct_alternative)
        else:
            wrong = ALTERNATIVES[(ALTERNATIVES.index(question.correct_alternative) + 1) % 5]
            answers.append(wrong)
    return answers


def make_record(national_id: str = "12345678", answers=None, **candidate_overrides) -> Dict:
    candidate = {
        "national_id": national_id,
        "last_names": "Quispe Mamani",
        "first_names": "Rosa Elena",
        "program_of_application": "Medicine",
        "specialty": "",
        "institutional_email": f"{national_id}@cepr.unsa.pe",
    }
    candidate.update(candidate_overrides)
    return {
        "candidate": candidate,
        "answers": answers if answers is not None else ["A"] * 80,
        "exam_date": "2025-03-16",
    }


def make_question_record(subject: str = "Biology", points=1.25, **overrides) -> Dict:
    record = {
        "subject": subject,
        "topic": "Cell structure",
        "area": "Biomédicas",
        "cognitive_level": "Comprehension",
        "competency": f"Understands {subject.lower()}",
        "competency_met_message": f"{subject}: competency achieved",
        "competency_not_met_message": f"{subject}: needs reinforcement",
        "points": points,
        "correct_alternative": "C",
    }
    record.update(overrides)
    return record


# ============ IN-MEMORY COLLABORATORS ============

class InMemoryExamCatalog:
    def __init__(self, exams: Dict[str, Dict] = None):
        self.exams = exams or {}

    async def get_exam(self, exam_id):
        exam = self.exams.get(exam_id)
        return copy.deepcopy(exam) if exam else None


class InMemoryQuestionCatalog:
    def __init__(self, questions: List[QuestionKey]):
        self.questions = {q.question_id: q for q in questions}

    async def get_question(self, question_id):
        return self.questions.get(question_id)

    async def get_questions(self, question_ids):
        return {qid: self.questions[qid] for qid in question_ids if qid in self.questions}


class InMemoryCandidateStore:
    def __init__(self, candidates: List[CandidateRecord] = ()):
        self.candidates = list(candidates)
        self.lookups: List[List[str]] = []

    async def find_by_national_ids(self, national_ids):
        self.lookups.append(list(national_ids))
        return [c for c in self.candidates if c.national_id in national_ids]

    async def get(self, candidate_id):
        for c in self.candidates:
            if c.candidate_id == candidate_id:
                return c.model_dump()
        return None


class InMemoryGradeStore:
    def __init__(self):
        self.grades = []

    async def insert(self, grade):
        self.grades.append(dict(grade))


class RecordingUnitWriter:
    """Transactional writer double; units whose ordinal is in ``fail_units`` raise."""

    def __init__(self, fail_units=()):
        self.fail_units = set(fail_units)
        self.committed = []
        self.attempted = []

    async def commit(self, unit):
        self.attempted.append(unit)
        if unit.ordinal in self.fail_units:
            raise RuntimeError("simulated commit failure")
        self.committed.append(unit)

    @property
    def operations(self):
        return [op for unit in self.committed for op in unit.operations]


# ============ FAKE MOTOR DATABASE ============

class FakeCollection:
    """Just enough of a motor collection for route tests."""

    def __init__(self):
        self.docs: List[Dict] = []

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if self._matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


# ============ FIXTURES ============

@pytest.fixture
def questions():
    return make_questions()


@pytest.fixture
def exam_catalog(questions):
    return InMemoryExamCatalog({
        EXAM_ID: {"exam_id": EXAM_ID, "name": "Mock exam 1", "question_ids": [q.question_id for q in questions]}
    })


@pytest.fixture
def question_catalog(questions):
    return InMemoryQuestionCatalog(questions)


@pytest.fixture
def candidate_store():
    return InMemoryCandidateStore()


@pytest.fixture
def unit_writer():
    return RecordingUnitWriter()


@pytest.fixture
def importer(exam_catalog, question_catalog, candidate_store, unit_writer):
    return GradeImportService(
        exam_catalog=exam_catalog,
        question_catalog=question_catalog,
        candidate_store=candidate_store,
        unit_writer=unit_writer,
        chunk_yield_seconds=0,
    )
