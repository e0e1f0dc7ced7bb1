"""Store module - MongoDB access for exams, questions, candidates and grades."""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from ..models import CandidateRecord, QuestionKey
from ..services.batch_writer import CANDIDATES, EXAMS, GRADES, QUESTIONS, WriteOperation, WriteUnit

IMPORT_JOBS = "import_jobs"

# Business id field of each written collection
ID_FIELDS = {
    CANDIDATES: "candidate_id",
    GRADES: "grade_id",
    QUESTIONS: "question_id",
    EXAMS: "exam_id",
}


def question_from_document(doc: Dict[str, Any]) -> QuestionKey:
    """Build a QuestionKey; points are converted through str to keep them exact."""
    return QuestionKey(
        question_id=doc["question_id"],
        subject=doc.get("subject", ""),
        correct_alternative=doc.get("correct_alternative", ""),
        points=Decimal(str(doc.get("points") or 0)),
        competency_met_message=doc.get("competency_met_message") or "",
        competency_not_met_message=doc.get("competency_not_met_message") or "",
    )


# ============ CATALOGS ============

class MongoExamCatalog:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[EXAMS]

    async def get_exam(self, exam_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"exam_id": exam_id}, {"_id": 0})


class MongoQuestionCatalog:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[QUESTIONS]

    async def get_question(self, question_id: str) -> Optional[QuestionKey]:
        doc = await self.col.find_one({"question_id": question_id}, {"_id": 0})
        return question_from_document(doc) if doc else None

    async def get_questions(self, question_ids: Sequence[str]) -> Dict[str, QuestionKey]:
        """Fetch many questions in one query. Missing ids are simply absent."""
        docs = await self.col.find(
            {"question_id": {"$in": list(question_ids)}},
            {"_id": 0}
        ).to_list(len(question_ids))
        return {doc["question_id"]: question_from_document(doc) for doc in docs}


# ============ CANDIDATES AND GRADES ============

class MongoCandidateStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[CANDIDATES]

    async def find_by_national_ids(self, national_ids: Sequence[str]) -> List[CandidateRecord]:
        docs = await self.col.find(
            {"national_id": {"$in": list(national_ids)}},
            {"_id": 0}
        ).to_list(len(national_ids))
        return [CandidateRecord.model_validate(doc) for doc in docs]

    async def get(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"candidate_id": candidate_id}, {"_id": 0})


class MongoGradeStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[GRADES]

    async def insert(self, grade: Dict[str, Any]) -> None:
        # insert_one adds _id to the dict it receives
        await self.col.insert_one(dict(grade))


# ============ TRANSACTIONAL WRITER ============

def to_request(op: WriteOperation) -> UpdateOne:
    """
    Translate a proposed write into a pymongo bulk request.

    Creations are upserts keyed by the business id so units committed in any
    order converge on the same documents.
    """
    id_field = ID_FIELDS[op.collection]
    id_filter = {id_field: op.document_id}
    if op.kind == "create":
        # the upsert copies the id from the filter
        document = {k: v for k, v in op.fields.items() if k != id_field}
        return UpdateOne(id_filter, {"$setOnInsert": document}, upsert=True)
    if op.kind == "update":
        if op.defaults:
            return UpdateOne(
                id_filter,
                {"$set": dict(op.fields), "$setOnInsert": {k: v for k, v in op.defaults.items() if k != id_field}},
                upsert=True
            )
        return UpdateOne(id_filter, {"$set": dict(op.fields)})
    raise ValueError(f"Unknown write operation kind: {op.kind}")


class MongoUnitWriter:
    """Commits one write unit as ordered bulk writes, optionally in a transaction."""

    def __init__(self, db: AsyncIOMotorDatabase, use_transactions: bool = False):
        self.db = db
        self.use_transactions = use_transactions

    @staticmethod
    def group_requests(unit: WriteUnit) -> Dict[str, List[UpdateOne]]:
        grouped: Dict[str, List[UpdateOne]] = {}
        for op in unit.operations:
            grouped.setdefault(op.collection, []).append(to_request(op))
        return grouped

    async def commit(self, unit: WriteUnit) -> None:
        grouped = self.group_requests(unit)
        if not self.use_transactions:
            await self._write(grouped)
            return

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                await self._write(grouped, session=session)

    async def _write(self, grouped: Dict[str, List[UpdateOne]], session=None) -> None:
        for collection, requests in grouped.items():
            await self.db[collection].bulk_write(requests, ordered=True, session=session)


# ============ INDEXES ============

async def create_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create database indexes used by imports and lookups."""
    await db[EXAMS].create_index("exam_id", unique=True)
    await db[QUESTIONS].create_index("question_id", unique=True)

    await db[CANDIDATES].create_index("candidate_id", unique=True)
    await db[CANDIDATES].create_index("national_id", unique=True)

    await db[GRADES].create_index("grade_id", unique=True)
    await db[GRADES].create_index("exam_id")
    await db[GRADES].create_index("candidate_id")

    await db[IMPORT_JOBS].create_index("job_id", unique=True)
    await db[IMPORT_JOBS].create_index("exam_id")
