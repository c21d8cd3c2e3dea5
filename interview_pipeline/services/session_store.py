"""
MongoDB persistence for interview sessions, stage results and question sets.

All reads and writes of pipeline state go through this store. Session updates
are conditional on the session ``version`` so stale writers are rejected, and
stage results are upserted on their ``(session_id, stage_order)`` key.
"""

import functools
import logging
from typing import Optional, List, Dict, Any, Iterable
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection
import pymongo
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, ExecutionTimeout, WTimeoutError

from interview_pipeline.core.errors import (
    ActiveSessionExistsError,
    StaleSessionError,
    StoreUnavailableError,
)
from interview_pipeline.models.pipeline import (
    InterviewSession,
    QuestionSet,
    SessionStatus,
    StageResult,
    utcnow,
)
from interview_pipeline.utils.config import get_db_config

logger = logging.getLogger(__name__)

ACTIVE_SESSION_INDEX = "one_active_session_per_candidate"
NO_ID = {"_id": 0}


def _translate_store_errors(func):
    """Turn pymongo connectivity and timeout failures into StoreUnavailableError."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as e:
            logger.error(f"Data store unavailable during {func.__name__}: {e}")
            raise StoreUnavailableError(f"Data store unavailable: {e}") from e
    return wrapper


class MongoPipelineStore:
    """Stores pipeline state in MongoDB collections."""

    def __init__(self, database: AsyncIOMotorDatabase, collection_names: Optional[Dict[str, str]] = None):
        """Initialize the store on an async Motor database."""
        names = collection_names or get_db_config()
        self.db = database
        self.sessions_collection: AsyncIOMotorCollection = database[names["sessions_collection"]]
        self.results_collection: AsyncIOMotorCollection = database[names["stage_results_collection"]]
        self.questions_collection: AsyncIOMotorCollection = database[names["question_sets_collection"]]

    async def ensure_indexes(self):
        """Set up database indexes, including the uniqueness invariants."""
        try:
            await self.sessions_collection.create_index("session_id", unique=True)
            await self.sessions_collection.create_index(
                [("candidate_id", pymongo.ASCENDING)],
                unique=True,
                partialFilterExpression={"status": SessionStatus.IN_PROGRESS.value},
                name=ACTIVE_SESSION_INDEX,
            )
            await self.sessions_collection.create_index([("candidate_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)])

            await self.results_collection.create_index(
                [("session_id", pymongo.ASCENDING), ("stage_order", pymongo.ASCENDING)], unique=True
            )
            await self.questions_collection.create_index(
                [("session_id", pymongo.ASCENDING), ("stage_order", pymongo.ASCENDING)], unique=True
            )
            logger.info("Pipeline database indexes created successfully")
        except (ConnectionFailure, ExecutionTimeout) as e:
            logger.error(f"Error creating pipeline indexes: {e}")
            raise StoreUnavailableError(f"Data store unavailable: {e}") from e

    # --- sessions ---

    @_translate_store_errors
    async def insert_session(self, session: InterviewSession) -> InterviewSession:
        """Insert a new session; a second in-progress session for a candidate is rejected."""
        try:
            await self.sessions_collection.insert_one(session.model_dump())
        except DuplicateKeyError as e:
            raise ActiveSessionExistsError(session.candidate_id) from e
        return session

    @_translate_store_errors
    async def get_session(self, session_id: str) -> Optional[InterviewSession]:
        document = await self.sessions_collection.find_one({"session_id": session_id}, NO_ID)
        if document:
            return InterviewSession(**document)
        return None

    @_translate_store_errors
    async def find_active_session(self, candidate_id: str) -> Optional[InterviewSession]:
        """Most recently created in-progress session of a candidate."""
        document = await self.sessions_collection.find_one(
            {"candidate_id": candidate_id, "status": SessionStatus.IN_PROGRESS.value},
            NO_ID,
            sort=[("created_at", pymongo.DESCENDING)],
        )
        if document:
            return InterviewSession(**document)
        return None

    @_translate_store_errors
    async def list_sessions(self, candidate_id: str, statuses: Iterable[str], limit: int) -> List[InterviewSession]:
        """Sessions of a candidate with one of ``statuses``, newest first."""
        cursor = self.sessions_collection.find(
            {"candidate_id": candidate_id, "status": {"$in": list(statuses)}},
            NO_ID,
        ).sort("created_at", pymongo.DESCENDING).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [InterviewSession(**document) for document in documents]

    @_translate_store_errors
    async def update_session(self, session_id: str, expected_version: int, changes: Dict[str, Any]) -> InterviewSession:
        """
        Apply ``changes`` if the stored version is still ``expected_version``.

        The version is incremented with every successful update.

        Raises:
            StaleSessionError: when the session changed since it was read
        """
        update = dict(changes)
        update["updated_at"] = utcnow()
        document = await self.sessions_collection.find_one_and_update(
            {"session_id": session_id, "version": expected_version},
            {"$set": update, "$inc": {"version": 1}},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise StaleSessionError(session_id, expected_version)
        return InterviewSession(**document)

    # --- stage results ---

    @_translate_store_errors
    async def get_stage_result(self, session_id: str, stage_order: int) -> Optional[StageResult]:
        document = await self.results_collection.find_one(
            {"session_id": session_id, "stage_order": stage_order}, NO_ID
        )
        if document:
            return StageResult(**document)
        return None

    @_translate_store_errors
    async def list_stage_results(self, session_id: str) -> List[StageResult]:
        """Stage results of a session sorted by stage order."""
        cursor = self.results_collection.find({"session_id": session_id}, NO_ID).sort("stage_order", pymongo.ASCENDING)
        documents = await cursor.to_list(length=None)
        return [StageResult(**document) for document in documents]

    @_translate_store_errors
    async def upsert_stage_result(self, result: StageResult) -> StageResult:
        """Insert or overwrite the result for ``(session_id, stage_order)``."""
        document = result.model_dump(exclude={"created_at"})
        await self.results_collection.update_one(
            {"session_id": result.session_id, "stage_order": result.stage_order},
            {"$set": document, "$setOnInsert": {"created_at": result.created_at}},
            upsert=True,
        )
        logger.debug(f"Upserted stage {result.stage_order} result for session {result.session_id}")
        return result

    @_translate_store_errors
    async def delete_stage_result(self, session_id: str, stage_order: int) -> bool:
        outcome = await self.results_collection.delete_one({"session_id": session_id, "stage_order": stage_order})
        return outcome.deleted_count > 0

    # --- question sets ---

    @_translate_store_errors
    async def save_question_set(self, question_set: QuestionSet) -> QuestionSet:
        await self.questions_collection.replace_one(
            {"session_id": question_set.session_id, "stage_order": question_set.stage_order},
            question_set.model_dump(),
            upsert=True,
        )
        return question_set

    @_translate_store_errors
    async def get_question_set(self, session_id: str, stage_order: int) -> Optional[QuestionSet]:
        document = await self.questions_collection.find_one(
            {"session_id": session_id, "stage_order": stage_order}, NO_ID
        )
        if document:
            return QuestionSet(**document)
        return None
