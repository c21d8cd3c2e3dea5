"""
Session tracker for mock interview sessions.

This module provides functionality for creating interview sessions and
reading their state: the active session of a candidate, the results of a
session, past sessions and the per-stage progress summary.
"""
import uuid
import logging
from typing import List, Optional

from interview_pipeline.core.errors import ActiveSessionExistsError, SessionNotFoundError
from interview_pipeline.core.stage_catalog import StageCatalog
from interview_pipeline.models.pipeline import (
    InterviewSession,
    SessionProgress,
    SessionStatus,
    StageProgress,
    StageResult,
    utcnow,
)
from interview_pipeline.utils.config import get_pipeline_config
from interview_pipeline.utils.constants import COMPLETION_REASON_RESTARTED, MAX_PAST_SESSIONS_LIMIT
from interview_pipeline.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class SessionTracker:
    """Creates interview sessions and answers queries about them."""

    def __init__(self, store, catalog: StageCatalog, candidate_locks: Optional[KeyedLock] = None):
        """
        Initialize the session tracker.

        Args:
            store: Pipeline store (see ``MongoPipelineStore``)
            catalog: Stage catalog sessions are measured against
            candidate_locks: Per-candidate locks guarding session creation
        """
        self.store = store
        self.catalog = catalog
        self.candidate_locks = candidate_locks or KeyedLock("candidate-sessions")

    async def start_session(
        self,
        candidate_id: str,
        candidate_email: Optional[str] = None,
        candidate_name: Optional[str] = None,
    ) -> InterviewSession:
        """
        Create a new in-progress session at stage 1.

        Args:
            candidate_id: Candidate identifier
            candidate_email: Address stage invitations are sent to
            candidate_name: Candidate display name

        Returns:
            The new session

        Raises:
            ActiveSessionExistsError: if the candidate already has a session in progress
        """
        async with self.candidate_locks.hold(candidate_id):
            active = await self.store.find_active_session(candidate_id)
            if active:
                logger.warning(f"Candidate {candidate_id} already has active session {active.session_id}")
                raise ActiveSessionExistsError(candidate_id, active.session_id)
            return await self._create(candidate_id, candidate_email, candidate_name)

    async def restart_session(
        self,
        candidate_id: str,
        candidate_email: Optional[str] = None,
        candidate_name: Optional[str] = None,
    ) -> InterviewSession:
        """
        Fail the candidate's active session (if any) and start a new one.

        Returns:
            The new session
        """
        async with self.candidate_locks.hold(candidate_id):
            active = await self.store.find_active_session(candidate_id)
            if active:
                now = utcnow()
                await self.store.update_session(
                    active.session_id,
                    active.version,
                    {
                        "status": SessionStatus.FAILED.value,
                        "completed_at": now,
                        "completion_reason": COMPLETION_REASON_RESTARTED,
                    },
                )
                logger.info(f"Closed session {active.session_id} of candidate {candidate_id} for restart")
            return await self._create(candidate_id, candidate_email, candidate_name)

    async def _create(self, candidate_id: str, candidate_email: Optional[str], candidate_name: Optional[str]) -> InterviewSession:
        now = utcnow()
        session = InterviewSession(
            session_id=str(uuid.uuid4()),
            candidate_id=candidate_id,
            candidate_email=candidate_email,
            candidate_name=candidate_name,
            status=SessionStatus.IN_PROGRESS,
            current_stage_order=1,
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert_session(session)
        logger.info(f"Created interview session {session.session_id} for candidate {candidate_id}")
        return session

    async def get_session(self, session_id: str) -> InterviewSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def get_active_session(self, candidate_id: str) -> Optional[InterviewSession]:
        """Most recently created in-progress session of the candidate, if any."""
        return await self.store.find_active_session(candidate_id)

    async def get_stage_results(self, session_id: str) -> List[StageResult]:
        """Stage results of a session sorted by stage order."""
        results = await self.store.list_stage_results(session_id)
        return sorted(results, key=lambda result: result.stage_order)

    async def get_past_sessions(self, candidate_id: str, limit: Optional[int] = None) -> List[InterviewSession]:
        """Completed and failed sessions of the candidate, newest first."""
        if limit is None:
            limit = get_pipeline_config()["past_sessions_limit"]
        limit = max(1, min(limit, MAX_PAST_SESSIONS_LIMIT))
        return await self.store.list_sessions(
            candidate_id,
            [SessionStatus.COMPLETED.value, SessionStatus.FAILED.value],
            limit,
        )

    async def get_progress(self, session_id: str) -> SessionProgress:
        """Join every catalog stage with the session's result for it."""
        session = await self.get_session(session_id)
        results = await self.get_stage_results(session_id)
        by_stage_id = {result.stage_id: result for result in results}
        by_order = {result.stage_order: result for result in results}

        stages = []
        for stage in self.catalog.get_stages():
            result = by_stage_id.get(stage.stage_id) or by_order.get(stage.order)
            if result is not None and result.passed:
                state = "passed"
            elif result is not None and (session.is_terminal or stage.order != session.current_stage_order):
                state = "failed"
            elif stage.order == session.current_stage_order and not session.is_terminal:
                state = "current"
            else:
                state = "locked"
            stages.append(StageProgress(stage=stage, state=state, result=result))
        return SessionProgress(session=session, stages=stages)
