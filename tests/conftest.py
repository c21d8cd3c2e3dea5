"""
Shared fixtures for pipeline tests: an in-memory store, a scripted evaluator
and a recording notification dispatcher.
"""
import asyncio
from collections import deque
from typing import Dict, List, Optional, Tuple

import pytest

from interview_pipeline.core.errors import ActiveSessionExistsError, StaleSessionError, StoreUnavailableError
from interview_pipeline.core.stage_catalog import StageCatalog
from interview_pipeline.core.transition_engine import StageTransitionEngine
from interview_pipeline.models.pipeline import (
    EvaluationResult,
    InterviewSession,
    QuestionSet,
    StageDefinition,
    StageQuestion,
    StageResult,
    StageType,
    utcnow,
)
from interview_pipeline.services.notification_dispatcher import BackgroundNotifier, NotificationDispatcher
from interview_pipeline.services.scoring_evaluator import ScoringEvaluator
from interview_pipeline.services.session_tracker import SessionTracker
from interview_pipeline.utils.locks import KeyedLock

PASSING_SCORES = [70, 70, 80, 60, 65, 75]


class InMemoryPipelineStore:
    """Store with the same contract as MongoPipelineStore, kept in dicts."""

    def __init__(self):
        self.sessions: Dict[str, InterviewSession] = {}
        self.results: Dict[Tuple[str, int], StageResult] = {}
        self.question_sets: Dict[Tuple[str, int], QuestionSet] = {}
        self.failing_result_writes = 0
        self.failing_session_writes = 0
        self.result_writes = 0

    async def insert_session(self, session: InterviewSession) -> InterviewSession:
        await asyncio.sleep(0)
        for existing in self.sessions.values():
            if existing.candidate_id == session.candidate_id and not existing.is_terminal:
                raise ActiveSessionExistsError(session.candidate_id, existing.session_id)
        self.sessions[session.session_id] = session.model_copy(deep=True)
        return session

    async def get_session(self, session_id: str) -> Optional[InterviewSession]:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def find_active_session(self, candidate_id: str) -> Optional[InterviewSession]:
        active = [s for s in self.sessions.values() if s.candidate_id == candidate_id and not s.is_terminal]
        if not active:
            return None
        return max(active, key=lambda s: s.created_at).model_copy(deep=True)

    async def list_sessions(self, candidate_id: str, statuses, limit: int) -> List[InterviewSession]:
        statuses = set(statuses)
        matching = [s for s in self.sessions.values() if s.candidate_id == candidate_id and s.status in statuses]
        matching.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in matching[:limit]]

    async def update_session(self, session_id: str, expected_version: int, changes: Dict) -> InterviewSession:
        await asyncio.sleep(0)
        if self.failing_session_writes:
            self.failing_session_writes -= 1
            raise StoreUnavailableError("Data store unavailable: session write failed")
        current = self.sessions.get(session_id)
        if current is None or current.version != expected_version:
            raise StaleSessionError(session_id, expected_version)
        updated = current.model_copy(update={**changes, "version": current.version + 1, "updated_at": utcnow()})
        self.sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def get_stage_result(self, session_id: str, stage_order: int) -> Optional[StageResult]:
        return self.results.get((session_id, stage_order))

    async def list_stage_results(self, session_id: str) -> List[StageResult]:
        return [result for (sid, _), result in self.results.items() if sid == session_id]

    async def upsert_stage_result(self, result: StageResult) -> StageResult:
        await asyncio.sleep(0)
        if self.failing_result_writes:
            self.failing_result_writes -= 1
            raise StoreUnavailableError("Data store unavailable: result write failed")
        self.results[(result.session_id, result.stage_order)] = result
        self.result_writes += 1
        return result

    async def delete_stage_result(self, session_id: str, stage_order: int) -> bool:
        return self.results.pop((session_id, stage_order), None) is not None

    async def save_question_set(self, question_set: QuestionSet) -> QuestionSet:
        self.question_sets[(question_set.session_id, question_set.stage_order)] = question_set
        return question_set

    async def get_question_set(self, session_id: str, stage_order: int) -> Optional[QuestionSet]:
        return self.question_sets.get((session_id, stage_order))


class FakeEvaluator(ScoringEvaluator):
    """Evaluator returning queued scores, or raising queued exceptions."""

    def __init__(self, default_score: float = 90.0):
        self.default_score = default_score
        self.outcomes = deque()
        self.calls = []

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    async def generate_questions(self, stage, candidate_profile=None):
        return [
            StageQuestion(id=i + 1, question=f"{stage.name} question {i + 1}")
            for i in range(stage.question_count)
        ]

    async def evaluate_answers(self, stage, questions, answers, candidate_profile=None):
        self.calls.append((stage.order, list(answers)))
        await asyncio.sleep(0)
        outcome = self.outcomes.popleft() if self.outcomes else self.default_score
        if isinstance(outcome, Exception):
            raise outcome
        return EvaluationResult(
            overall_score=outcome,
            feedback=f"Scored {outcome}",
            strengths=["Clear answers"],
            improvements=["More examples"],
        )


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records events and optionally fails."""

    def __init__(self, error: Optional[Exception] = None):
        self.events = []
        self.error = error

    async def notify(self, event):
        self.events.append(event)
        if self.error:
            raise self.error


def make_stage(order: int, passing_score: float = 70, **overrides) -> StageDefinition:
    values = {
        "stage_id": f"stage_{order}",
        "name": f"Stage {order}",
        "order": order,
        "description": f"Stage {order} of the interview",
        "question_count": 2,
        "time_per_question": 60,
        "passing_score": passing_score,
        "stage_type": StageType.ASSESSMENT,
    }
    values.update(overrides)
    return StageDefinition(**values)


@pytest.fixture
def catalog():
    return StageCatalog([make_stage(order, score) for order, score in enumerate(PASSING_SCORES, start=1)])


@pytest.fixture
def store():
    return InMemoryPipelineStore()


@pytest.fixture
def evaluator():
    return FakeEvaluator()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def notifier(dispatcher):
    return BackgroundNotifier(dispatcher)


@pytest.fixture
def tracker(store, catalog):
    return SessionTracker(store, catalog, candidate_locks=KeyedLock("test-candidates"))


@pytest.fixture
def engine(store, catalog, evaluator, notifier):
    return StageTransitionEngine(
        store, catalog, evaluator, notifier=notifier, retry_limit=0, app_url="http://localhost:3000"
    )


@pytest.fixture
def retry_engine(store, catalog, evaluator, notifier):
    return StageTransitionEngine(
        store, catalog, evaluator, notifier=notifier, retry_limit=1, app_url="http://localhost:3000"
    )
