"""
Stage transition engine for the mock interview pipeline.

States:
    NotStarted -> InProgress(n) -> Passed(n) -> InProgress(n + 1) ... -> Completed
                                -> Failed(n) -> SessionFailed

A submitted stage is graded by the scoring evaluator, ``passed`` is decided
against the stage's inclusive passing score, the stage result is upserted and
the session is advanced, completed or failed. Transitions of one session are
serialised by a per-session lock and guarded by the session version, so a
stale or concurrent submission cannot overwrite a newer decision.
"""
import logging
from typing import Any, Dict, List, Optional

from interview_pipeline.core.errors import (
    PipelineValidationError,
    SessionClosedError,
    SessionNotFoundError,
    StaleSessionError,
    StoreUnavailableError,
    TransientDependencyError,
)
from interview_pipeline.core.stage_catalog import StageCatalog
from interview_pipeline.models.pipeline import (
    EvaluationResult,
    InterviewSession,
    NotificationEventType,
    QuestionSet,
    SessionStatus,
    StageDefinition,
    StageResult,
    StageType,
    TransitionResult,
    utcnow,
)
from interview_pipeline.services.notification_dispatcher import BackgroundNotifier, NotificationEvent
from interview_pipeline.services.scoring_evaluator import ScoringEvaluator
from interview_pipeline.utils.config import get_notification_config, get_pipeline_config
from interview_pipeline.utils.constants import (
    ACKNOWLEDGED_STAGE_SCORE,
    COMPLETED_FEEDBACK,
    COMPLETION_REASON_ALL_STAGES,
    COMPLETION_REASON_STAGE_FAILED,
    FAILED_FEEDBACK,
)
from interview_pipeline.utils.locks import KeyedLock
from interview_pipeline.utils.profiling import async_timed_function

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT_FEEDBACK = {
    StageType.EMAIL_INFO.value: "Interview instructions reviewed successfully.",
    StageType.FEEDBACK.value: "Demo feedback reviewed.",
    StageType.REVIEW.value: "Interview summary reviewed.",
}


class StageTransitionEngine:
    """Decides and persists stage transitions for interview sessions."""

    def __init__(
        self,
        store,
        catalog: StageCatalog,
        evaluator: ScoringEvaluator,
        notifier: Optional[BackgroundNotifier] = None,
        retry_limit: Optional[int] = None,
        session_locks: Optional[KeyedLock] = None,
        app_url: Optional[str] = None,
    ):
        """
        Initialize the transition engine.

        Args:
            store: Pipeline store (see ``MongoPipelineStore``)
            catalog: Stage catalog
            evaluator: Scoring evaluator used to grade assessed stages
            notifier: Fire-and-forget notifier; notifications are skipped when None
            retry_limit: Extra attempts allowed after a failed stage. 0 means a
                single failed stage fails the whole session.
            session_locks: Per-session locks serialising transitions
            app_url: Base URL included in notifications
        """
        self.store = store
        self.catalog = catalog
        self.evaluator = evaluator
        self.notifier = notifier
        self.retry_limit = get_pipeline_config()["retry_limit"] if retry_limit is None else retry_limit
        if self.retry_limit < 0:
            raise ValueError("retry_limit must be >= 0")
        self.session_locks = session_locks or KeyedLock("session-transitions")
        self.app_url = app_url or get_notification_config()["app_url"]

    def get_stages(self) -> List[StageDefinition]:
        return self.catalog.get_stages()

    async def generate_questions(
        self,
        session_id: str,
        stage_order: int,
        candidate_profile: Optional[Dict[str, Any]] = None,
    ) -> QuestionSet:
        """
        Generate and store the questions for the session's current stage.

        Stages that are not graded get an empty question set without calling
        the evaluator.
        """
        stage = self.catalog.get_stage(stage_order)
        async with self.session_locks.hold(session_id):
            session = await self._load_open_session(session_id)
            if stage.order != session.current_stage_order:
                raise PipelineValidationError(
                    f"Stage {stage.order} is not open; session {session_id} is on stage {session.current_stage_order}"
                )

            if not stage.is_assessed:
                return QuestionSet(session_id=session_id, stage_id=stage.stage_id, stage_order=stage.order)

            questions = await self.evaluator.generate_questions(stage, candidate_profile)
            question_set = QuestionSet(
                session_id=session_id,
                stage_id=stage.stage_id,
                stage_order=stage.order,
                questions=questions,
                time_per_question=stage.time_per_question,
            )
            await self.store.save_question_set(question_set)
        logger.info(f"Stored {len(questions)} questions for session {session_id} stage {stage.order}")
        return question_set

    @async_timed_function(log_level=logging.INFO)
    async def advance(
        self,
        session_id: str,
        stage_order: int,
        answers: List[str],
        candidate_profile: Optional[Dict[str, Any]] = None,
        recording_url: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TransitionResult:
        """
        Grade a stage submission and move the session accordingly.

        Args:
            session_id: Interview session ID
            stage_order: Order of the submitted stage
            answers: Answers index-aligned to the stage's questions (empty strings allowed)
            candidate_profile: Candidate profile passed to the evaluator
            recording_url: Recording of the stage attempt
            expected_version: Session version the caller last saw. Defaults to
                the version at the time of the call, so a submission queued
                behind another transition of the same session is rejected.

        Returns:
            TransitionResult describing the decision

        Raises:
            PipelineValidationError: malformed stage order or answers
            SessionNotFoundError: unknown session
            SessionClosedError: session already completed or failed
            StaleSessionError: session changed since ``expected_version``
            TransientDependencyError: evaluator or store unavailable; nothing was written
        """
        stage = self.catalog.get_stage(stage_order)
        if not stage.is_assessed:
            raise PipelineValidationError(f"Stage '{stage.name}' is not graded; acknowledge it instead")
        if not isinstance(answers, (list, tuple)) or not all(isinstance(answer, str) for answer in answers):
            raise PipelineValidationError("Answers must be a list of strings")

        expected_version = await self._observed_version(session_id, expected_version)
        async with self.session_locks.hold(session_id):
            session = await self._load_open_session(session_id, expected_version)
            existing = await self.store.get_stage_result(session_id, stage.order)
            await self._check_stage_open(session, stage)

            question_set = await self.store.get_question_set(session_id, stage.order)
            questions = question_set.questions if question_set else []
            expected_count = len(questions) if questions else stage.question_count
            if len(answers) != expected_count:
                raise PipelineValidationError(
                    f"Stage '{stage.name}' expects {expected_count} answers, got {len(answers)}"
                )

            try:
                evaluation = await self.evaluator.evaluate_answers(stage, questions, list(answers), candidate_profile)
            except TransientDependencyError as e:
                logger.warning(f"Evaluation of session {session_id} stage {stage.order} failed, nothing written: {e}")
                raise

            now = utcnow()
            result = StageResult(
                session_id=session_id,
                stage_id=stage.stage_id,
                stage_name=stage.name,
                stage_order=stage.order,
                ai_score=evaluation.overall_score,
                ai_feedback=evaluation.feedback,
                strengths=evaluation.strengths,
                improvements=evaluation.improvements,
                question_scores=evaluation.question_scores,
                answers={"responses": list(answers)},
                recording_url=recording_url,
                passed=evaluation.overall_score >= stage.passing_score,
                attempts=existing.attempts + 1 if existing else 1,
                completed_at=now,
                created_at=existing.created_at if existing else now,
            )
            return await self._commit(session, stage, result, evaluation)

    async def acknowledge_stage(
        self,
        session_id: str,
        stage_order: int,
        booked_slot: Optional[str] = None,
        note: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TransitionResult:
        """
        Complete a stage that is not graded (instructions, slot booking,
        feedback review, summary review) and move the session on.
        """
        stage = self.catalog.get_stage(stage_order)
        if stage.is_assessed:
            raise PipelineValidationError(f"Stage '{stage.name}' is graded; submit answers instead")
        if stage.requires_slot_booking and not booked_slot:
            raise PipelineValidationError(f"Stage '{stage.name}' requires a booked slot")

        expected_version = await self._observed_version(session_id, expected_version)
        async with self.session_locks.hold(session_id):
            session = await self._load_open_session(session_id, expected_version)
            if stage.order != session.current_stage_order:
                raise PipelineValidationError(
                    f"Stage {stage.order} is not open; session {session_id} is on stage {session.current_stage_order}"
                )
            existing = await self.store.get_stage_result(session_id, stage.order)

            evaluation = await self._acknowledgement_evaluation(session, stage, booked_slot)
            now = utcnow()
            details = {key: value for key, value in (("booked_slot", booked_slot), ("note", note)) if value}
            result = StageResult(
                session_id=session_id,
                stage_id=stage.stage_id,
                stage_name=stage.name,
                stage_order=stage.order,
                ai_score=evaluation.overall_score,
                ai_feedback=evaluation.feedback,
                strengths=evaluation.strengths,
                improvements=evaluation.improvements,
                answers=details,
                passed=evaluation.overall_score >= stage.passing_score,
                attempts=existing.attempts + 1 if existing else 1,
                completed_at=now,
                created_at=existing.created_at if existing else now,
            )
            return await self._commit(session, stage, result, evaluation)

    async def _acknowledgement_evaluation(
        self, session: InterviewSession, stage: StageDefinition, booked_slot: Optional[str]
    ) -> EvaluationResult:
        if stage.stage_type == StageType.FEEDBACK.value:
            # Feedback stages carry the score of the latest graded stage before them
            results = await self.store.list_stage_results(session.session_id)
            graded = [
                result for result in results
                if result.stage_order < stage.order
                and self.catalog.contains(result.stage_order)
                and self.catalog.get_stage(result.stage_order).is_assessed
            ]
            if graded:
                latest = max(graded, key=lambda result: result.stage_order)
                return EvaluationResult(
                    overall_score=latest.ai_score,
                    feedback=ACKNOWLEDGEMENT_FEEDBACK[StageType.FEEDBACK.value],
                    strengths=latest.strengths,
                    improvements=latest.improvements,
                )

        if booked_slot:
            feedback = f"Interview slot booked for {booked_slot}"
        else:
            feedback = ACKNOWLEDGEMENT_FEEDBACK.get(stage.stage_type, f"{stage.name} completed.")
        return EvaluationResult(overall_score=ACKNOWLEDGED_STAGE_SCORE, feedback=feedback)

    async def _observed_version(self, session_id: str, expected_version: Optional[int]) -> Optional[int]:
        """Version a transition is checked against; read before waiting on the session lock."""
        if expected_version is not None:
            return expected_version
        session = await self.store.get_session(session_id)
        return session.version if session else None

    async def _load_open_session(self, session_id: str, expected_version: Optional[int] = None) -> InterviewSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_terminal:
            raise SessionClosedError(session_id, session.status)
        if expected_version is not None and session.version != expected_version:
            raise StaleSessionError(session_id, expected_version)
        return session

    async def _check_stage_open(self, session: InterviewSession, stage: StageDefinition) -> None:
        """
        A graded stage may be submitted when it is the current stage, or
        re-evaluated when it is the previous stage and the current stage has
        no result yet.
        """
        if stage.order == session.current_stage_order:
            return
        if stage.order == session.current_stage_order - 1:
            current_result = await self.store.get_stage_result(session.session_id, session.current_stage_order)
            if current_result is None:
                logger.info(f"Re-evaluating stage {stage.order} of session {session.session_id}")
                return
        raise PipelineValidationError(
            f"Stage {stage.order} is not open; session {session.session_id} is on stage {session.current_stage_order}"
        )

    async def _commit(
        self,
        session: InterviewSession,
        stage: StageDefinition,
        result: StageResult,
        evaluation: EvaluationResult,
    ) -> TransitionResult:
        """Persist the result and the session decision, then notify."""
        now = utcnow()
        results_before = {
            existing.stage_order: existing for existing in await self.store.list_stage_results(session.session_id)
        }
        results = {**results_before, result.stage_order: result}
        ordered = [results[order] for order in sorted(results)]

        next_stage = None
        attempts_remaining = 0
        changes: Dict[str, Any] = {
            "stages_completed": [item.stage_name for item in ordered if item.passed],
        }
        if result.passed:
            next_stage = self.catalog.next_stage(stage.order)
            if next_stage is not None:
                changes["current_stage_order"] = next_stage.order
            else:
                changes.update({
                    "status": SessionStatus.COMPLETED.value,
                    "current_stage_order": stage.order,
                    "overall_score": sum(item.ai_score for item in ordered) / len(ordered),
                    "overall_feedback": COMPLETED_FEEDBACK,
                    "completed_at": now,
                    "completion_reason": COMPLETION_REASON_ALL_STAGES,
                })
        else:
            attempts_remaining = max(0, self.retry_limit + 1 - result.attempts)
            if attempts_remaining > 0:
                changes["current_stage_order"] = stage.order
            else:
                changes.update({
                    "status": SessionStatus.FAILED.value,
                    "current_stage_order": stage.order,
                    "overall_feedback": FAILED_FEEDBACK,
                    "completed_at": now,
                    "completion_reason": COMPLETION_REASON_STAGE_FAILED,
                })

        # The version-checked session update is the last write, so a failure
        # anywhere leaves the session on its previous decision.
        previous = results_before.get(result.stage_order)
        try:
            await self.store.upsert_stage_result(result)
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Could not record stage result: {e}") from e
        try:
            updated = await self.store.update_session(session.session_id, session.version, changes)
        except Exception:
            await self._restore_result(result, previous)
            raise

        logger.info(
            f"Session {session.session_id} stage {stage.order} '{stage.name}': score={result.ai_score:g} "
            f"passing={stage.passing_score:g} passed={result.passed} -> status={updated.status} "
            f"current_stage={updated.current_stage_order}"
        )

        self._notify(updated, stage, result, next_stage, attempts_remaining)

        return TransitionResult(
            evaluation=evaluation,
            passed=result.passed,
            is_complete=updated.status == SessionStatus.COMPLETED.value,
            is_failed=updated.status == SessionStatus.FAILED.value,
            session=updated,
            next_stage=next_stage,
            requires_slot_booking=bool(next_stage and next_stage.requires_slot_booking),
            attempts_remaining=attempts_remaining,
        )

    async def _restore_result(self, result: StageResult, previous: Optional[StageResult]) -> None:
        """Put back the stage result that was there before a failed session update."""
        try:
            if previous is not None:
                await self.store.upsert_stage_result(previous)
            else:
                await self.store.delete_stage_result(result.session_id, result.stage_order)
            logger.warning(
                f"Restored stage {result.stage_order} result of session {result.session_id} after the session update failed"
            )
        except Exception as e:
            # The session was not moved, so the stage stays open for resubmission
            logger.error(f"Could not restore stage {result.stage_order} result of session {result.session_id}: {e}")

    def _notify(
        self,
        session: InterviewSession,
        stage: StageDefinition,
        result: StageResult,
        next_stage: Optional[StageDefinition],
        attempts_remaining: int,
    ) -> None:
        if self.notifier is None:
            return
        if not session.candidate_email:
            logger.debug(f"Session {session.session_id} has no candidate email; skipping notification")
            return

        subject_stage = stage
        if session.status == SessionStatus.COMPLETED.value:
            event_type = NotificationEventType.SESSION_COMPLETED
        elif session.status == SessionStatus.FAILED.value:
            event_type = NotificationEventType.SESSION_FAILED
        elif result.passed and next_stage is not None:
            if not stage.auto_progress:
                logger.info(f"Stage '{stage.name}' does not auto-progress; no invitation sent for '{next_stage.name}'")
                return
            event_type = NotificationEventType.STAGE_INVITATION
            subject_stage = next_stage
        elif attempts_remaining > 0:
            event_type = NotificationEventType.RETRY_AVAILABLE
        else:
            return

        event = NotificationEvent(
            event_type=event_type,
            session_id=session.session_id,
            candidate_email=session.candidate_email,
            candidate_name=session.candidate_name,
            stage_order=subject_stage.order,
            stage_name=subject_stage.name,
            stage_description=subject_stage.description,
            score=result.ai_score,
            booked_slot=result.answers.get("booked_slot"),
            app_url=self.app_url,
        )
        try:
            self.notifier.dispatch(event)
        except Exception as e:
            logger.error(f"Failed to dispatch notification for session {session.session_id}: {e}")
