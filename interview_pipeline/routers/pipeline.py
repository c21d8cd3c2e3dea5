"""
FastAPI router for mock interview pipeline endpoints.

This module provides REST API endpoints for starting interview sessions,
generating stage questions, submitting and acknowledging stages, and reading
session results and progress.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from interview_pipeline.core.errors import (
    ActiveSessionExistsError,
    PipelineError,
    PipelineValidationError,
    SessionNotFoundError,
    SessionStateError,
    TransientDependencyError,
)
from interview_pipeline.core.stage_catalog import StageCatalog
from interview_pipeline.core.transition_engine import StageTransitionEngine
from interview_pipeline.models.pipeline import (
    AcknowledgeStageRequest,
    GenerateQuestionsRequest,
    InterviewSession,
    ProcessStageRequest,
    ProcessStageResponse,
    QuestionSet,
    SessionProgress,
    SessionResponse,
    StageDefinition,
    StageResult,
    StartSessionRequest,
    SubmitStageRequest,
    TransitionResult,
)
from interview_pipeline.services.session_tracker import SessionTracker
from interview_pipeline.utils.constants import MAX_PAST_SESSIONS_LIMIT, PipelineAction

logger = logging.getLogger(__name__)


async def log_request_time(request: Request):
    """Log request timing for HTTP endpoints."""
    request.state.start_time = datetime.now()
    yield
    process_time = (datetime.now() - request.state.start_time).total_seconds() * 1000
    logger.info(f"Request to {request.url.path} took {process_time:.2f}ms")


# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

# Create router
router = APIRouter(prefix="/api/mock-interview", tags=["mock-interview"])


def get_transition_engine(request: Request) -> StageTransitionEngine:
    """Dependency to get the transition engine from app state."""
    engine = getattr(request.app.state, "transition_engine", None)
    if engine is None:
        raise HTTPException(status_code=500, detail="Interview pipeline not initialized")
    return engine


def get_session_tracker(request: Request) -> SessionTracker:
    """Dependency to get the session tracker from app state."""
    tracker = getattr(request.app.state, "session_tracker", None)
    if tracker is None:
        raise HTTPException(status_code=500, detail="Interview pipeline not initialized")
    return tracker


def get_stage_catalog(request: Request) -> StageCatalog:
    """Dependency to get the stage catalog from app state."""
    catalog = getattr(request.app.state, "stage_catalog", None)
    if catalog is None:
        raise HTTPException(status_code=500, detail="Stage catalog not loaded")
    return catalog


def to_http_exception(error: PipelineError) -> HTTPException:
    """Map a pipeline error to the HTTP error returned to clients."""
    if isinstance(error, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ActiveSessionExistsError):
        return HTTPException(
            status_code=409,
            detail={"message": str(error), "session_id": error.session_id},
        )
    if isinstance(error, SessionStateError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, TransientDependencyError):
        return HTTPException(status_code=503, detail={"message": str(error), "retryable": True})
    if isinstance(error, PipelineValidationError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.get("/stages", response_model=List[StageDefinition])
@limiter.limit("60/minute")
async def list_stages(
    request: Request,
    catalog: StageCatalog = Depends(get_stage_catalog),
):
    """Get the ordered stage catalog."""
    return catalog.get_stages()


@router.post("/sessions", response_model=SessionResponse, status_code=201)
@limiter.limit("10/minute")
async def start_session(
    request: Request,
    session_request: StartSessionRequest,
    tracker: SessionTracker = Depends(get_session_tracker),
    _: None = Depends(log_request_time)
):
    """Start a new interview session for a candidate."""
    try:
        session = await tracker.start_session(
            session_request.candidate_id,
            candidate_email=session_request.candidate_email,
            candidate_name=session_request.candidate_name,
        )
    except PipelineError as e:
        logger.warning(f"Could not start session for candidate {session_request.candidate_id}: {e}")
        raise to_http_exception(e) from e

    return SessionResponse(success=True, session=session, message="Interview session started successfully")


@router.post("/sessions/restart", response_model=SessionResponse, status_code=201)
@limiter.limit("5/minute")
async def restart_session(
    request: Request,
    session_request: StartSessionRequest,
    tracker: SessionTracker = Depends(get_session_tracker),
    _: None = Depends(log_request_time)
):
    """Close the candidate's active session, if any, and start a new one."""
    try:
        session = await tracker.restart_session(
            session_request.candidate_id,
            candidate_email=session_request.candidate_email,
            candidate_name=session_request.candidate_name,
        )
    except PipelineError as e:
        raise to_http_exception(e) from e

    return SessionResponse(success=True, session=session, message="Interview session restarted successfully")


@router.get("/sessions/{session_id}", response_model=InterviewSession)
@limiter.limit("60/minute")
async def get_session(
    request: Request,
    session_id: str,
    tracker: SessionTracker = Depends(get_session_tracker),
):
    """Get an interview session by ID."""
    try:
        return await tracker.get_session(session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.get("/sessions/{session_id}/results", response_model=List[StageResult])
@limiter.limit("60/minute")
async def get_stage_results(
    request: Request,
    session_id: str,
    tracker: SessionTracker = Depends(get_session_tracker),
):
    """Get the stage results of a session, ordered by stage."""
    try:
        await tracker.get_session(session_id)
        return await tracker.get_stage_results(session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.get("/sessions/{session_id}/progress", response_model=SessionProgress)
@limiter.limit("60/minute")
async def get_session_progress(
    request: Request,
    session_id: str,
    tracker: SessionTracker = Depends(get_session_tracker),
):
    """Get every catalog stage with its state and result for a session."""
    try:
        return await tracker.get_progress(session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.get("/candidates/{candidate_id}/active-session", response_model=Optional[InterviewSession])
@limiter.limit("60/minute")
async def get_active_session(
    request: Request,
    candidate_id: str,
    tracker: SessionTracker = Depends(get_session_tracker),
):
    """Get the candidate's in-progress session, or null."""
    try:
        return await tracker.get_active_session(candidate_id)
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.get("/candidates/{candidate_id}/sessions", response_model=List[InterviewSession])
@limiter.limit("30/minute")
async def get_past_sessions(
    request: Request,
    candidate_id: str,
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAST_SESSIONS_LIMIT),
    tracker: SessionTracker = Depends(get_session_tracker),
):
    """Get the candidate's completed and failed sessions, newest first."""
    try:
        return await tracker.get_past_sessions(candidate_id, limit=limit)
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.post("/sessions/{session_id}/stages/{stage_order}/questions", response_model=QuestionSet)
@limiter.limit("10/minute")
async def generate_stage_questions(
    request: Request,
    session_id: str,
    stage_order: int,
    questions_request: Optional[GenerateQuestionsRequest] = None,
    engine: StageTransitionEngine = Depends(get_transition_engine),
    _: None = Depends(log_request_time)
):
    """Generate the questions for the session's current stage."""
    profile = questions_request.candidate_profile if questions_request else {}
    try:
        return await engine.generate_questions(session_id, stage_order, profile)
    except PipelineError as e:
        logger.error(f"Question generation failed for session {session_id} stage {stage_order}: {e}")
        raise to_http_exception(e) from e


@router.post("/sessions/{session_id}/stages/{stage_order}/submit", response_model=TransitionResult)
@limiter.limit("10/minute")
async def submit_stage(
    request: Request,
    session_id: str,
    stage_order: int,
    submission: SubmitStageRequest,
    engine: StageTransitionEngine = Depends(get_transition_engine),
    _: None = Depends(log_request_time)
):
    """Submit a graded stage's answers and advance the session."""
    try:
        return await engine.advance(
            session_id,
            stage_order,
            submission.answers,
            candidate_profile=submission.candidate_profile,
            recording_url=submission.recording_url,
            expected_version=submission.expected_version,
        )
    except PipelineError as e:
        logger.warning(f"Stage submission failed for session {session_id} stage {stage_order}: {e}")
        raise to_http_exception(e) from e


@router.post("/sessions/{session_id}/stages/{stage_order}/acknowledge", response_model=TransitionResult)
@limiter.limit("10/minute")
async def acknowledge_stage(
    request: Request,
    session_id: str,
    stage_order: int,
    acknowledgement: Optional[AcknowledgeStageRequest] = None,
    engine: StageTransitionEngine = Depends(get_transition_engine),
    _: None = Depends(log_request_time)
):
    """Complete a stage that is not graded (instructions, slot booking, reviews)."""
    acknowledgement = acknowledgement or AcknowledgeStageRequest()
    try:
        return await engine.acknowledge_stage(
            session_id,
            stage_order,
            booked_slot=acknowledgement.booked_slot,
            note=acknowledgement.note,
            expected_version=acknowledgement.expected_version,
        )
    except PipelineError as e:
        raise to_http_exception(e) from e


@router.post(
    "/process-stage",
    response_model=ProcessStageResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
@limiter.limit("20/minute")
async def process_stage(
    request: Request,
    stage_request: ProcessStageRequest,
    engine: StageTransitionEngine = Depends(get_transition_engine),
    _: None = Depends(log_request_time)
):
    """Function-style entry point dispatching on ``action``."""
    action = stage_request.action
    logger.info(f"Processing {action} for session {stage_request.session_id} stage {stage_request.stage_order}")

    if action == PipelineAction.GET_STAGES:
        return ProcessStageResponse(stages=engine.get_stages())

    if action not in PipelineAction.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid action: {action}")
    if not stage_request.session_id or stage_request.stage_order is None:
        raise HTTPException(status_code=400, detail="sessionId and stageOrder are required")

    try:
        if action == PipelineAction.GENERATE_QUESTIONS:
            question_set = await engine.generate_questions(
                stage_request.session_id, stage_request.stage_order, stage_request.candidate_profile
            )
            return ProcessStageResponse(
                session_id=question_set.session_id,
                questions=question_set.questions,
                time_per_question=question_set.time_per_question,
            )

        if action == PipelineAction.EVALUATE_ANSWERS:
            result = await engine.advance(
                stage_request.session_id,
                stage_request.stage_order,
                stage_request.answers or [],
                candidate_profile=stage_request.candidate_profile,
                recording_url=stage_request.recording_url,
                expected_version=stage_request.expected_version,
            )
        else:
            result = await engine.acknowledge_stage(
                stage_request.session_id,
                stage_request.stage_order,
                booked_slot=stage_request.booked_slot if action == PipelineAction.BOOK_SLOT else None,
                expected_version=stage_request.expected_version,
            )
    except PipelineError as e:
        logger.warning(f"Action {action} failed for session {stage_request.session_id}: {e}")
        raise to_http_exception(e) from e

    return ProcessStageResponse(
        session_id=result.session.session_id,
        evaluation=result.evaluation,
        passed=result.passed,
        is_complete=result.is_complete,
        is_failed=result.is_failed,
        next_stage=result.next_stage,
        next_stage_order=result.next_stage.order if result.next_stage else None,
        requires_slot_booking=result.requires_slot_booking,
    )
