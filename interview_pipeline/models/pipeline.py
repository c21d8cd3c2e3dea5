"""
Mock interview pipeline data models.

This module defines Pydantic models for the stage catalog, interview sessions,
stage results, evaluator output and the API requests/responses built on them.
"""

from typing import Optional, Dict, Any, List, Literal
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StageType(str, Enum):
    """Kinds of stages in the interview pipeline."""
    EMAIL_INFO = "email_info"
    ASSESSMENT = "assessment"
    SLOT_BOOKING = "slot_booking"
    DEMO = "demo"
    FEEDBACK = "feedback"
    HR_DOCUMENTS = "hr_documents"
    REVIEW = "review"


# Stage types graded by the scoring evaluator
ASSESSED_STAGE_TYPES = {StageType.ASSESSMENT.value, StageType.DEMO.value, StageType.HR_DOCUMENTS.value}


class SessionStatus(str, Enum):
    """Status of an interview session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {SessionStatus.COMPLETED.value, SessionStatus.FAILED.value}


class NotificationEventType(str, Enum):
    """Kinds of notifications sent after a transition."""
    STAGE_INVITATION = "stage_invitation"
    SESSION_COMPLETED = "session_completed"
    SESSION_FAILED = "session_failed"
    RETRY_AVAILABLE = "retry_available"


class StageDefinition(BaseModel):
    """One entry of the stage catalog."""
    stage_id: str = Field(..., min_length=1, description="Stable stage identifier")
    name: str = Field(..., description="Display name of the stage")
    order: int = Field(..., ge=1, description="Position of the stage, contiguous from 1")
    description: str = Field(default="", description="What the stage covers")
    question_count: int = Field(default=0, ge=0, description="Number of questions asked")
    time_per_question: int = Field(default=0, ge=0, description="Seconds allowed per question")
    passing_score: float = Field(default=0.0, ge=0.0, le=100.0, description="Inclusive passing threshold")
    stage_type: StageType = Field(default=StageType.ASSESSMENT, description="Kind of stage")
    requires_slot_booking: bool = Field(default=False, description="Whether the stage books an interview slot")
    auto_progress: bool = Field(default=True, description="Whether the next stage invitation is sent automatically")

    @property
    def is_assessed(self) -> bool:
        """Whether answers for this stage are graded by the evaluator."""
        return self.stage_type in ASSESSED_STAGE_TYPES and self.question_count > 0

    class Config:
        frozen = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "stage_id": "technical_assessment",
                "name": "Technical Assessment",
                "order": 3,
                "description": "Role-specific technical questions.",
                "question_count": 8,
                "time_per_question": 150,
                "passing_score": 70,
                "stage_type": "assessment",
                "requires_slot_booking": False,
                "auto_progress": False
            }
        }


class StageQuestion(BaseModel):
    """A generated interview question."""
    id: int = Field(..., description="Question number within the stage")
    question: str = Field(..., description="Question text")
    type: Literal["text", "multiple_choice", "scenario"] = Field(default="text", description="Question format")
    options: List[str] = Field(default_factory=list, description="Choices for multiple choice questions")
    expected_points: List[str] = Field(default_factory=list, description="Key points a good answer covers")
    category: str = Field(default="general", description="Topic category")


class QuestionSet(BaseModel):
    """Questions generated for one stage attempt of a session."""
    session_id: str = Field(..., description="Interview session ID")
    stage_id: str = Field(..., description="Stable stage identifier")
    stage_order: int = Field(..., ge=1, description="Stage order")
    questions: List[StageQuestion] = Field(default_factory=list, description="Generated questions")
    time_per_question: int = Field(default=0, description="Seconds allowed per question")
    generated_at: datetime = Field(default_factory=utcnow, description="When the questions were generated")


class QuestionScore(BaseModel):
    """Evaluator score for a single question."""
    question_id: int = Field(..., description="Question number")
    score: float = Field(..., ge=0.0, le=100.0, description="Score for the question")
    feedback: str = Field(default="", description="Feedback for the question")


class EvaluationResult(BaseModel):
    """Output of the scoring evaluator for one stage attempt."""
    overall_score: float = Field(..., ge=0.0, le=100.0, description="Stage score from 0-100")
    feedback: str = Field(default="", description="Constructive feedback")
    strengths: List[str] = Field(default_factory=list, description="Key strengths")
    improvements: List[str] = Field(default_factory=list, description="Areas for improvement")
    question_scores: List[QuestionScore] = Field(default_factory=list, description="Per-question scores")

    class Config:
        json_schema_extra = {
            "example": {
                "overall_score": 82,
                "feedback": "Clear explanations with good classroom examples.",
                "strengths": ["Subject depth", "Structured answers"],
                "improvements": ["Mention assessment strategies"],
                "question_scores": [{"question_id": 1, "score": 90, "feedback": "Well explained"}]
            }
        }


class InterviewSession(BaseModel):
    """One end-to-end attempt by a candidate through all stages."""
    session_id: str = Field(..., description="Unique interview session identifier")
    candidate_id: str = Field(..., description="Candidate owning the session")
    candidate_email: Optional[str] = Field(None, description="Address notifications are sent to")
    candidate_name: Optional[str] = Field(None, description="Candidate display name")

    status: SessionStatus = Field(default=SessionStatus.IN_PROGRESS, description="Session status")
    current_stage_order: int = Field(default=1, ge=1, description="Stage the candidate is on")
    overall_score: Optional[float] = Field(None, ge=0.0, le=100.0, description="Mean stage score, set on completion")
    overall_feedback: Optional[str] = Field(None, description="Summary written when the session ends")
    stages_completed: List[str] = Field(default_factory=list, description="Names of passed stages in order")
    completion_reason: Optional[str] = Field(None, description="Why the session reached a terminal state")

    started_at: datetime = Field(default_factory=utcnow, description="Session start time")
    completed_at: Optional[datetime] = Field(None, description="When the session reached a terminal state")
    created_at: datetime = Field(default_factory=utcnow, description="Creation time")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update time")
    version: int = Field(default=1, ge=1, description="Optimistic concurrency token")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "session_id": "0f8fad5b-d9cb-469f-a165-70867728950e",
                "candidate_id": "cand_123",
                "candidate_email": "candidate@example.com",
                "status": "in_progress",
                "current_stage_order": 3,
                "overall_score": None,
                "stages_completed": ["Interview Instructions", "Technical Assessment Slot Booking"],
                "version": 3
            }
        }


class StageResult(BaseModel):
    """Persisted outcome of one candidate's attempt at one stage."""
    session_id: str = Field(..., description="Interview session ID")
    stage_id: str = Field(..., description="Stable stage identifier")
    stage_name: str = Field(..., description="Stage name at evaluation time")
    stage_order: int = Field(..., ge=1, description="Stage order (sort key)")
    ai_score: float = Field(..., ge=0.0, le=100.0, description="Stage score")
    ai_feedback: str = Field(default="", description="Evaluator feedback")
    strengths: List[str] = Field(default_factory=list, description="Key strengths")
    improvements: List[str] = Field(default_factory=list, description="Areas for improvement")
    question_scores: List[QuestionScore] = Field(default_factory=list, description="Per-question scores")
    answers: Dict[str, Any] = Field(default_factory=dict, description="Submitted answers or stage details")
    recording_url: Optional[str] = Field(None, description="Recording of the stage attempt")
    passed: bool = Field(..., description="Whether the score met the passing score")
    attempts: int = Field(default=1, ge=1, description="Number of evaluations of this stage")
    completed_at: datetime = Field(default_factory=utcnow, description="When the stage was evaluated")
    created_at: datetime = Field(default_factory=utcnow, description="When the result was first recorded")


class TransitionResult(BaseModel):
    """Outcome of a stage transition."""
    evaluation: EvaluationResult = Field(..., description="Evaluation the decision was based on")
    passed: bool = Field(..., description="Whether the stage was passed")
    is_complete: bool = Field(..., description="Whether the session is completed")
    is_failed: bool = Field(..., description="Whether the session is failed")
    session: InterviewSession = Field(..., description="Session after the transition")
    next_stage: Optional[StageDefinition] = Field(None, description="Stage the candidate moves to")
    requires_slot_booking: bool = Field(default=False, description="Whether the next stage books a slot")
    attempts_remaining: int = Field(default=0, description="Retries left for the evaluated stage")


class StageProgress(BaseModel):
    """A catalog stage joined with its result for one session."""
    stage: StageDefinition
    state: Literal["passed", "failed", "current", "locked"]
    result: Optional[StageResult] = None


class SessionProgress(BaseModel):
    """All-reviews summary of a session."""
    session: InterviewSession
    stages: List[StageProgress] = Field(default_factory=list)


# --- API request / response models ---

class StartSessionRequest(BaseModel):
    """Request model for starting an interview session."""
    candidate_id: str = Field(..., min_length=1, description="Candidate identifier")
    candidate_email: Optional[str] = Field(None, description="Address for stage invitations")
    candidate_name: Optional[str] = Field(None, description="Candidate display name")


class GenerateQuestionsRequest(BaseModel):
    """Request model for generating stage questions."""
    candidate_profile: Dict[str, Any] = Field(default_factory=dict, description="Candidate profile used in prompts")


class SubmitStageRequest(BaseModel):
    """Request model for submitting a stage's answers."""
    answers: List[str] = Field(..., description="Answers, index-aligned to the stage questions")
    candidate_profile: Dict[str, Any] = Field(default_factory=dict, description="Candidate profile used in prompts")
    recording_url: Optional[str] = Field(None, description="Recording of the stage attempt")
    expected_version: Optional[int] = Field(None, ge=1, description="Session version the client last saw")


class AcknowledgeStageRequest(BaseModel):
    """Request model for completing a stage that is not graded."""
    booked_slot: Optional[str] = Field(None, description="Booked slot for slot booking stages")
    note: Optional[str] = Field(None, description="Free-form note stored with the result")
    expected_version: Optional[int] = Field(None, ge=1, description="Session version the client last saw")


class SessionResponse(BaseModel):
    """Response model for session operations."""
    success: bool
    session: InterviewSession
    message: str


class ProcessStageRequest(BaseModel):
    """Function-style request accepted by the process-stage endpoint."""
    action: str = Field(..., description="Action to perform")
    session_id: Optional[str] = Field(None, alias="sessionId")
    stage_order: Optional[int] = Field(None, alias="stageOrder")
    answers: Optional[List[str]] = Field(None)
    candidate_profile: Dict[str, Any] = Field(default_factory=dict, alias="candidateProfile")
    recording_url: Optional[str] = Field(None, alias="recordingUrl")
    booked_slot: Optional[str] = Field(None, alias="bookedSlot")
    expected_version: Optional[int] = Field(None, alias="expectedVersion")

    class Config:
        populate_by_name = True


class ProcessStageResponse(BaseModel):
    """Function-style response returned by the process-stage endpoint."""
    session_id: Optional[str] = Field(None, alias="sessionId")
    stages: Optional[List[StageDefinition]] = None
    questions: Optional[List[StageQuestion]] = None
    time_per_question: Optional[int] = Field(None, alias="timePerQuestion")
    evaluation: Optional[EvaluationResult] = None
    passed: Optional[bool] = None
    is_complete: Optional[bool] = Field(None, alias="isComplete")
    is_failed: Optional[bool] = Field(None, alias="isFailed")
    next_stage: Optional[StageDefinition] = Field(None, alias="nextStage")
    next_stage_order: Optional[int] = Field(None, alias="nextStageOrder")
    requires_slot_booking: Optional[bool] = Field(None, alias="requiresSlotBooking")

    class Config:
        populate_by_name = True
