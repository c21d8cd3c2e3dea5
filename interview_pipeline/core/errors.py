"""
Exceptions raised by the interview pipeline.

Validation errors are raised before any evaluator call or write. Transient
dependency errors leave session state untouched so the caller can retry the
same stage submission. Notification errors never leave the notifier.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for interview pipeline errors."""
    pass


class PipelineValidationError(PipelineError):
    """Raised when a request is malformed (bad stage order, missing answers)."""
    pass


class CatalogError(PipelineError):
    """Raised when a stage catalog violates its ordering rules."""
    pass


class SessionNotFoundError(PipelineError):
    """Raised when an interview session does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Interview session {session_id} not found")
        self.session_id = session_id


class SessionStateError(PipelineError):
    """Raised when the session's current state does not allow the operation."""
    pass


class ActiveSessionExistsError(SessionStateError):
    """Raised when a candidate already has an in-progress session."""

    def __init__(self, candidate_id: str, session_id: Optional[str] = None):
        super().__init__(f"Candidate {candidate_id} already has an interview in progress")
        self.candidate_id = candidate_id
        self.session_id = session_id


class SessionClosedError(SessionStateError):
    """Raised when a transition targets a completed or failed session."""

    def __init__(self, session_id: str, status: str):
        super().__init__(f"Interview session {session_id} is {status}")
        self.session_id = session_id
        self.status = status


class StaleSessionError(SessionStateError):
    """Raised when the session version no longer matches the caller's view."""

    def __init__(self, session_id: str, expected_version: Optional[int] = None):
        super().__init__(f"Interview session {session_id} was modified concurrently (expected version {expected_version})")
        self.session_id = session_id
        self.expected_version = expected_version


class TransientDependencyError(PipelineError):
    """Raised when the evaluator or the data store is temporarily unavailable."""
    retryable = True


class EvaluatorError(TransientDependencyError):
    """Raised when the scoring evaluator times out, fails or returns malformed data."""
    pass


class StoreUnavailableError(TransientDependencyError):
    """Raised when the data store cannot be reached."""
    pass


class NotificationError(PipelineError):
    """Raised by notification dispatchers; always swallowed by the notifier."""
    pass
