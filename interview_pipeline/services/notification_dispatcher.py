"""
Notification dispatch for interview stage transitions.

Notifications are sent after a transition has been committed. They run as
detached asyncio tasks; a failed notification is logged and never reaches the
caller of the transition.
"""
import asyncio
from datetime import datetime
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

import aiohttp
from pydantic import BaseModel, Field

from interview_pipeline.core.errors import NotificationError
from interview_pipeline.models.pipeline import NotificationEventType, utcnow
from interview_pipeline.utils.config import get_notification_config

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    """Notification emitted after a stage transition."""
    event_type: NotificationEventType = Field(..., description="Kind of notification")
    session_id: str = Field(..., description="Interview session ID")
    candidate_email: str = Field(..., description="Recipient address")
    candidate_name: Optional[str] = Field(None, description="Recipient name")
    stage_order: int = Field(..., description="Stage the notification is about")
    stage_name: str = Field(..., description="Name of that stage")
    stage_description: str = Field(default="", description="Description of that stage")
    score: Optional[float] = Field(None, description="Score of the evaluated stage")
    booked_slot: Optional[str] = Field(None, description="Interview slot booked in the evaluated stage")
    app_url: Optional[str] = Field(None, description="Base URL for links in the message")
    created_at: datetime = Field(default_factory=utcnow, description="When the event was created")

    class Config:
        use_enum_values = True

    def to_payload(self) -> Dict[str, Any]:
        """Request body of the invitation email function."""
        payload = {
            "eventType": self.event_type,
            "candidateEmail": self.candidate_email,
            "candidateName": self.candidate_name or "Candidate",
            "sessionId": self.session_id,
            "stageOrder": self.stage_order,
            "stageName": self.stage_name,
            "stageDescription": self.stage_description,
            "score": self.score,
            "appUrl": self.app_url,
        }
        if self.booked_slot:
            payload["bookedSlot"] = self.booked_slot
        return payload


class NotificationDispatcher(ABC):
    """Sends a single notification."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        """Deliver ``event``; raise ``NotificationError`` on failure."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Dispatcher used when no notification endpoint is configured."""

    async def notify(self, event: NotificationEvent) -> None:
        logger.info(
            f"Notification {event.event_type} for session {event.session_id} "
            f"(stage {event.stage_order} '{event.stage_name}') to {event.candidate_email}"
        )


class WebhookNotificationDispatcher(NotificationDispatcher):
    """Posts notifications to the invitation email function."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout_seconds: float = 10.0):
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def notify(self, event: NotificationEvent) -> None:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=event.to_payload(), headers=headers) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise NotificationError(f"Notification endpoint returned {response.status}: {body[:200]}")
        except aiohttp.ClientError as e:
            raise NotificationError(f"Notification request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise NotificationError("Notification request timed out") from e

        logger.info(f"Sent {event.event_type} notification for session {event.session_id}")


class BackgroundNotifier:
    """
    Fire-and-forget wrapper around a dispatcher.

    ``dispatch`` schedules delivery on the running loop and returns at once.
    Delivery errors are logged here and go no further.
    """

    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, event: NotificationEvent) -> Optional[asyncio.Task]:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError as e:
            logger.error(f"Could not schedule notification for session {event.session_id}: {e}")
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.dispatcher.notify(event)
        except NotificationError as e:
            logger.warning(f"Notification for session {event.session_id} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected notification error for session {event.session_id}: {e}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for outstanding notifications to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def create_notifier(config: Optional[Dict[str, Any]] = None) -> BackgroundNotifier:
    """Build the notifier from configuration."""
    config = config or get_notification_config()
    if config.get("webhook_url"):
        dispatcher: NotificationDispatcher = WebhookNotificationDispatcher(
            config["webhook_url"],
            api_key=config.get("api_key") or None,
            timeout_seconds=config.get("timeout_seconds", 10.0),
        )
    else:
        dispatcher = LoggingNotificationDispatcher()
    logger.info(f"Notifications delivered by {type(dispatcher).__name__}")
    return BackgroundNotifier(dispatcher)
