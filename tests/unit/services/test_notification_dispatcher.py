"""
Unit tests for notification dispatchers and the background notifier.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from interview_pipeline.core.errors import NotificationError
from interview_pipeline.models.pipeline import NotificationEventType
from interview_pipeline.services.notification_dispatcher import (
    BackgroundNotifier,
    LoggingNotificationDispatcher,
    NotificationEvent,
    WebhookNotificationDispatcher,
    create_notifier,
)

from conftest import RecordingDispatcher


@pytest.fixture
def event():
    return NotificationEvent(
        event_type=NotificationEventType.STAGE_INVITATION,
        session_id="session-1",
        candidate_email="candidate@example.com",
        candidate_name="Sam",
        stage_order=2,
        stage_name="Technical Assessment Slot Booking",
        stage_description="Book your slot",
        score=85,
        app_url="http://localhost:3000",
    )


def mock_client_session(status=200, text="", post_error=None):
    """Build a patched aiohttp.ClientSession returning ``status``."""
    response = MagicMock(status=status)
    response.text = AsyncMock(return_value=text)

    post_context = MagicMock()
    post_context.__aenter__ = AsyncMock(return_value=response, side_effect=post_error)
    post_context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post.return_value = post_context

    session_context = MagicMock()
    session_context.__aenter__ = AsyncMock(return_value=session)
    session_context.__aexit__ = AsyncMock(return_value=False)
    return session_context, session


class TestNotificationEvent:
    """Test NotificationEvent payloads."""

    def test_payload(self, event):
        payload = event.to_payload()

        assert payload["eventType"] == "stage_invitation"
        assert payload["candidateEmail"] == "candidate@example.com"
        assert payload["stageOrder"] == 2
        assert payload["appUrl"] == "http://localhost:3000"

    def test_booked_slot_only_sent_when_set(self, event):
        assert "bookedSlot" not in event.to_payload()

        booked = event.model_copy(update={"booked_slot": "2026-11-02T10:00:00Z"})

        assert booked.to_payload()["bookedSlot"] == "2026-11-02T10:00:00Z"

    def test_default_candidate_name(self, event):
        anonymous = event.model_copy(update={"candidate_name": None})

        assert anonymous.to_payload()["candidateName"] == "Candidate"


class TestWebhookNotificationDispatcher:
    """Test webhook delivery."""

    @pytest.mark.asyncio
    async def test_posts_payload(self, event):
        session_context, session = mock_client_session()
        dispatcher = WebhookNotificationDispatcher("https://hooks.example.com/invite", api_key="secret")

        with patch("interview_pipeline.services.notification_dispatcher.aiohttp.ClientSession",
                   return_value=session_context):
            await dispatcher.notify(event)

        args, kwargs = session.post.call_args
        assert args[0] == "https://hooks.example.com/invite"
        assert kwargs["json"]["sessionId"] == "session-1"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_error_status(self, event):
        session_context, _ = mock_client_session(status=500, text="boom")
        dispatcher = WebhookNotificationDispatcher("https://hooks.example.com/invite")

        with patch("interview_pipeline.services.notification_dispatcher.aiohttp.ClientSession",
                   return_value=session_context):
            with pytest.raises(NotificationError):
                await dispatcher.notify(event)

    @pytest.mark.asyncio
    async def test_connection_error(self, event):
        session_context, _ = mock_client_session(post_error=aiohttp.ClientConnectionError("refused"))
        dispatcher = WebhookNotificationDispatcher("https://hooks.example.com/invite")

        with patch("interview_pipeline.services.notification_dispatcher.aiohttp.ClientSession",
                   return_value=session_context):
            with pytest.raises(NotificationError):
                await dispatcher.notify(event)


class TestBackgroundNotifier:
    """Test fire-and-forget delivery."""

    @pytest.mark.asyncio
    async def test_dispatch_returns_before_delivery(self, event):
        delivered = asyncio.Event()

        class SlowDispatcher(RecordingDispatcher):
            async def notify(self, event):
                await delivered.wait()
                await super().notify(event)

        dispatcher = SlowDispatcher()
        notifier = BackgroundNotifier(dispatcher)

        task = notifier.dispatch(event)
        assert task is not None
        assert notifier.pending == 1
        assert dispatcher.events == []

        delivered.set()
        await notifier.drain()
        assert dispatcher.events == [event]
        assert notifier.pending == 0

    @pytest.mark.asyncio
    async def test_delivery_errors_are_contained(self, event):
        notifier = BackgroundNotifier(RecordingDispatcher(error=NotificationError("endpoint down")))

        task = notifier.dispatch(event)
        await notifier.drain()

        assert task.exception() is None

    def test_dispatch_without_running_loop(self, event):
        notifier = BackgroundNotifier(RecordingDispatcher())

        assert notifier.dispatch(event) is None


class TestCreateNotifier:
    """Test notifier construction from configuration."""

    def test_webhook_configured(self):
        notifier = create_notifier({"webhook_url": "https://hooks.example.com", "api_key": "", "timeout_seconds": 3})

        assert isinstance(notifier.dispatcher, WebhookNotificationDispatcher)
        assert notifier.dispatcher.api_key is None
        assert notifier.dispatcher.timeout_seconds == 3

    def test_logging_fallback(self):
        notifier = create_notifier({"webhook_url": ""})

        assert isinstance(notifier.dispatcher, LoggingNotificationDispatcher)
