"""
Service layer for the mock interview pipeline.

This module contains the services the transition engine depends on: the
MongoDB store, the scoring evaluator, notifications and the session tracker.
"""

from .session_store import MongoPipelineStore
from .scoring_evaluator import ScoringEvaluator, GeminiScoringEvaluator
from .notification_dispatcher import (
    NotificationEvent,
    NotificationDispatcher,
    LoggingNotificationDispatcher,
    WebhookNotificationDispatcher,
    BackgroundNotifier,
    create_notifier
)
from .session_tracker import SessionTracker

__all__ = [
    "MongoPipelineStore",
    "ScoringEvaluator",
    "GeminiScoringEvaluator",
    "NotificationEvent",
    "NotificationDispatcher",
    "LoggingNotificationDispatcher",
    "WebhookNotificationDispatcher",
    "BackgroundNotifier",
    "create_notifier",
    "SessionTracker"
]
