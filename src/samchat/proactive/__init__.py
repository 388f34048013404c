"""Proactive module for unsolicited check-in messages."""

from .notify import (
    NOTIFICATION_TAG,
    LogNotifier,
    Notification,
    NotificationSink,
    TelegramNotifier,
)
from .scheduler import (
    CHECK_INTERVAL_SECONDS,
    FrequencyTier,
    ProactiveEvent,
    ProactiveScheduler,
    QuietHours,
    SchedulerConfig,
    SchedulerState,
    load_state,
    save_state,
)
from .templates import PROACTIVE_MESSAGES, pick_message, pool_for

__all__ = [
    "CHECK_INTERVAL_SECONDS",
    "FrequencyTier",
    "LogNotifier",
    "NOTIFICATION_TAG",
    "Notification",
    "NotificationSink",
    "PROACTIVE_MESSAGES",
    "ProactiveEvent",
    "ProactiveScheduler",
    "QuietHours",
    "SchedulerConfig",
    "SchedulerState",
    "TelegramNotifier",
    "load_state",
    "pick_message",
    "pool_for",
    "save_state",
]
