"""
Notification core for SmartNotify.

Turns host lifecycle events (idle, permission and question requests,
errors, user messages) into toast, sound, speech, desktop and webhook
alerts, with batching and escalating reminders.
"""

from smartnotify.notifications.channel import (
    Backends,
    DeliveryResult,
    DesktopNotifier,
    SessionInfo,
    SessionQuery,
    SessionSummary,
    SoundBackend,
    SpeechBackend,
    ToastBackend,
    WebhookBackend,
)
from smartnotify.notifications.config import NotificationMode, NotifyConfig
from smartnotify.notifications.events import EventKind, HostEvent, NotificationType, normalize_event
from smartnotify.notifications.router import EventRouter

__all__ = [
    "Backends",
    "DeliveryResult",
    "DesktopNotifier",
    "EventKind",
    "EventRouter",
    "HostEvent",
    "NotificationMode",
    "NotificationType",
    "NotifyConfig",
    "SessionInfo",
    "SessionQuery",
    "SessionSummary",
    "SoundBackend",
    "SpeechBackend",
    "ToastBackend",
    "WebhookBackend",
    "normalize_event",
]
