"""
SessionContext — in-memory state of the notification core.

One context is created per plugin instance and shared by reference with
every component. Nothing here survives a process restart.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from smartnotify.notifications.events import NotificationType
from smartnotify.notifications.scheduling import CancelableTimer

logger = logging.getLogger(__name__)


@dataclass
class PendingReminder:
    """An armed reminder. At most one exists per notification type."""

    type: NotificationType
    timer: CancelableTimer
    scheduled_at: float
    base_delay: float
    message: str = ""
    follow_up_count: int = 0
    request_count: int = 1
    fallback_sound: Optional[str] = None
    # project and session details for generated reminder text
    message_context: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchState:
    """Requests of one kind collected during a batch window."""

    pending_ids: list[str] = field(default_factory=list)
    weights: dict[str, int] = field(default_factory=dict)  # id → sub-request count
    timer: Optional[CancelableTimer] = None
    active_id: Optional[str] = None

    @property
    def count(self) -> int:
        return sum(self.weights.get(rid, 1) for rid in self.pending_ids)

    def clear_pending(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        self.timer = None
        self.pending_ids = []
        self.weights = {}


@dataclass
class ActivityState:
    last_activity_time: float = 0.0
    last_idle_time: float = 0.0
    seen_message_ids: set[str] = field(default_factory=set)

    def was_active_since(self, timestamp: float) -> bool:
        return self.last_activity_time > timestamp


class SessionContext:
    """Activity, armed reminders, batches and idle debounce entries."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self.activity = ActivityState(last_activity_time=clock())
        self.reminders: dict[NotificationType, PendingReminder] = {}
        self.batches: dict[NotificationType, BatchState] = {
            NotificationType.PERMISSION: BatchState(),
            NotificationType.QUESTION: BatchState(),
        }
        self.idle_seen: dict[str, float] = {}

    def now(self) -> float:
        return self.clock()

    def batch(self, kind: NotificationType) -> BatchState:
        return self.batches[kind]

    def reset(self) -> None:
        """Cancel every timer and forget all tracked state."""
        for reminder in self.reminders.values():
            reminder.timer.cancel()
        self.reminders.clear()
        for batch in self.batches.values():
            batch.clear_pending()
            batch.active_id = None
        self.activity = ActivityState(last_activity_time=self.clock())
        self.idle_seen.clear()
        logger.debug("Session context reset")
