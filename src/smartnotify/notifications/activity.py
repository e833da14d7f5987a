"""
Idle-event debouncing and user-activity tracking.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from smartnotify.notifications.session import SessionContext

if TYPE_CHECKING:
    from smartnotify.notifications.reminders import ReminderScheduler

logger = logging.getLogger(__name__)

IDLE_DEBOUNCE_SECONDS = 5.0


class DebounceTracker:
    """Suppresses repeated idle events for the same session inside a window."""

    def __init__(self, context: SessionContext, window: float = IDLE_DEBOUNCE_SECONDS) -> None:
        self.context = context
        self.window = window

    def should_process_idle(self, session_id: str, now: Optional[float] = None) -> bool:
        now = self.context.now() if now is None else now
        last = self.context.idle_seen.get(session_id)
        if last is not None and now - last < self.window:
            logger.debug(
                "session.idle for %s debounced (%.0fms after previous)",
                session_id, (now - last) * 1000,
            )
            return False
        self.context.idle_seen[session_id] = now
        return True

    def reset(self, session_id: str | None = None) -> None:
        if session_id is None:
            self.context.idle_seen.clear()
        else:
            self.context.idle_seen.pop(session_id, None)


class ActivityTracker:
    """
    Decides which host events count as the user responding.

    The host re-emits message updates for every mutation of a message, so
    only the first sighting of a message id can be activity, and only when
    it was created after the session last went idle or no reminder is
    pending.
    """

    def __init__(self, context: SessionContext, scheduler: "ReminderScheduler") -> None:
        self.context = context
        self.scheduler = scheduler

    @property
    def state(self):
        return self.context.activity

    def record_idle_transition(self, now: Optional[float] = None) -> float:
        now = self.context.now() if now is None else now
        self.state.last_idle_time = now
        return now

    def is_new_user_message(self, message_id: str) -> bool:
        if message_id in self.state.seen_message_ids:
            return False
        self.state.seen_message_ids.add(message_id)
        return True

    def register_user_activity(self, now: Optional[float] = None) -> None:
        now = self.context.now() if now is None else now
        if now > self.state.last_activity_time:
            self.state.last_activity_time = now
        self.scheduler.cancel_all()

    def was_active_since(self, timestamp: float) -> bool:
        return self.state.was_active_since(timestamp)

    def handle_user_message(self, message_id: str, created_at: Optional[float] = None) -> bool:
        """Classify a user message update. Returns True when it counted as activity."""
        if not self.is_new_user_message(message_id):
            logger.debug("Ignored update to existing user message %s", message_id)
            return False

        created = self.context.now() if created_at is None else created_at
        idle_time = self.state.last_idle_time
        after_idle = idle_time > 0 and created > idle_time

        if after_idle:
            self.register_user_activity()
            logger.debug("New user message %s after idle, reminders cancelled", message_id)
            return True
        if not self.context.reminders:
            # nothing pending to cancel; only the activity time moves
            self.register_user_activity()
            logger.debug("User message %s with no reminders pending", message_id)
            return True
        logger.debug(
            "Ignored user message %s created before idle (created=%s, idle=%s)",
            message_id, created, idle_time,
        )
        return False
