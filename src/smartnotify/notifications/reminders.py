"""
ReminderScheduler — escalating spoken reminders for unanswered notifications.

Per notification type the scheduler is Unarmed, Armed, or Firing. A fired
reminder re-arms itself with exponential backoff until
`max_follow_up_reminders` firings have happened, unless the user was
active in the meantime. Cancellation is check-based: speech already in
progress finishes, but nothing is scheduled after it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from smartnotify.notifications.channel import SpeechBackend
from smartnotify.notifications.config import NotifyConfig
from smartnotify.notifications.events import NotificationType
from smartnotify.notifications.messages import MessageSelector
from smartnotify.notifications.scheduling import CancelableTimer
from smartnotify.notifications.session import PendingReminder, SessionContext

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Owns the per-type reminder timers in a `SessionContext`."""

    def __init__(
        self,
        context: SessionContext,
        config: NotifyConfig,
        speech: SpeechBackend,
        selector: MessageSelector,
        *,
        wake_display: bool = True,
        force_volume: bool = True,
    ) -> None:
        self.context = context
        self.config = config
        self.speech = speech
        self.selector = selector
        self.wake_display = wake_display
        self.force_volume = force_volume

    def is_armed(self, type_: NotificationType) -> bool:
        return type_ in self.context.reminders

    def get(self, type_: NotificationType) -> Optional[PendingReminder]:
        return self.context.reminders.get(type_)

    def schedule(
        self,
        type_: NotificationType,
        message: str,
        delay_seconds: Optional[float] = None,
        *,
        request_count: int = 1,
        fallback_sound: Optional[str] = None,
        message_context: Optional[dict[str, Any]] = None,
    ) -> PendingReminder:
        """Arm a reminder for `type_`, replacing any armed one."""
        delay = self.config.reminder_delay(type_) if delay_seconds is None else delay_seconds
        logger.debug(
            "Scheduling %s reminder in %.2fs (count=%d)", type_.value, delay, request_count
        )
        return self._arm(
            type_,
            message=message,
            base_delay=delay,
            delay=delay,
            follow_up_count=0,
            request_count=max(1, request_count),
            fallback_sound=fallback_sound,
            message_context=dict(message_context or {}),
        )

    def cancel(self, type_: NotificationType) -> bool:
        reminder = self.context.reminders.pop(type_, None)
        if reminder is None:
            return False
        reminder.timer.cancel()
        logger.debug("Cancelled %s reminder", type_.value)
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for type_ in list(self.context.reminders):
            if self.cancel(type_):
                cancelled += 1
        return cancelled

    def _arm(
        self,
        type_: NotificationType,
        *,
        message: str,
        base_delay: float,
        delay: float,
        follow_up_count: int,
        request_count: int,
        fallback_sound: Optional[str],
        message_context: dict[str, Any],
    ) -> PendingReminder:
        self.cancel(type_)
        timer = CancelableTimer(
            delay,
            lambda: self._fire(type_),
            name=f"reminder-{type_.value}-{follow_up_count}",
        )
        reminder = PendingReminder(
            type=type_,
            timer=timer,
            scheduled_at=self.context.now(),
            base_delay=base_delay,
            message=message,
            follow_up_count=follow_up_count,
            request_count=request_count,
            fallback_sound=fallback_sound,
            message_context=message_context,
        )
        self.context.reminders[type_] = reminder
        timer.start()
        return reminder

    def _drop(self, reminder: PendingReminder) -> None:
        if self.context.reminders.get(reminder.type) is reminder:
            del self.context.reminders[reminder.type]

    def _still_current(self, reminder: PendingReminder) -> bool:
        return (
            self.context.reminders.get(reminder.type) is reminder
            and not self.context.activity.was_active_since(reminder.scheduled_at)
        )

    async def _fire(self, type_: NotificationType) -> None:
        reminder = self.context.reminders.get(type_)
        if reminder is None:
            logger.debug("%s reminder was cancelled before firing", type_.value)
            return
        if not self._still_current(reminder):
            logger.debug("%s reminder skipped, user active since it was armed", type_.value)
            self._drop(reminder)
            return

        logger.debug(
            "Firing %s reminder %d (count=%d)",
            type_.value, reminder.follow_up_count + 1, reminder.request_count,
        )
        try:
            await self._speak(reminder)
        except Exception:
            logger.exception("%s reminder failed", type_.value)
            self._drop(reminder)
            return

        if not self._still_current(reminder):
            logger.debug("%s reminder cancelled during playback, no follow-up", type_.value)
            self._drop(reminder)
            return

        next_count = reminder.follow_up_count + 1
        if (
            self.config.enable_follow_up_reminders
            and next_count < self.config.max_follow_up_reminders
        ):
            next_delay = reminder.base_delay * self.config.reminder_backoff_multiplier ** next_count
            logger.debug(
                "Scheduling %s follow-up %d/%d in %.2fs",
                type_.value, next_count + 1, self.config.max_follow_up_reminders, next_delay,
            )
            self._arm(
                type_,
                message=reminder.message,
                base_delay=reminder.base_delay,
                delay=next_delay,
                follow_up_count=next_count,
                request_count=reminder.request_count,
                fallback_sound=reminder.fallback_sound,
                message_context=reminder.message_context,
            )
        else:
            logger.debug("%s reminders exhausted", type_.value)
            self._drop(reminder)

    async def _speak(self, reminder: PendingReminder) -> None:
        # the text armed with the reminder is used as-is only for a static first firing
        if reminder.follow_up_count == 0 and reminder.message and not self.selector.uses_ai:
            text = reminder.message
        else:
            text = await self.selector.select_message(
                reminder.type,
                reminder.request_count,
                is_reminder=True,
                context=reminder.message_context,
            )
            if not self._still_current(reminder):
                return
        if self.wake_display:
            await self.speech.wake_display()
        if self.force_volume:
            await self.speech.force_volume()
        spoken = await self.speech.speak(text, fallback_sound=reminder.fallback_sound)
        if not spoken:
            logger.debug("%s reminder produced no audio", reminder.type.value)
