"""
NotificationOrchestrator — drives one notification across every channel.

Desktop and webhook deliveries are spawned first as detached tasks. Then
come the toast, the sound, an abort check, the reminder and finally any
immediate speech. Nothing raised by a backend escapes `notify()`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from smartnotify.notifications.channel import Backends
from smartnotify.notifications.config import NotifyConfig
from smartnotify.notifications.events import NotificationType
from smartnotify.notifications.messages import MessageSelector
from smartnotify.notifications.reminders import ReminderScheduler
from smartnotify.notifications.scheduling import BackgroundTasks
from smartnotify.notifications.sounds import SoundResolver

logger = logging.getLogger(__name__)

# type → (single text, multiple text, variant, duration ms)
_TOASTS: dict[NotificationType, tuple[str, str, str, int]] = {
    NotificationType.IDLE: (
        "✅ Agent has finished working",
        "✅ Agent has finished {count} tasks",
        "success",
        5000,
    ),
    NotificationType.PERMISSION: (
        "⚠️ Permission request requires your attention",
        "⚠️ {count} permission requests require your attention",
        "warning",
        8000,
    ),
    NotificationType.QUESTION: (
        "❓ The agent has a question for you",
        "❓ The agent has {count} questions for you",
        "info",
        8000,
    ),
    NotificationType.ERROR: (
        "❌ The agent encountered an error",
        "❌ The agent encountered {count} errors",
        "error",
        8000,
    ),
}

# type → (title, title for count > 1, timeout seconds, urgency)
_DESKTOP: dict[NotificationType, tuple[str, str, int, str]] = {
    NotificationType.IDLE: ("✅ Task Complete", "✅ Task Complete", 5, "normal"),
    NotificationType.PERMISSION: (
        "⚠️ Permission Required",
        "⚠️ {count} Permissions Required",
        10,
        "critical",
    ),
    NotificationType.QUESTION: (
        "❓ Question",
        "❓ {count} Questions Need Your Input",
        8,
        "normal",
    ),
    NotificationType.ERROR: ("❌ Error", "❌ Error", 15, "critical"),
}


_WEBHOOK_TITLES = {
    NotificationType.IDLE: "Task Complete",
    NotificationType.PERMISSION: "Permission Required",
    NotificationType.QUESTION: "Question",
    NotificationType.ERROR: "Error",
}


def toast_text(type_: NotificationType, count: int = 1) -> str:
    single, multiple, _, _ = _TOASTS[type_]
    return single if count <= 1 else multiple.format(count=count)


@dataclass
class NotifyRequest:
    """A normalized notification handed to the orchestrator."""

    type: NotificationType
    session_id: str = ""
    sound: Optional[str] = None
    sound_loops: int = 1
    tts_message: Optional[str] = None
    fallback_sound: Optional[str] = None
    request_count: int = 1
    detail: str = ""
    # extra message-generation context, e.g. session title and change summary
    context: dict[str, Any] = field(default_factory=dict)
    # True once the user has dealt with the notification
    is_resolved: Callable[[], bool] = field(default=lambda: False)


class NotificationOrchestrator:
    """Sequences sound, reminders and speech for one notification."""

    def __init__(
        self,
        config: NotifyConfig,
        backends: Backends,
        scheduler: ReminderScheduler,
        selector: MessageSelector,
        tasks: BackgroundTasks,
        sounds: Optional[SoundResolver] = None,
        *,
        project_name: str = "",
    ) -> None:
        self.config = config
        self.backends = backends
        self.scheduler = scheduler
        self.selector = selector
        self.tasks = tasks
        self.sounds = sounds
        self.project_name = project_name

    async def notify(self, request: NotifyRequest) -> None:
        type_ = request.type
        count = max(1, request.request_count)
        context = self._message_context(request)

        self._dispatch_side_channels(request, count)

        await self._show_toast(type_, count)
        if request.is_resolved():
            logger.debug("%s resolved during toast, aborting", type_.value)
            return

        # Step 1: immediate sound
        if request.sound and self.config.enable_sound and self.config.plays_sound_immediately:
            loops = max(1, min(request.sound_loops, self.config.max_sound_loops))
            await self._play_sound(type_, request.sound, loops)

        # Step 2: the user may have answered while the sound played
        if request.is_resolved():
            logger.debug("%s resolved during sound, aborting reminder", type_.value)
            return

        fallback_sound = self._resolve_sound(type_, request.fallback_sound)

        # Step 3: reminder
        if self.config.reminder_enabled(type_) and request.tts_message:
            self.scheduler.schedule(
                type_,
                request.tts_message,
                request_count=count,
                fallback_sound=fallback_sound,
                message_context=context,
            )

        # Step 4: immediate speech
        if self.config.speaks_immediately and self.config.enable_tts:
            await self._speak_now(request, count, context, fallback_sound)
            if request.is_resolved():
                logger.debug("%s resolved during speech, cancelling reminder", type_.value)
                self.scheduler.cancel(type_)

    def _message_context(self, request: NotifyRequest) -> dict[str, Any]:
        context: dict[str, Any] = {"project_name": self.project_name}
        context.update(request.context)
        return context

    def _resolve_sound(self, type_: NotificationType, sound: Optional[str]) -> Optional[str]:
        """Absolute path of an existing sound file when a resolver is set."""
        if not sound or self.sounds is None:
            return sound
        try:
            return self.sounds.resolve(type_, sound)
        except OSError:
            logger.exception("Cannot resolve sound %s", sound)
            return None

    async def _speak_now(
        self,
        request: NotifyRequest,
        count: int,
        context: dict[str, Any],
        fallback_sound: Optional[str],
    ) -> None:
        try:
            text = await self.selector.select_message(
                request.type, count, is_reminder=False, context=context
            )
            if request.is_resolved():
                return
            await self.backends.speech.speak(text, fallback_sound=fallback_sound)
        except Exception:
            logger.exception("Immediate speech for %s failed", request.type.value)

    async def _play_sound(self, type_: NotificationType, sound: str, loops: int) -> None:
        path = self._resolve_sound(type_, sound)
        if not path:
            return
        try:
            await self.backends.sound.play(path, loops)
        except Exception:
            logger.exception("Sound playback failed for %s", path)

    async def _show_toast(self, type_: NotificationType, count: int) -> None:
        toast = self.backends.toast
        if toast is None or not self.config.enable_toast:
            return
        _, _, variant, duration = _TOASTS[type_]
        try:
            await toast.show(toast_text(type_, count), variant, duration)
        except Exception:
            logger.exception("Toast failed for %s", type_.value)

    def _dispatch_side_channels(self, request: NotifyRequest, count: int) -> None:
        """Desktop and webhook deliveries run detached; only their logs observe them."""
        message = request.detail or toast_text(request.type, count)
        if self.backends.desktop is not None and self.config.enable_desktop_notification:
            self.tasks.spawn(
                self._send_desktop(request.type, message, count),
                name=f"desktop-{request.type.value}",
            )
        if (
            self.backends.webhook is not None
            and self.config.enable_webhook
            and request.type.value in self.config.webhook.events
        ):
            self.tasks.spawn(
                self._send_webhook(request, message, count),
                name=f"webhook-{request.type.value}",
            )

    async def _send_desktop(self, type_: NotificationType, message: str, count: int) -> None:
        title, multiple, timeout, urgency = _DESKTOP[type_]
        if count > 1:
            title = multiple.format(count=count)
        if self.project_name and self.config.show_project_in_notification:
            title = f"{title} — {self.project_name}"
        try:
            result = await self.backends.desktop.notify(  # type: ignore[union-attr]
                title,
                message,
                timeout=max(timeout, self.config.desktop_notification_timeout),
                urgency=urgency,
            )
        except Exception:
            logger.exception("Desktop notification failed for %s", type_.value)
            return
        if not result.success:
            logger.debug("Desktop notification not shown: %s", result.error)

    async def _send_webhook(self, request: NotifyRequest, message: str, count: int) -> None:
        mention = (
            request.type == NotificationType.PERMISSION
            and self.config.webhook.mention_on_permission
        )
        try:
            result = await self.backends.webhook.notify(  # type: ignore[union-attr]
                request.type,
                message,
                title=_WEBHOOK_TITLES[request.type],
                session_id=request.session_id,
                count=count,
                project_name=self.project_name,
                mention=mention,
            )
        except Exception:
            logger.exception("Webhook failed for %s", request.type.value)
            return
        if not result.success:
            logger.debug("Webhook not delivered: %s", result.error)
