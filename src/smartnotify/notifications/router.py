"""
EventRouter — maps host events onto the notification core.

`on_event()` normalizes the event, applies every state change
synchronously (activity, batches, reminders, debounce), and hands the
notification I/O to detached tasks, so a reply that arrives later is
always able to cancel what an earlier event armed.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

from smartnotify.notifications.activity import ActivityTracker, DebounceTracker
from smartnotify.notifications.batching import BatchAggregator
from smartnotify.notifications.channel import Backends, RootSessionQuery, SessionInfo
from smartnotify.notifications.config import NotifyConfig
from smartnotify.notifications.events import (
    EventKind,
    HostEvent,
    NotificationType,
    normalize_event,
)
from smartnotify.notifications.messages import MessageSelector
from smartnotify.notifications.orchestrator import NotificationOrchestrator, NotifyRequest
from smartnotify.notifications.reminders import ReminderScheduler
from smartnotify.notifications.scheduling import BackgroundTasks
from smartnotify.notifications.session import SessionContext
from smartnotify.notifications.sounds import SoundResolver

logger = logging.getLogger(__name__)

_REPLY_KINDS: dict[EventKind, NotificationType] = {
    EventKind.PERMISSION_REPLIED: NotificationType.PERMISSION,
    EventKind.QUESTION_REPLIED: NotificationType.QUESTION,
    EventKind.QUESTION_REJECTED: NotificationType.QUESTION,
}

_REQUEST_KINDS: dict[EventKind, NotificationType] = {
    EventKind.PERMISSION_REQUESTED: NotificationType.PERMISSION,
    EventKind.QUESTION_REQUESTED: NotificationType.QUESTION,
}


def session_context(session: Optional[SessionInfo]) -> dict[str, Any]:
    """Session title and change summary for message generation; empty when unknown."""
    if session is None:
        return {}
    context: dict[str, Any] = {}
    if session.title:
        context["session_title"] = session.title
    if session.summary is not None:
        summary = session.summary.model_dump(exclude_none=True)
        if summary:
            context["session_summary"] = summary
    return context


class EventRouter:
    """Owns the session state and wires the components together."""

    def __init__(
        self,
        config: NotifyConfig,
        backends: Backends,
        *,
        project_name: str = "",
        project_dir: str = "",
        sound_dir: Optional[Path] = None,
        selector: Optional[MessageSelector] = None,
        clock: Callable[[], float] = time.time,
        wake_display: bool = True,
        force_volume: bool = True,
    ) -> None:
        self.config = config
        self.backends = backends
        self.sessions = backends.sessions or RootSessionQuery()
        self.project_name = project_name

        self.context = SessionContext(clock)
        self.tasks = BackgroundTasks()
        self.selector = selector or MessageSelector(config)
        self.scheduler = ReminderScheduler(
            self.context,
            config,
            backends.speech,
            self.selector,
            wake_display=wake_display,
            force_volume=force_volume,
        )
        self.debounce = DebounceTracker(self.context, window=config.idle_debounce_ms / 1000)
        self.activity = ActivityTracker(self.context, self.scheduler)
        self.batches = BatchAggregator(
            self.context,
            self._process_batch,
            windows={
                NotificationType.PERMISSION: config.batch_window(NotificationType.PERMISSION),
                NotificationType.QUESTION: config.batch_window(NotificationType.QUESTION),
            },
        )
        sounds = SoundResolver(config, sound_dir, project_dir) if sound_dir is not None else None
        self.orchestrator = NotificationOrchestrator(
            config,
            backends,
            self.scheduler,
            self.selector,
            self.tasks,
            sounds,
            project_name=project_name,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def on_event(self, event: dict[str, Any] | HostEvent) -> None:
        """Handle one host event. Never raises."""
        try:
            normalized = normalize_event(event)
            if normalized is None:
                return
            await self._route(normalized)
        except Exception:
            logger.exception("Event handler error")

    async def _route(self, event: HostEvent) -> None:
        kind = event.kind

        if kind == EventKind.MESSAGE_UPDATED:
            if event.role == "user" and event.message_id:
                self.activity.handle_user_message(event.message_id, event.created_at)
            return

        if kind in _REQUEST_KINDS:
            self._on_request(_REQUEST_KINDS[kind], event)
            return

        if kind in _REPLY_KINDS:
            self._on_reply(_REPLY_KINDS[kind], event)
            return

        if kind == EventKind.SESSION_CREATED:
            self.reset()
            logger.debug("Session created (%s), tracking state reset", event.session_id)
            return

        if kind == EventKind.SESSION_IDLE:
            await self._on_idle(event)
            return

        if kind == EventKind.SESSION_ERROR:
            await self._on_error(event)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_request(self, type_: NotificationType, event: HostEvent) -> None:
        if not self.config.notification_enabled(type_):
            logger.debug("%s notifications disabled, ignoring %s", type_.value, event.request_id)
            return
        weight = event.question_count if type_ == NotificationType.QUESTION else 1
        self.batches.add_to_batch(type_, event.request_id or "", weight)

    def _on_reply(self, type_: NotificationType, event: HostEvent) -> None:
        remaining = self.batches.remove_from_batch(type_, event.request_id)
        self.batches.clear_active(type_, event.request_id)
        self.activity.register_user_activity()
        self.scheduler.cancel(type_)
        logger.debug(
            "%s replied (%s, reply=%s), %d still batched",
            type_.value, event.request_id or "unknown id", event.reply or "-", remaining,
        )

    async def _lookup_session(self, session_id: str) -> Optional[SessionInfo]:
        try:
            return await self.sessions.get_session(session_id)
        except Exception:
            logger.debug("Session lookup failed for %s", session_id, exc_info=True)
            return None

    async def _on_idle(self, event: HostEvent) -> None:
        if not event.session_id or not self.config.notification_enabled(NotificationType.IDLE):
            return
        if not self.debounce.should_process_idle(event.session_id):
            return
        session = await self._lookup_session(event.session_id)
        if session is not None and session.parent_id:
            logger.debug("session.idle skipped for sub-session %s", event.session_id)
            return

        idle_time = self.activity.record_idle_transition()
        request = NotifyRequest(
            type=NotificationType.IDLE,
            session_id=event.session_id,
            sound=self.config.idle_sound,
            sound_loops=1,
            tts_message=self.selector.select_static(NotificationType.IDLE, is_reminder=True),
            fallback_sound=self.config.idle_sound,
            context=session_context(session),
            is_resolved=lambda: self.activity.was_active_since(idle_time),
        )
        logger.debug("session.idle: notifying for %s", event.session_id)
        self.tasks.spawn(self.orchestrator.notify(request), name="notify-idle")

    async def _on_error(self, event: HostEvent) -> None:
        if not event.session_id or not self.config.notification_enabled(NotificationType.ERROR):
            return
        session = await self._lookup_session(event.session_id)
        if session is not None and session.parent_id:
            logger.debug("session.error skipped for sub-session %s", event.session_id)
            return

        error_time = self.context.now()
        request = NotifyRequest(
            type=NotificationType.ERROR,
            session_id=event.session_id,
            sound=self.config.error_sound,
            sound_loops=2,
            tts_message=self.selector.select_static(NotificationType.ERROR, is_reminder=True),
            fallback_sound=self.config.error_sound,
            detail=event.error,
            is_resolved=lambda: self.activity.was_active_since(error_time),
        )
        logger.debug("session.error: notifying for %s (%s)", event.session_id, event.error)
        self.tasks.spawn(self.orchestrator.notify(request), name="notify-error")

    async def _process_batch(self, type_: NotificationType, ids: list[str], count: int) -> None:
        """Batch flush callback; runs on the batch timer."""
        sound = self.config.sound_for(type_)
        loops = 2 if count == 1 else min(self.config.max_sound_loops, count)
        request = NotifyRequest(
            type=type_,
            sound=sound,
            sound_loops=loops,
            tts_message=self.selector.select_static(type_, count, is_reminder=True),
            fallback_sound=sound,
            request_count=count,
            is_resolved=lambda: not self.batches.is_active(type_),
        )
        await self.orchestrator.notify(request)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self.scheduler.cancel_all()
        self.batches.reset()
        self.context.reset()

    async def drain(self) -> None:
        """Wait for in-flight notification tasks (not for armed reminders)."""
        await self.tasks.drain()

    async def aclose(self) -> None:
        self.reset()
        await self.tasks.cancel_all()
        if self.backends.webhook is not None:
            await self.backends.webhook.disconnect()
