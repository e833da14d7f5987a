"""
BatchAggregator — coalesces near-simultaneous permission and question
requests into one notification.

Every new request restarts the debounce timer of its kind. When the timer
elapses the collected ids are handed to the flush callback together with
the total count, and the first id becomes the batch's active id.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from smartnotify.notifications.events import NotificationType
from smartnotify.notifications.scheduling import CancelableTimer
from smartnotify.notifications.session import BatchState, SessionContext

logger = logging.getLogger(__name__)

FlushCallback = Callable[[NotificationType, list[str], int], Awaitable[None]]

DEFAULT_BATCH_WINDOW = 0.8


class BatchAggregator:
    """Per-kind debounced request batches."""

    def __init__(
        self,
        context: SessionContext,
        on_flush: FlushCallback,
        windows: Optional[dict[NotificationType, float]] = None,
    ) -> None:
        self.context = context
        self.on_flush = on_flush
        self.windows = windows or {}

    def window(self, kind: NotificationType) -> float:
        return self.windows.get(kind, DEFAULT_BATCH_WINDOW)

    def _state(self, kind: NotificationType) -> BatchState:
        return self.context.batch(kind)

    def add_to_batch(self, kind: NotificationType, request_id: str, weight: int = 1) -> None:
        state = self._state(kind)
        if request_id not in state.pending_ids:
            state.pending_ids.append(request_id)
            state.weights[request_id] = max(1, weight)
            logger.debug(
                "%s %s added to batch (%d pending)", kind.value, request_id, len(state.pending_ids)
            )

        if state.timer is not None:
            state.timer.cancel()
        state.timer = CancelableTimer(
            self.window(kind),
            lambda: self._flush(kind),
            name=f"batch-{kind.value}",
        ).start()

    def remove_from_batch(self, kind: NotificationType, request_id: Optional[str]) -> int:
        """Drop a replied request. Returns the number of ids still pending."""
        state = self._state(kind)
        if request_id and request_id in state.pending_ids:
            state.pending_ids.remove(request_id)
            state.weights.pop(request_id, None)
            logger.debug(
                "%s %s removed from batch (%d remaining)",
                kind.value, request_id, len(state.pending_ids),
            )
        if not state.pending_ids and state.timer is not None:
            state.clear_pending()
            logger.debug("%s batch fully answered, window cancelled", kind.value)
        return len(state.pending_ids)

    def clear_active(self, kind: NotificationType, request_id: Optional[str]) -> bool:
        """Clear the active id when the reply matches it (or carries no id)."""
        state = self._state(kind)
        if state.active_id is None:
            return False
        if request_id is None or request_id == state.active_id:
            logger.debug("%s active id %s cleared", kind.value, state.active_id)
            state.active_id = None
            return True
        return False

    def is_active(self, kind: NotificationType) -> bool:
        return self._state(kind).active_id is not None

    def pending_count(self, kind: NotificationType) -> int:
        return self._state(kind).count

    def reset(self) -> None:
        for state in self.context.batches.values():
            state.clear_pending()
            state.active_id = None

    async def _flush(self, kind: NotificationType) -> None:
        state = self._state(kind)
        batch = list(state.pending_ids)
        count = state.count
        state.pending_ids = []
        state.weights = {}
        state.timer = None

        if not batch:
            logger.debug("%s batch empty, skipping", kind.value)
            return

        state.active_id = batch[0]
        logger.debug("Processing %s batch: %d id(s), count=%d", kind.value, len(batch), count)
        await self.on_flush(kind, batch, count)
