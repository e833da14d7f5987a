"""
Discord webhook channel.

Messages are queued and sent by a single worker with a small gap between
posts. Rate limits (429) honour Retry-After; 5xx responses and timeouts
are retried up to MAX_RETRIES times.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from smartnotify.notifications.channel import DeliveryResult, WebhookBackend
from smartnotify.notifications.events import NotificationType

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
MAX_QUEUE_SIZE = 100
QUEUE_GAP = 0.25  # seconds between posts

_COLORS = {
    NotificationType.IDLE: 0x00FF00,
    NotificationType.PERMISSION: 0xFFAA00,
    NotificationType.ERROR: 0xFF0000,
    NotificationType.QUESTION: 0x0099FF,
}
DEFAULT_COLOR = 0x7289DA

_EMOJIS = {
    NotificationType.IDLE: "✅",
    NotificationType.PERMISSION: "⚠️",
    NotificationType.ERROR: "❌",
    NotificationType.QUESTION: "❓",
}
DEFAULT_EMOJI = "🔔"

_DISCORD_HOSTS = ("discord.com", "discordapp.com")


def validate_webhook_url(url: str) -> bool:
    """Discord URLs must point at /api/webhooks/; anything else just needs http(s)."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    host = parsed.hostname or ""
    if any(host == h or host.endswith("." + h) for h in _DISCORD_HOSTS):
        return "/api/webhooks/" in parsed.path
    return True


def build_embed(
    event_type: NotificationType,
    message: str,
    *,
    title: str = "",
    session_id: str = "",
    count: int = 1,
    project_name: str = "",
) -> dict[str, Any]:
    emoji = _EMOJIS.get(event_type, DEFAULT_EMOJI)
    fields: list[dict[str, Any]] = []
    if project_name:
        fields.append({"name": "Project", "value": project_name, "inline": True})
    fields.append({"name": "Event", "value": event_type.value, "inline": True})
    if count > 1:
        fields.append({"name": "Count", "value": str(count), "inline": True})
    if session_id:
        fields.append({"name": "Session", "value": f"{session_id[:8]}...", "inline": True})

    return {
        "title": f"{emoji} {title or event_type.value.capitalize()}",
        "description": message,
        "color": _COLORS.get(event_type, DEFAULT_COLOR),
        "fields": fields,
        "footer": {"text": "SmartNotify"},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def build_payload(
    embed: dict[str, Any],
    *,
    username: str = "SmartNotify",
    mention: bool = False,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"username": username, "embeds": [embed]}
    if mention:
        payload["content"] = "@everyone"
    return payload


def _retry_after(resp: httpx.Response) -> float:
    header = resp.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    try:
        body = resp.json()
    except ValueError:
        return DEFAULT_RETRY_DELAY
    if isinstance(body, dict) and body.get("retry_after") is not None:
        try:
            return float(body["retry_after"])
        except (TypeError, ValueError):
            logger.debug("Unusable retry_after in 429 body: %r", body["retry_after"])
    return DEFAULT_RETRY_DELAY


class DiscordWebhook(WebhookBackend):
    """Discord webhook notification channel."""

    name: str = "discord"

    def __init__(
        self,
        url: str,
        *,
        username: str = "SmartNotify",
        timeout: float = 10.0,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        queue_gap: float = QUEUE_GAP,
    ) -> None:
        self.url = url
        self.username = username
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.queue_gap = queue_gap
        self._client: httpx.AsyncClient | None = None
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)
        self._worker: Optional[asyncio.Task[None]] = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def disconnect(self) -> None:
        if self._worker is not None:
            await self._queue.join()
            self._worker.cancel()
            self._worker = None
        if self._client:
            await self._client.aclose()
            self._client = None

    async def notify(
        self,
        event_type: NotificationType,
        message: str,
        *,
        title: str = "",
        session_id: str = "",
        count: int = 1,
        project_name: str = "",
        mention: bool = False,
    ) -> DeliveryResult:
        if not validate_webhook_url(self.url):
            return DeliveryResult(success=False, error="Invalid webhook URL")

        embed = build_embed(
            event_type,
            message,
            title=title,
            session_id=session_id,
            count=count,
            project_name=project_name,
        )
        payload = build_payload(embed, username=self.username, mention=mention)
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Webhook queue full, dropping %s notification", event_type.value)
            return DeliveryResult(success=False, error="Queue full")

        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain(), name="webhook-queue")
        return DeliveryResult(success=True, queued=True)

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.send(payload)
            except Exception:
                logger.exception("Webhook delivery failed")
            finally:
                self._queue.task_done()
            if self._queue.empty():
                return
            await asyncio.sleep(self.queue_gap)

    async def send(self, payload: dict[str, Any]) -> DeliveryResult:
        """POST one payload, retrying on rate limits, server errors and timeouts."""
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            for attempt in range(MAX_RETRIES + 1):
                try:
                    resp = await client.post(self.url, json=payload)
                except httpx.TimeoutException:
                    if attempt < MAX_RETRIES:
                        await asyncio.sleep(self.retry_delay * (attempt + 1))
                        continue
                    logger.warning("Webhook timed out after %d attempts", attempt + 1)
                    return DeliveryResult(success=False, error="Timeout")
                except httpx.HTTPError as exc:
                    logger.exception("Webhook delivery failed to %s", self.url)
                    return DeliveryResult(success=False, error=str(exc))

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    wait = _retry_after(resp)
                    logger.info("Webhook rate limited, retrying in %.1fs", wait)
                    await asyncio.sleep(wait)
                    continue
                if resp.status_code >= 500 and attempt < MAX_RETRIES:
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                    continue
                if resp.is_success:
                    return DeliveryResult(success=True)
                logger.warning("Webhook returned HTTP %d", resp.status_code)
                return DeliveryResult(success=False, error=f"HTTP {resp.status_code}")
            return DeliveryResult(success=False, error="Retries exhausted")
        finally:
            if not self._client:
                await client.aclose()
