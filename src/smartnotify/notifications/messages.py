"""
Notification text selection.

`MessageSelector` picks from the static pools in `NotifyConfig.messages`,
with count-aware phrasing for batches. When AI messages are enabled it
first asks an OpenAI-compatible endpoint through `AIMessageGenerator` and
falls back to the static pools on any failure.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Optional

import httpx

from smartnotify.notifications.config import AIConfig, NotifyConfig
from smartnotify.notifications.events import NotificationType

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Notification"
GENERIC_FALLBACK = "Notification: Please check your screen."

_COUNT_NOUNS = {
    NotificationType.IDLE: "completed tasks",
    NotificationType.PERMISSION: "permission requests",
    NotificationType.QUESTION: "questions",
    NotificationType.ERROR: "errors",
}

_MULTIPLE_FALLBACK = {
    NotificationType.IDLE: "Attention! There are {count} completed tasks waiting for your review.",
    NotificationType.PERMISSION: "Attention! There are {count} permission requests waiting for your approval.",
    NotificationType.QUESTION: "Attention! There are {count} questions waiting for your answers.",
    NotificationType.ERROR: "Attention! There are {count} errors that need your attention.",
}


def prompt_key(type_: NotificationType, is_reminder: bool) -> str:
    return f"{type_.value}_reminder" if is_reminder else type_.value


def summary_text(summary: dict[str, Any]) -> str:
    """'5 file(s) modified, +120 lines, -45 lines', skipping missing totals."""
    parts = []
    if summary.get("files") is not None:
        parts.append(f"{summary['files']} file(s) modified")
    if summary.get("additions") is not None:
        parts.append(f"+{summary['additions']} lines")
    if summary.get("deletions") is not None:
        parts.append(f"-{summary['deletions']} lines")
    return ", ".join(parts)


def context_lines(context: dict[str, Any]) -> list[str]:
    lines = []
    if context.get("project_name"):
        lines.append(f'Project: "{context["project_name"]}"')
    if context.get("session_title"):
        lines.append(f'Task: "{context["session_title"]}"')
    changes = summary_text(context.get("session_summary") or {})
    if changes:
        lines.append(f"Changes: {changes}")
    return lines


def _clean(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return text


class AIMessageGenerator:
    """Generates short notification sentences with a chat-completions model."""

    def __init__(self, config: AIConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.endpoint.rstrip('/')}/{path}"

    def build_prompt(
        self,
        type_: NotificationType,
        is_reminder: bool = False,
        count: int = 1,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        prompt = self.config.prompts.get(prompt_key(type_, is_reminder))
        if not prompt:
            return None
        if count > 1:
            prompt += f" Mention that there are {count} {_COUNT_NOUNS[type_]}."
        if self.config.context_aware:
            lines = context_lines(context or {})
            if lines:
                prompt += "\n\nContext for this notification:\n" + "\n".join(
                    f"- {line}" for line in lines
                )
            else:
                logger.debug("Context-aware AI enabled, no context available to inject")
        return prompt

    async def generate(
        self,
        type_: NotificationType,
        is_reminder: bool = False,
        count: int = 1,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """Return a validated message, or None when disabled or on any failure."""
        if not self.config.enabled:
            return None
        prompt = self.build_prompt(type_, is_reminder, count, context)
        if prompt is None:
            logger.debug("No AI prompt configured for %s", prompt_key(type_, is_reminder))
            return None

        payload = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "system",
                    "content": "You write short spoken notifications for a developer. Reply with one sentence only.",
                },
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 60,
            "temperature": 0.7,
        }

        client = self._client or httpx.AsyncClient(timeout=self.config.timeout)
        try:
            resp = await client.post(
                self._url("chat/completions"),
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError):
            logger.debug("AI message generation failed", exc_info=True)
            return None
        finally:
            if not self._client:
                await client.aclose()

        message = _clean(str(content or ""))
        if not self.config.min_length <= len(message) <= self.config.max_length:
            logger.debug("AI message rejected (length %d)", len(message))
            return None
        return message

    async def test_connection(self) -> dict[str, Any]:
        """Check the endpoint's model list."""
        if not self.config.enabled:
            return {"success": False, "message": "AI messages not enabled"}

        client = self._client or httpx.AsyncClient(timeout=self.config.timeout)
        try:
            resp = await client.get(
                self._url("models"), headers=self._headers(), timeout=self.config.timeout
            )
            if resp.status_code >= 400:
                return {
                    "success": False,
                    "message": f"HTTP {resp.status_code}: {resp.reason_phrase}",
                }
            models = [m.get("id") for m in resp.json().get("data", []) if m.get("id")]
            return {
                "success": True,
                "message": f"Connected! {len(models)} model(s) available.",
                "models": models,
            }
        except httpx.TimeoutException:
            return {"success": False, "message": "Connection timed out"}
        except (httpx.HTTPError, ValueError) as exc:
            return {"success": False, "message": str(exc)}
        finally:
            if not self._client:
                await client.aclose()


class MessageSelector:
    """Chooses the text spoken for a notification or reminder."""

    def __init__(
        self,
        config: NotifyConfig,
        generator: AIMessageGenerator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.generator = generator or AIMessageGenerator(config.ai)
        self._rng = rng or random.Random()

    @property
    def uses_ai(self) -> bool:
        return self.generator.enabled

    def _pick(self, messages: list[str]) -> str:
        if not messages:
            return DEFAULT_MESSAGE
        return self._rng.choice(messages)

    def select_static(
        self, type_: NotificationType, count: int = 1, is_reminder: bool = False
    ) -> str:
        pools = self.config.messages.for_type(type_)
        pool = pools.reminder if is_reminder else pools.immediate
        if count <= 1:
            return self._pick(pool.single)
        if pool.multiple:
            return self._pick(pool.multiple).replace("{count}", str(count))
        return _MULTIPLE_FALLBACK[type_].format(count=count)

    async def select_message(
        self,
        type_: NotificationType,
        count: int = 1,
        is_reminder: bool = False,
        context: Optional[dict[str, Any]] = None,
    ) -> str:
        if self.generator.enabled:
            generated = await self.generator.generate(type_, is_reminder, count, context)
            if generated:
                return generated
            if not self.config.ai.fallback_to_static:
                return GENERIC_FALLBACK
        return self.select_static(type_, count, is_reminder)
