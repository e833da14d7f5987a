"""
Backend interfaces: the output channels and host queries the core drives.

Each concrete adapter (speech, sound, toast, desktop, webhook) inherits
from one of these ABCs and implements its coroutine. Optional hooks have
no-op defaults.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from smartnotify.notifications.events import NotificationType


class DeliveryResult(BaseModel):
    """Outcome of a desktop or webhook delivery."""

    success: bool
    queued: bool = False
    error: str = ""


class SessionSummary(BaseModel):
    """Change totals the host reports for a session; any field may be missing."""

    files: Optional[int] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None


class SessionInfo(BaseModel):
    """What the host knows about a session."""

    id: str = ""
    parent_id: Optional[str] = None
    title: str = ""
    summary: Optional[SessionSummary] = None


class SpeechBackend(ABC):
    """Text-to-speech; tries its engines in order and falls back on failure."""

    name: str = "speech"

    @abstractmethod
    async def speak(
        self,
        text: str,
        *,
        engine: str | None = None,
        fallback_sound: str | None = None,
    ) -> bool:
        """Speak `text`. Returns False when nothing could be played."""
        ...

    async def wake_display(self) -> None:
        """Wake the monitor before a reminder. No-op by default."""

    async def force_volume(self) -> None:
        """Raise the output volume before a reminder. No-op by default."""


class SoundBackend(ABC):
    name: str = "sound"

    @abstractmethod
    async def play(self, path: str, loops: int = 1) -> None:
        ...


class ToastBackend(ABC):
    """In-app toast shown by the host UI."""

    name: str = "toast"

    @abstractmethod
    async def show(self, message: str, variant: str = "info", duration_ms: int = 5000) -> None:
        ...


class DesktopNotifier(ABC):
    name: str = "desktop"

    @abstractmethod
    async def notify(
        self,
        title: str,
        message: str,
        *,
        timeout: int = 5,
        urgency: str = "normal",
        subtitle: str = "",
    ) -> DeliveryResult:
        ...


class WebhookBackend(ABC):
    """Remote delivery; retries and rate limiting are handled internally."""

    name: str = "webhook"

    @abstractmethod
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
        ...

    async def connect(self) -> None:
        """Open connections. No-op by default."""

    async def disconnect(self) -> None:
        """Flush and close connections. No-op by default."""


class SessionQuery(ABC):
    @abstractmethod
    async def get_session(self, session_id: str) -> SessionInfo:
        """Look up a session. May raise; callers treat failures as unknown."""
        ...


class RootSessionQuery(SessionQuery):
    """Treats every session as a top-level session."""

    async def get_session(self, session_id: str) -> SessionInfo:
        return SessionInfo(id=session_id)


@dataclass
class Backends:
    """The set of adapters handed to the core."""

    speech: SpeechBackend
    sound: SoundBackend
    toast: Optional[ToastBackend] = None
    desktop: Optional[DesktopNotifier] = None
    webhook: Optional[WebhookBackend] = None
    sessions: Optional[SessionQuery] = None
