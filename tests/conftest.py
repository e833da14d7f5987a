"""Pytest configuration and fixtures."""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest

from smartnotify.notifications.channel import (
    Backends,
    DeliveryResult,
    DesktopNotifier,
    SessionInfo,
    SessionQuery,
    SoundBackend,
    SpeechBackend,
    ToastBackend,
    WebhookBackend,
)
from smartnotify.notifications.config import NotifyConfig


# ---------------------------------------------------------------------------
# Recording backends
# ---------------------------------------------------------------------------


class RecordingSpeech(SpeechBackend):
    """In-memory speech backend; `delay` simulates playback time."""

    def __init__(self, delay: float = 0.0, succeed: bool = True):
        self.delay = delay
        self.succeed = succeed
        self.spoken: list[str] = []
        self.fallbacks: list[str | None] = []
        self.wakes = 0
        self.volume_forced = 0

    async def speak(self, text, *, engine=None, fallback_sound=None):
        self.spoken.append(text)
        self.fallbacks.append(fallback_sound)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.succeed

    async def wake_display(self):
        self.wakes += 1

    async def force_volume(self):
        self.volume_forced += 1


class RecordingSound(SoundBackend):
    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.played: list[tuple[str, int]] = []

    async def play(self, path, loops=1):
        self.played.append((path, loops))
        if self.delay:
            await asyncio.sleep(self.delay)


class RecordingToast(ToastBackend):
    def __init__(self):
        self.shown: list[tuple[str, str, int]] = []

    async def show(self, message, variant="info", duration_ms=5000):
        self.shown.append((message, variant, duration_ms))

    @property
    def messages(self) -> list[str]:
        return [m for m, _, _ in self.shown]


class RecordingDesktop(DesktopNotifier):
    def __init__(self):
        self.sent: list[dict] = []

    async def notify(self, title, message, *, timeout=5, urgency="normal", subtitle=""):
        self.sent.append(
            {"title": title, "message": message, "timeout": timeout, "urgency": urgency}
        )
        return DeliveryResult(success=True)


class RecordingWebhook(WebhookBackend):
    def __init__(self):
        self.sent: list[dict] = []
        self.disconnected = False

    async def notify(
        self,
        event_type,
        message,
        *,
        title="",
        session_id="",
        count=1,
        project_name="",
        mention=False,
    ):
        self.sent.append(
            {
                "event_type": event_type,
                "message": message,
                "title": title,
                "session_id": session_id,
                "count": count,
                "mention": mention,
            }
        )
        return DeliveryResult(success=True, queued=True)

    async def disconnect(self):
        self.disconnected = True


class FakeSessions(SessionQuery):
    """Reports a parent for the ids in `children`; `sessions` holds full records."""

    def __init__(
        self,
        children: dict[str, str] | None = None,
        sessions: dict[str, SessionInfo] | None = None,
    ):
        self.children = children or {}
        self.sessions = sessions or {}
        self.queried: list[str] = []

    async def get_session(self, session_id):
        self.queried.append(session_id)
        if session_id in self.sessions:
            return self.sessions[session_id]
        return SessionInfo(id=session_id, parent_id=self.children.get(session_id))


class FailingSessions(SessionQuery):
    async def get_session(self, session_id):
        raise ConnectionError("host unavailable")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test artifacts."""
    dirpath = tempfile.mkdtemp()
    yield Path(dirpath)
    shutil.rmtree(dirpath, ignore_errors=True)


@pytest.fixture
def fast_config() -> NotifyConfig:
    """Config with sub-second windows and delays so timing tests stay quick."""
    return NotifyConfig(
        tts_reminder_delay_seconds=0.1,
        idle_reminder_delay_seconds=0.1,
        permission_reminder_delay_seconds=0.1,
        question_reminder_delay_seconds=0.1,
        error_reminder_delay_seconds=0.1,
        permission_batch_window_ms=100,
        question_batch_window_ms=100,
        idle_debounce_ms=5000,
        max_follow_up_reminders=1,
    )


@pytest.fixture
def speech() -> RecordingSpeech:
    return RecordingSpeech()


@pytest.fixture
def sound() -> RecordingSound:
    return RecordingSound()


@pytest.fixture
def toast() -> RecordingToast:
    return RecordingToast()


@pytest.fixture
def backends(speech, sound, toast) -> Backends:
    return Backends(speech=speech, sound=sound, toast=toast)

