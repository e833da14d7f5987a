"""
Plugin entry point: builds the adapters from config and returns the router
the host feeds its events into.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from smartnotify.core import SMARTNOTIFY_HOME, SmartNotifyConfig, load_config, setup_logging
from smartnotify.notifications.channel import Backends, SessionQuery, ToastBackend
from smartnotify.notifications.channels.audio import CommandSoundPlayer, CommandSpeech
from smartnotify.notifications.channels.console import HostToast
from smartnotify.notifications.channels.desktop import CommandDesktopNotifier
from smartnotify.notifications.channels.webhook import DiscordWebhook, validate_webhook_url
from smartnotify.notifications.router import EventRouter

logger = logging.getLogger(__name__)


def build_backends(
    config: SmartNotifyConfig,
    *,
    toast: ToastBackend | Callable[..., Awaitable[Any]] | None = None,
    sessions: Optional[SessionQuery] = None,
) -> Backends:
    """Instantiate the platform adapters the config asks for."""
    notify = config.notifications
    sound = CommandSoundPlayer()
    speech = CommandSpeech(
        engines=config.audio.tts_engines,
        voice=config.audio.voice,
        rate=config.audio.rate,
        volume_level=config.audio.volume_level,
        sound=sound,
    )
    if toast is not None and not isinstance(toast, ToastBackend):
        toast = HostToast(toast)

    webhook = None
    if notify.enable_webhook:
        if validate_webhook_url(notify.webhook.url):
            webhook = DiscordWebhook(
                notify.webhook.url,
                username=notify.webhook.username,
                timeout=notify.webhook.timeout,
            )
        else:
            logger.warning("Webhook enabled but URL is invalid: %r", notify.webhook.url)

    return Backends(
        speech=speech,
        sound=sound,
        toast=toast,
        desktop=CommandDesktopNotifier() if notify.enable_desktop_notification else None,
        webhook=webhook,
        sessions=sessions,
    )


async def create_plugin(
    config: SmartNotifyConfig | None = None,
    *,
    toast: ToastBackend | Callable[..., Awaitable[Any]] | None = None,
    sessions: Optional[SessionQuery] = None,
    project_dir: str = "",
    backends: Optional[Backends] = None,
) -> EventRouter | None:
    """Return an EventRouter wired to real adapters, or None when disabled."""
    config = config or load_config()
    setup_logging(config)
    if not config.notifications.enabled:
        logger.info("SmartNotify disabled by config")
        return None

    backends = backends or build_backends(config, toast=toast, sessions=sessions)
    if backends.webhook is not None:
        await backends.webhook.connect()

    project_name = config.project_name or (Path(project_dir).name if project_dir else "")
    router = EventRouter(
        config.notifications,
        backends,
        project_name=project_name,
        project_dir=project_dir,
        sound_dir=Path(config.sound_dir).expanduser() if config.sound_dir else SMARTNOTIFY_HOME,
        wake_display=config.audio.wake_monitor,
        force_volume=config.audio.force_volume,
    )
    logger.info(
        "SmartNotify ready (mode=%s, project=%s)",
        config.notifications.notification_mode.value,
        project_name or "-",
    )
    return router
