"""
Desktop notifications via the platform's own tooling:
notify-send (Linux), osascript (macOS), PowerShell toast (Windows).
"""

from __future__ import annotations

import logging

from smartnotify.notifications.channel import DeliveryResult, DesktopNotifier
from smartnotify.notifications.channels.commands import available, platform_name, run_command

logger = logging.getLogger(__name__)

APP_NAME = "SmartNotify"

_PS_TOAST = (
    "[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType=WindowsRuntime] | Out-Null;"
    "$t = [Windows.UI.Notifications.ToastNotificationManager]::GetTemplateContent([Windows.UI.Notifications.ToastTemplateType]::ToastText02);"
    "$x = $t.GetElementsByTagName('text');"
    "$x.Item(0).AppendChild($t.CreateTextNode('{title}')) | Out-Null;"
    "$x.Item(1).AppendChild($t.CreateTextNode('{message}')) | Out-Null;"
    "[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier('{app}').Show("
    "[Windows.UI.Notifications.ToastNotification]::new($t))"
)


def _escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')[:200]


def _escape_powershell(text: str) -> str:
    return text.replace("'", "''")[:200]


class CommandDesktopNotifier(DesktopNotifier):
    """Shows native desktop notifications by shelling out."""

    name: str = "desktop"

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform or platform_name()

    def build_command(
        self,
        title: str,
        message: str,
        *,
        timeout: int = 5,
        urgency: str = "normal",
        subtitle: str = "",
    ) -> list[str]:
        if self.platform == "darwin":
            script = f'display notification "{_escape_applescript(message)}" with title "{_escape_applescript(title)}"'
            if subtitle:
                script += f' subtitle "{_escape_applescript(subtitle)}"'
            return ["osascript", "-e", script]
        if self.platform == "win32":
            script = _PS_TOAST.format(
                title=_escape_powershell(title),
                message=_escape_powershell(message),
                app=APP_NAME,
            )
            return ["powershell.exe", "-NoProfile", "-Command", script]
        return [
            "notify-send",
            "-u", urgency,
            "-t", str(timeout * 1000),
            "-a", APP_NAME,
            title,
            message,
        ]

    async def notify(
        self,
        title: str,
        message: str,
        *,
        timeout: int = 5,
        urgency: str = "normal",
        subtitle: str = "",
    ) -> DeliveryResult:
        command = self.build_command(
            title, message, timeout=timeout, urgency=urgency, subtitle=subtitle
        )
        if not available(command[0]):
            return DeliveryResult(success=False, error=f"{command[0]} not found")
        logger.debug("Desktop notification: %r - %r (%s)", title, message, self.platform)
        if await run_command(*command, timeout=10):
            return DeliveryResult(success=True)
        return DeliveryResult(success=False, error=f"{command[0]} failed")
