"""
Console toast. Rich terminal output standing in for the host's toast UI.

Used when the host does not provide its own toast surface (CLI replay,
`smartnotify test`).
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel

from smartnotify.notifications.channel import ToastBackend

_VARIANT_STYLE = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


class ConsoleToast(ToastBackend):
    """Rich terminal toast."""

    name: str = "console"

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    async def show(self, message: str, variant: str = "info", duration_ms: int = 5000) -> None:
        style = _VARIANT_STYLE.get(variant, "blue")
        if variant == "error":
            self._console.print(Panel(message, border_style=style))
        else:
            self._console.print(f"[bold {style}]{message}[/bold {style}]")


class HostToast(ToastBackend):
    """Forwards toasts to a host UI callable taking a ``body`` dict."""

    name: str = "host"

    def __init__(self, show_toast) -> None:
        self._show_toast = show_toast

    async def show(self, message: str, variant: str = "info", duration_ms: int = 5000) -> None:
        await self._show_toast(
            body={"message": message, "variant": variant, "duration": duration_ms}
        )
