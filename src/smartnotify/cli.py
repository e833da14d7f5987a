"""
CLI for SmartNotify.

Commands:
    smartnotify init        Interactive setup
    smartnotify status      Show the effective configuration
    smartnotify test TYPE   Run one notification through every enabled channel
    smartnotify replay FILE Feed recorded host events (JSON lines) through the router
    smartnotify ai-test     Check the AI message endpoint
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from smartnotify import __version__

console = Console()

_TEST_EVENTS = {
    "idle": {"type": "session.idle", "properties": {"sessionID": "test-session"}},
    "permission": {
        "type": "permission.asked",
        "properties": {"sessionID": "test-session", "id": "test-permission"},
    },
    "question": {
        "type": "question.asked",
        "properties": {
            "sessionID": "test-session",
            "id": "test-question",
            "questions": [{"question": "Proceed?"}],
        },
    },
    "error": {
        "type": "session.error",
        "properties": {
            "sessionID": "test-session",
            "error": {"name": "TestError", "data": {"message": "This is a test error"}},
        },
    },
}


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """SmartNotify: spoken, batched and escalating alerts for agent sessions."""
    pass


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


@main.command()
def init() -> None:
    """Interactive setup: notification mode, reminders and channels."""
    from smartnotify.core import load_config, save_config
    from smartnotify.notifications.config import NotificationMode

    config = load_config()
    notif = config.notifications

    console.print("\n[bold green]SmartNotify Setup[/bold green]\n")

    mode = Prompt.ask(
        "  Notification mode",
        choices=[m.value for m in NotificationMode],
        default=notif.notification_mode.value,
    )
    notif.notification_mode = NotificationMode(mode)
    notif.enable_tts_reminder = (
        Prompt.ask("  Spoken reminders?", choices=["y", "n"], default="y") == "y"
    )
    if notif.enable_tts_reminder:
        notif.tts_reminder_delay_seconds = float(
            Prompt.ask("  Reminder delay (seconds)", default=str(int(notif.tts_reminder_delay_seconds)))
        )
    notif.enable_desktop_notification = (
        Prompt.ask("  Desktop notifications?", choices=["y", "n"], default="n") == "y"
    )
    url = Prompt.ask("  Discord webhook URL (optional)", default="")
    if url:
        notif.webhook.url = url
        notif.enable_webhook = True

    path = save_config(config)
    console.print(f"\n[green]>[/green] Config saved to {path}")
    console.print("[green]>[/green] Try: [bold]smartnotify test idle[/bold]\n")


@main.command()
def status() -> None:
    """Show the effective configuration."""
    from smartnotify.core import SMARTNOTIFY_CONFIG_FILE, load_config
    from smartnotify.notifications.events import NotificationType

    config = load_config()
    notif = config.notifications
    source = SMARTNOTIFY_CONFIG_FILE if SMARTNOTIFY_CONFIG_FILE.exists() else "defaults"
    console.print(f"\n[bold]SmartNotify[/bold] {__version__} ({source})\n")

    if not notif.enabled:
        console.print("[dim]Notifications are disabled.[/dim]")
        console.print(f"[dim]Enable in {SMARTNOTIFY_CONFIG_FILE} under notifications.enabled[/dim]")
        return

    console.print(f"  Mode: {notif.notification_mode.value}")
    console.print(
        f"  Follow-ups: {'on' if notif.enable_follow_up_reminders else 'off'}"
        f" (max {notif.max_follow_up_reminders}, x{notif.reminder_backoff_multiplier})"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Type")
    table.add_column("Notify")
    table.add_column("Reminder")
    table.add_column("Delay")
    for type_ in NotificationType:
        enabled = notif.notification_enabled(type_)
        reminder = notif.reminder_enabled(type_)
        table.add_row(
            type_.value,
            "[green]on[/green]" if enabled else "[red]off[/red]",
            "[green]on[/green]" if reminder else "[red]off[/red]",
            f"{notif.reminder_delay(type_):g}s",
        )
    console.print(table)

    channels = {
        "sound": notif.enable_sound,
        "tts": notif.enable_tts,
        "toast": notif.enable_toast,
        "desktop": notif.enable_desktop_notification,
        "webhook": notif.enable_webhook,
        "ai messages": notif.ai.enabled,
    }
    for name, on in channels.items():
        state = "[green]enabled[/green]" if on else "[dim]disabled[/dim]"
        console.print(f"  [{state}] {name}")
    console.print()


# ---------------------------------------------------------------------------
# Test / replay
# ---------------------------------------------------------------------------


async def _run_events(events: list[dict], settle: float) -> None:
    from smartnotify.core import load_config
    from smartnotify.notifications.channels.console import ConsoleToast
    from smartnotify.plugin import create_plugin

    config = load_config()
    router = await create_plugin(config, toast=ConsoleToast(console), project_dir=str(Path.cwd()))
    if router is None:
        console.print("[red]Notifications are not enabled.[/red]")
        return
    try:
        for event in events:
            await router.on_event(event)
        await asyncio.sleep(settle)
        await router.drain()
    finally:
        await router.aclose()


@main.command(name="test")
@click.argument("event_type", type=click.Choice(sorted(_TEST_EVENTS)))
def send_test(event_type: str) -> None:
    """Send a test notification of EVENT_TYPE through every enabled channel."""
    from smartnotify.core import load_config

    config = load_config()
    # batched types only notify once their window has elapsed
    settle = max(
        config.notifications.permission_batch_window_ms,
        config.notifications.question_batch_window_ms,
    ) / 1000 + 0.2
    asyncio.run(_run_events([_TEST_EVENTS[event_type]], settle))
    console.print(f"[green]>[/green] Test {event_type} notification sent.")


@main.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--settle", default=1.0, show_default=True, help="Seconds to wait after the last event")
def replay(events_file: Path, settle: float) -> None:
    """Feed host events from a JSON-lines file through the router."""
    events = []
    for lineno, line in enumerate(events_file.read_text().splitlines(), start=1):
        if not line.strip():
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise click.ClickException(f"{events_file}:{lineno}: {exc.msg}")
    console.print(f"Replaying {len(events)} event(s) from {events_file}")
    asyncio.run(_run_events(events, settle))


@main.command(name="ai-test")
def ai_test() -> None:
    """Check the configured AI endpoint and generate a sample message."""
    from smartnotify.core import load_config
    from smartnotify.notifications.events import NotificationType
    from smartnotify.notifications.messages import AIMessageGenerator

    config = load_config()
    generator = AIMessageGenerator(config.notifications.ai)

    async def _test() -> None:
        result = await generator.test_connection()
        if not result["success"]:
            console.print(f"[red]x[/red] {result['message']}")
            return
        console.print(f"[green]>[/green] {result['message']}")
        for model in result.get("models", [])[:10]:
            console.print(f"  - {model}")
        sample = await generator.generate(NotificationType.IDLE)
        if sample:
            console.print(f"\n  Sample: [italic]{sample}[/italic]")
        else:
            console.print("\n[yellow]Endpoint reachable but no usable message was generated.[/yellow]")

    asyncio.run(_test())


if __name__ == "__main__":
    main()
