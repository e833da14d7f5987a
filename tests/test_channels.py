"""Tests for the concrete channel adapters."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from conftest import RecordingSound
from smartnotify.notifications.channels.audio import CommandSoundPlayer, CommandSpeech
from smartnotify.notifications.channels.commands import run_command
from smartnotify.notifications.channels.console import ConsoleToast, HostToast
from smartnotify.notifications.channels.desktop import CommandDesktopNotifier
from smartnotify.notifications.channels.webhook import (
    DEFAULT_RETRY_DELAY,
    DiscordWebhook,
    _retry_after,
    build_embed,
    build_payload,
    validate_webhook_url,
)
from smartnotify.notifications.events import NotificationType

DISCORD_URL = "https://discord.com/api/webhooks/123/abc"


def _response(status_code=200, headers=None, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_success = 200 <= status_code < 300
    resp.headers = headers or {}
    resp.json.return_value = payload or {}
    return resp


# ---------------------------------------------------------------------------
# Discord webhook
# ---------------------------------------------------------------------------


class TestWebhookHelpers:
    def test_validate_url(self):
        assert validate_webhook_url(DISCORD_URL)
        assert validate_webhook_url("https://discordapp.com/api/webhooks/1/x")
        assert not validate_webhook_url("https://discord.com/channels/1/2")
        assert validate_webhook_url("http://localhost:8080/hook")
        assert not validate_webhook_url("ftp://example.com/hook")
        assert not validate_webhook_url("not a url")
        assert not validate_webhook_url("")

    def test_embed_fields(self):
        embed = build_embed(
            NotificationType.PERMISSION,
            "2 permission requests",
            title="Permission Required",
            session_id="abcdef123456",
            count=2,
            project_name="demo",
        )
        assert embed["title"] == "⚠️ Permission Required"
        assert embed["color"] == 0xFFAA00
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields == {
            "Project": "demo",
            "Event": "permission",
            "Count": "2",
            "Session": "abcdef12...",
        }
        assert embed["timestamp"]

    def test_embed_omits_count_of_one(self):
        embed = build_embed(NotificationType.IDLE, "done")
        names = [f["name"] for f in embed["fields"]]
        assert names == ["Event"]
        assert embed["color"] == 0x00FF00
        assert embed["title"] == "✅ Idle"

    def test_payload_mention(self):
        embed = {"title": "x"}
        assert "content" not in build_payload(embed)
        payload = build_payload(embed, username="Bot", mention=True)
        assert payload["content"] == "@everyone"
        assert payload["username"] == "Bot"
        assert payload["embeds"] == [embed]


class TestDiscordWebhook:
    @pytest.mark.asyncio
    async def test_invalid_url_not_queued(self):
        channel = DiscordWebhook("https://discord.com/nope")
        result = await channel.notify(NotificationType.IDLE, "done")
        assert not result.success
        assert result.error == "Invalid webhook URL"

    @pytest.mark.asyncio
    async def test_notify_queues_and_posts(self):
        channel = DiscordWebhook(DISCORD_URL, queue_gap=0)
        client = AsyncMock()
        client.post.return_value = _response(204)
        channel._client = client

        result = await channel.notify(NotificationType.ERROR, "boom", session_id="s1")
        assert result.success and result.queued
        await channel._queue.join()

        client.post.assert_awaited_once()
        args, kwargs = client.post.call_args
        assert args[0] == DISCORD_URL
        assert kwargs["json"]["embeds"][0]["color"] == 0xFF0000

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self):
        channel = DiscordWebhook(DISCORD_URL)
        client = AsyncMock()
        client.post.side_effect = [
            _response(429, headers={"Retry-After": "0.01"}),
            _response(204),
        ]
        channel._client = client
        result = await channel.send({"embeds": []})
        assert result.success
        assert client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_body_retry_after(self):
        channel = DiscordWebhook(DISCORD_URL)
        client = AsyncMock()
        client.post.side_effect = [
            _response(429, payload={"retry_after": 0.01}),
            _response(200),
        ]
        channel._client = client
        assert (await channel.send({})).success

    @pytest.mark.parametrize("value", [None, "soon", [1]])
    def test_unusable_body_retry_after_uses_default(self, value):
        resp = _response(429, payload={"retry_after": value})
        assert _retry_after(resp) == DEFAULT_RETRY_DELAY

    @pytest.mark.asyncio
    async def test_rate_limit_with_unusable_retry_after_still_retries(self):
        channel = DiscordWebhook(DISCORD_URL)
        client = AsyncMock()
        client.post.side_effect = [
            _response(429, payload={"retry_after": "soon"}),
            _response(204),
        ]
        channel._client = client
        with patch("smartnotify.notifications.channels.webhook.DEFAULT_RETRY_DELAY", 0.01):
            result = await channel.send({})
        assert result.success
        assert client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_worker_survives_unexpected_send_error(self, caplog):
        channel = DiscordWebhook(DISCORD_URL, queue_gap=0)
        client = AsyncMock()
        client.post.side_effect = [RuntimeError("client closed"), _response(204)]
        channel._client = client

        await channel.notify(NotificationType.IDLE, "first")
        await channel.notify(NotificationType.IDLE, "second")
        await asyncio.wait_for(channel._queue.join(), timeout=1)

        assert client.post.await_count == 2
        assert "Webhook delivery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_server_errors_retried_then_give_up(self):
        channel = DiscordWebhook(DISCORD_URL, retry_delay=0.001)
        client = AsyncMock()
        client.post.return_value = _response(502)
        channel._client = client
        result = await channel.send({})
        assert not result.success
        assert result.error == "HTTP 502"
        assert client.post.await_count == 4

    @pytest.mark.asyncio
    async def test_timeout_retried(self):
        channel = DiscordWebhook(DISCORD_URL, retry_delay=0.001)
        client = AsyncMock()
        client.post.side_effect = [httpx.ReadTimeout("slow"), _response(204)]
        channel._client = client
        assert (await channel.send({})).success

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        channel = DiscordWebhook(DISCORD_URL)
        client = AsyncMock()
        client.post.return_value = _response(400)
        channel._client = client
        result = await channel.send({})
        assert result.error == "HTTP 400"
        assert client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error(self):
        channel = DiscordWebhook(DISCORD_URL)
        client = AsyncMock()
        client.post.side_effect = httpx.ConnectError("refused")
        channel._client = client
        result = await channel.send({})
        assert not result.success

    @pytest.mark.asyncio
    async def test_temporary_client_when_not_connected(self):
        channel = DiscordWebhook(DISCORD_URL)
        mock_client = AsyncMock()
        mock_client.post.return_value = _response(204)
        with patch(
            "smartnotify.notifications.channels.webhook.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await channel.send({})
        assert result.success
        mock_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_queue_rejects(self):
        channel = DiscordWebhook(DISCORD_URL)
        for _ in range(100):
            channel._queue.put_nowait({})
        channel._worker = MagicMock(done=MagicMock(return_value=False))
        result = await channel.notify(NotificationType.IDLE, "done")
        assert not result.success
        assert result.error == "Queue full"

    @pytest.mark.asyncio
    async def test_disconnect_flushes_queue(self):
        channel = DiscordWebhook(DISCORD_URL, queue_gap=0)
        await channel.connect()
        client = AsyncMock()
        client.post.return_value = _response(204)
        await channel._client.aclose()
        channel._client = client
        await channel.notify(NotificationType.IDLE, "one")
        await channel.notify(NotificationType.IDLE, "two")
        await channel.disconnect()
        assert client.post.await_count == 2
        client.aclose.assert_awaited_once()


# ---------------------------------------------------------------------------
# Desktop
# ---------------------------------------------------------------------------


class HangingProcess:
    """A child process that only exits when killed."""

    def __init__(self):
        self.returncode = None
        self.killed = False
        self.waits = 0
        self._exited = asyncio.Event()

    def kill(self):
        self.killed = True
        self.returncode = -9
        self._exited.set()

    async def wait(self):
        self.waits += 1
        await self._exited.wait()
        return self.returncode


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_exit_status(self):
        proc = MagicMock(returncode=0)
        proc.wait = AsyncMock(return_value=0)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert await run_command("paplay", "ding.wav")
        proc.kill.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_program(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError)):
            assert not await run_command("no-such-player")

    @pytest.mark.asyncio
    async def test_timeout_kills_and_reaps(self):
        proc = HangingProcess()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert not await run_command("espeak", "hello", timeout=0.02)
        assert proc.killed
        assert proc.waits == 2

    @pytest.mark.asyncio
    async def test_cancellation_kills_and_reaps(self):
        proc = HangingProcess()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            task = asyncio.create_task(run_command("say", "hello"))
            await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        assert proc.killed
        assert proc.waits == 2


class TestDesktop:
    def test_linux_command(self):
        notifier = CommandDesktopNotifier(platform="linux")
        command = notifier.build_command("Title", "Body", timeout=10, urgency="critical")
        assert command == [
            "notify-send", "-u", "critical", "-t", "10000", "-a", "SmartNotify", "Title", "Body",
        ]

    def test_macos_command_escapes_quotes(self):
        notifier = CommandDesktopNotifier(platform="darwin")
        command = notifier.build_command('Say "hi"', "Body", subtitle="demo")
        assert command[0] == "osascript"
        assert '\\"hi\\"' in command[2]
        assert 'subtitle "demo"' in command[2]

    def test_windows_command(self):
        notifier = CommandDesktopNotifier(platform="win32")
        command = notifier.build_command("It's done", "Body")
        assert command[0] == "powershell.exe"
        assert "It''s done" in command[-1]

    @pytest.mark.asyncio
    async def test_notify_runs_command(self):
        notifier = CommandDesktopNotifier(platform="linux")
        with patch(
            "smartnotify.notifications.channels.desktop.available", return_value=True
        ), patch(
            "smartnotify.notifications.channels.desktop.run_command",
            AsyncMock(return_value=True),
        ) as run:
            result = await notifier.notify("T", "M")
        assert result.success
        assert run.await_args.args[0] == "notify-send"

    @pytest.mark.asyncio
    async def test_missing_tool(self):
        notifier = CommandDesktopNotifier(platform="linux")
        with patch("smartnotify.notifications.channels.desktop.available", return_value=False):
            result = await notifier.notify("T", "M")
        assert not result.success
        assert "not found" in result.error


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class TestSoundPlayer:
    def test_macos_uses_afplay(self):
        assert CommandSoundPlayer(platform="darwin").build_command("a.mp3") == ["afplay", "a.mp3"]

    def test_linux_prefers_first_available(self):
        player = CommandSoundPlayer(platform="linux")
        with patch(
            "smartnotify.notifications.channels.audio.available",
            side_effect=lambda p: p == "aplay",
        ):
            assert player.build_command("a.wav") == ["aplay", "-q", "a.wav"]

    @pytest.mark.asyncio
    async def test_play_loops(self):
        player = CommandSoundPlayer(platform="darwin")
        with patch(
            "smartnotify.notifications.channels.audio.run_command",
            AsyncMock(return_value=True),
        ) as run:
            await player.play("a.mp3", loops=3)
        assert run.await_count == 3

    @pytest.mark.asyncio
    async def test_play_stops_after_failure(self):
        player = CommandSoundPlayer(platform="darwin")
        with patch(
            "smartnotify.notifications.channels.audio.run_command",
            AsyncMock(return_value=False),
        ) as run:
            await player.play("a.mp3", loops=3)
        assert run.await_count == 1


class TestSpeech:
    def test_engine_commands(self):
        mac = CommandSpeech(platform="darwin", voice="Samantha", rate=200)
        assert mac.engine_command("say", "hi") == ["say", "-r", "200", "-v", "Samantha", "hi"]
        assert mac.engine_command("sapi", "hi") is None
        linux = CommandSpeech(platform="linux")
        assert linux.engine_command("say", "hi") is None
        assert linux.engine_command("nope", "hi") is None

    @pytest.mark.asyncio
    async def test_first_working_engine_wins(self):
        speech = CommandSpeech(platform="linux", engines=["say", "espeak"])
        with patch(
            "smartnotify.notifications.channels.audio.available", return_value=True
        ), patch(
            "smartnotify.notifications.channels.audio.run_command",
            AsyncMock(return_value=True),
        ) as run:
            assert await speech.speak("hello")
        assert run.await_count == 1
        assert run.await_args.args[-1] == "hello"

    @pytest.mark.asyncio
    async def test_fallback_sound_when_all_engines_fail(self):
        sound = RecordingSound()
        speech = CommandSpeech(platform="linux", engines=["espeak"], sound=sound)
        with patch(
            "smartnotify.notifications.channels.audio.available", return_value=True
        ), patch(
            "smartnotify.notifications.channels.audio.run_command",
            AsyncMock(return_value=False),
        ):
            assert await speech.speak("hello", fallback_sound="beep.mp3")
        assert sound.played == [("beep.mp3", 1)]

    @pytest.mark.asyncio
    async def test_no_engine_no_fallback(self):
        speech = CommandSpeech(platform="linux", engines=["espeak"])
        with patch("smartnotify.notifications.channels.audio.available", return_value=False):
            assert not await speech.speak("hello")

    @pytest.mark.asyncio
    async def test_force_volume_linux(self):
        speech = CommandSpeech(platform="linux", volume_level=150)
        with patch(
            "smartnotify.notifications.channels.audio.available", return_value=True
        ), patch(
            "smartnotify.notifications.channels.audio.run_command",
            AsyncMock(return_value=True),
        ) as run:
            await speech.force_volume()
        assert run.await_args.args[:4] == ("pactl", "set-sink-volume", "@DEFAULT_SINK@", "100%")


# ---------------------------------------------------------------------------
# Toasts
# ---------------------------------------------------------------------------


class TestToasts:
    @pytest.mark.asyncio
    async def test_console_toast(self):
        console = MagicMock()
        toast = ConsoleToast(console)
        await toast.show("✅ done", "success", 5000)
        console.print.assert_called_once_with("[bold green]✅ done[/bold green]")

    @pytest.mark.asyncio
    async def test_host_toast_forwards_body(self):
        show = AsyncMock()
        await HostToast(show).show("hi", "warning", 8000)
        show.assert_awaited_once_with(body={"message": "hi", "variant": "warning", "duration": 8000})
