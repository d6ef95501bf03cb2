"""Tests for the command dispatcher."""

import asyncio
from collections.abc import Callable

import pytest

from avpanel.models.model_daemon import PanelConfig, ThreatAction
from avpanel.models.model_state import ActiveView, ScanState, Severity
from avpanel.sync.commands import (
    CONFIRM_CLEANUP_QUARANTINE,
    CONFIRM_CLEAR_HISTORY,
    CONFIRM_DELETE_HISTORY,
    CONFIRM_DELETE_QUARANTINE,
    MSG_CONFIG_NOT_LOADED,
    MSG_SCAN_PATHS_MISSING,
)
from avpanel.sync.session import PanelSession

from tests.conftest import FakeDaemon


class Prompter:
    """Records confirmation prompts and answers with a fixed reply."""

    def __init__(self, answer: bool):
        self.answer = answer
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


async def _started(
    make_session: Callable[..., PanelSession], confirm: Callable[[str], bool] | None = None
) -> PanelSession:
    session = make_session(confirm=confirm)
    assert await session.start() is True
    return session


def _new_notifications(session: PanelSession, since: int) -> list[tuple[Severity, str]]:
    return [(n.severity, n.message) for n in list(session.notifications.history)[since:]]


class TestStartScan:
    @pytest.mark.asyncio
    async def test_full_scan(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"success": True, "scan_id": "s9"})

        assert await session.commands.start_scan("full") is True

        store = session.store
        assert fake_daemon.bodies("POST", "scan/start") == [{"scan_type": "full"}]
        assert store.scan.scan_id == "s9"
        assert store.scan.status == ScanState.SCANNING
        assert store.system.is_scanning is True
        assert store.ui.show_progress is True
        assert store.notification.severity == Severity.SUCCESS
        assert store.notification.message == "Full scan started"
        # Initial load plus the post-start refresh
        assert fake_daemon.count("GET", "scan/history") == 2

    @pytest.mark.asyncio
    async def test_custom_scan_uses_configured_paths(self, make_session, fake_daemon: FakeDaemon) -> None:
        fake_daemon.reply("GET", "config", {"success": True, "scan_paths": "/home\n\n  /srv  \n"})
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"success": True, "scan_id": "s10"})

        assert await session.commands.start_scan("custom") is True
        assert fake_daemon.bodies("POST", "scan/start") == [
            {"scan_type": "custom", "paths": ["/home", "/srv"]}
        ]
        assert session.store.notification.message == "Custom scan started"

    @pytest.mark.asyncio
    async def test_custom_scan_with_explicit_paths(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"success": True, "scan_id": "s11"})

        await session.commands.start_scan("custom", ["/opt/app", " "])
        assert fake_daemon.bodies("POST", "scan/start")[0]["paths"] == ["/opt/app"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("configured", [[], ["  ", ""]])
    async def test_custom_scan_without_paths_never_requests(
        self, make_session, fake_daemon: FakeDaemon, configured: list[str]
    ) -> None:
        session = await _started(make_session)
        session.store.config = PanelConfig(scan_paths=configured)
        before = len(session.notifications.history)

        assert await session.commands.start_scan("custom") is False

        assert fake_daemon.count("POST", "scan/start") == 0
        assert _new_notifications(session, before) == [(Severity.WARNING, MSG_SCAN_PATHS_MISSING)]
        assert session.store.ui.active_view == ActiveView.SETTINGS
        assert session.store.scan.status == ScanState.IDLE

    @pytest.mark.asyncio
    async def test_whitespace_only_text_paths(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        assert await session.commands.start_scan("custom", "  \n\t\n") is False
        assert fake_daemon.count("POST", "scan/start") == 0

    @pytest.mark.asyncio
    async def test_rejection_shows_server_message(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"success": False, "error": "Scan already running"})
        before = len(session.notifications.history)

        assert await session.commands.start_scan("full") is False
        assert _new_notifications(session, before) == [(Severity.ERROR, "Scan already running")]
        assert session.store.scan.status == ScanState.IDLE
        assert session.store.system.is_scanning is False

    @pytest.mark.asyncio
    async def test_rejection_without_message_uses_fallback(
        self, make_session, fake_daemon: FakeDaemon
    ) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"success": False})

        await session.commands.start_scan("full")
        assert session.store.notification.message == "Failed to start scan"

    @pytest.mark.asyncio
    async def test_connectivity_failure_notifies_once(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        before = len(session.notifications.history)
        fake_daemon.down = True

        assert await session.commands.start_scan("full") is False

        assert _new_notifications(session, before) == [(Severity.ERROR, "Failed to start scan")]
        # The monitor still learns about it, and takes over retrying
        assert session.store.connection.connected is False
        assert session.poller.running is False

    @pytest.mark.asyncio
    async def test_error_status_keeps_connection(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "scan/start", {"detail": "internal error"}, status=500)

        assert await session.commands.start_scan("full") is False
        assert session.store.notification.message == "Failed to start scan"
        assert session.store.connection.connected is True
        assert session.poller.running is True


class TestSimpleCommands:
    @pytest.mark.asyncio
    async def test_stop_scan(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        session.store.system.is_scanning = True
        fake_daemon.reply("POST", "scan/stop", {"success": True})

        assert await session.commands.stop_scan() is True
        assert session.store.system.is_scanning is False
        assert session.store.notification.message == "Scan stopped"
        assert fake_daemon.count("GET", "scan/history") == 2

    @pytest.mark.asyncio
    async def test_start_update(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "update/start", {"success": True})

        assert await session.commands.start_update() is True
        assert session.store.update.is_updating is True
        assert session.store.notification.severity == Severity.SUCCESS

    @pytest.mark.asyncio
    async def test_handle_threat(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "threats/7/handle", {"success": True})
        fake_daemon.reply("GET", "quarantine", {"success": True, "items": [{"uuid": "q-7"}]})

        assert await session.commands.handle_threat(7, ThreatAction.QUARANTINE) is True
        assert fake_daemon.bodies("POST", "threats/7/handle") == [{"action": "quarantine"}]
        assert fake_daemon.count("GET", "threats") == 2
        assert [item.uuid for item in session.store.quarantine] == ["q-7"]
        assert session.store.notification.message == "Threat handled"

    @pytest.mark.asyncio
    async def test_restore_quarantine(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "quarantine/q-1/restore", {"success": True})

        assert await session.commands.restore_quarantine("q-1") is True
        assert fake_daemon.count("GET", "quarantine") == 2

    @pytest.mark.asyncio
    async def test_save_config(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("PUT", "config", {"success": True})
        config = PanelConfig(scan_paths=["/data"], auto_update=False, threat_action=ThreatAction.DELETE)

        assert await session.commands.save_config(config) is True
        assert fake_daemon.bodies("PUT", "config") == [
            {
                "scan_paths": ["/data"],
                "auto_update": False,
                "quarantine_enabled": True,
                "threat_action": "delete",
            }
        ]
        assert fake_daemon.count("GET", "config") == 2
        assert session.store.notification.message == "Configuration saved"

    @pytest.mark.asyncio
    async def test_update_config_merges_loaded_values(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("PUT", "config", {"success": True})

        assert await session.commands.update_config(auto_update=False) is True
        assert fake_daemon.bodies("PUT", "config") == [
            {
                "scan_paths": ["/home"],
                "auto_update": False,
                "quarantine_enabled": True,
                "threat_action": "quarantine",
            }
        ]

    @pytest.mark.asyncio
    async def test_update_config_refuses_fallback(self, make_session, fake_daemon: FakeDaemon) -> None:
        fake_daemon.reply("GET", "config", {"detail": "db locked"}, status=500)
        session = await _started(make_session)

        assert await session.commands.update_config(auto_update=False) is False
        assert fake_daemon.count("PUT", "config") == 0
        assert session.store.notification.severity == Severity.ERROR
        assert session.store.notification.message == MSG_CONFIG_NOT_LOADED

    @pytest.mark.asyncio
    async def test_failed_command_does_not_refresh(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        fake_daemon.reply("POST", "quarantine/q-1/restore", {"success": False, "error": "File missing"})

        assert await session.commands.restore_quarantine("q-1") is False
        assert fake_daemon.count("GET", "quarantine") == 1
        assert session.store.notification.message == "File missing"


class TestDestructiveCommands:
    @pytest.mark.asyncio
    async def test_declined_delete_does_nothing(self, make_session, fake_daemon: FakeDaemon) -> None:
        fake_daemon.reply("GET", "quarantine", {"success": True, "items": [{"uuid": "q-1"}]})
        prompter = Prompter(answer=False)
        session = await _started(make_session, confirm=prompter)
        before_quarantine = list(session.store.quarantine)
        before_notifications = len(session.notifications.history)
        calls_before = len(fake_daemon.calls)

        assert await session.commands.delete_quarantine("q-1") is False

        assert prompter.prompts == [CONFIRM_DELETE_QUARANTINE]
        assert len(fake_daemon.calls) == calls_before
        assert session.store.quarantine == before_quarantine
        assert len(session.notifications.history) == before_notifications

    @pytest.mark.asyncio
    async def test_default_confirm_declines(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        assert await session.commands.cleanup_quarantine() is False
        assert fake_daemon.count("POST", "quarantine/cleanup") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation,args,method,path,prompt,refreshed",
        [
            ("delete_quarantine", ("q-1",), "DELETE", "quarantine/q-1", CONFIRM_DELETE_QUARANTINE, "quarantine"),
            ("cleanup_quarantine", (), "POST", "quarantine/cleanup", CONFIRM_CLEANUP_QUARANTINE, "quarantine"),
            ("delete_scan_history", (3,), "DELETE", "scan/history/3", CONFIRM_DELETE_HISTORY, "scan/history"),
            ("clear_scan_history", (), "POST", "scan/history/clear", CONFIRM_CLEAR_HISTORY, "scan/history"),
        ],
    )
    async def test_confirmed_operation(
        self,
        make_session,
        fake_daemon: FakeDaemon,
        operation: str,
        args: tuple,
        method: str,
        path: str,
        prompt: str,
        refreshed: str,
    ) -> None:
        prompter = Prompter(answer=True)
        session = await _started(make_session, confirm=prompter)
        fake_daemon.reply(method, path, {"success": True})

        assert await getattr(session.commands, operation)(*args) is True
        assert prompter.prompts == [prompt]
        assert fake_daemon.count(method, path) == 1
        assert fake_daemon.count("GET", refreshed) == 2
        assert session.store.notification.severity == Severity.SUCCESS


class TestClosedSession:
    @pytest.mark.asyncio
    async def test_reply_after_close_is_ignored(self, make_session, fake_daemon: FakeDaemon) -> None:
        session = await _started(make_session)
        before = len(session.notifications.history)
        fake_daemon.reply("POST", "scan/start", {"success": True, "scan_id": "late"})
        hold = fake_daemon.hold("POST", "scan/start")

        command = asyncio.create_task(session.commands.start_scan("full"))
        await fake_daemon.wait_called("POST", "scan/start")
        await session.close()
        hold.set()

        assert await command is False
        assert session.store.scan.scan_id is None
        assert session.store.system.is_scanning is False
        assert len(session.notifications.history) == before
