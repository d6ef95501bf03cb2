"""Wires the sync components around one application state."""

import asyncio
import logging

from avpanel.client.daemon_client import DaemonClient
from avpanel.models.model_settings import SessionSettings
from avpanel.models.model_state import AppState
from avpanel.sync.commands import CommandDispatcher, ConfirmFn
from avpanel.sync.connection import ConnectionMonitor
from avpanel.sync.guard import SessionGuard
from avpanel.sync.mirrors import ResourceMirrorLoaders
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.polling import PollingScheduler
from avpanel.sync.scan_lifecycle import ScanLifecycleStateMachine
from avpanel.sync.timers import AsyncioTimers, Timers

logger = logging.getLogger(__name__)


class PanelSession:
    """A live view of the daemon.

    ``start()`` begins probing. The first successful probe loads every mirror
    and starts polling; losing the daemon stops polling until a re-probe
    succeeds. ``close()`` cancels all timers, after which late replies are
    dropped instead of being applied.

    Usage:
        async with PanelSession(confirm=ask_user) as session:
            await session.start()
            await session.commands.start_scan("full")
    """

    def __init__(
        self,
        client: DaemonClient | None = None,
        settings: SessionSettings | None = None,
        timers: Timers | None = None,
        confirm: ConfirmFn | None = None,
    ):
        self.settings = settings or SessionSettings()
        self.client = client or DaemonClient(unavailable_marker=self.settings.unavailable_marker)
        self.timers = timers or AsyncioTimers()
        self.store = AppState()
        self.guard = SessionGuard()
        self.ready = asyncio.Event()

        self.notifications = NotificationCenter(
            self.store,
            self.timers,
            ttl=self.settings.notification_ttl,
            history_size=self.settings.notification_history,
        )
        self.monitor = ConnectionMonitor(
            self.client,
            self.store,
            self.notifications,
            self.timers,
            self.guard,
            retry_delay=self.settings.retry_delay,
            on_recovered=self._on_recovered,
            on_lost=self._on_lost,
        )
        self.mirrors = ResourceMirrorLoaders(self.client, self.store, self.guard, self.monitor)
        self.scan_lifecycle = ScanLifecycleStateMachine(
            self.store,
            self.notifications,
            self.mirrors,
            self.timers,
            self.guard,
            settle_delay=self.settings.settle_delay,
        )
        self.poller = PollingScheduler(
            self.client,
            self.store,
            self.scan_lifecycle,
            self.mirrors,
            self.monitor,
            self.timers,
            self.guard,
            period=self.settings.poll_interval,
        )
        self.commands = CommandDispatcher(
            self.client,
            self.store,
            self.notifications,
            self.mirrors,
            self.scan_lifecycle,
            self.monitor,
            self.guard,
            confirm=confirm,
        )

    @property
    def closed(self) -> bool:
        return self.guard.closed

    async def start(self) -> bool:
        """Probe the daemon once; retries continue in the background.

        Returns:
            True if the daemon answered the first probe.
        """
        logger.info(f"Connecting to {self.client.api_base}")
        return await self.monitor.probe()

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait until the initial fan-out has settled."""
        try:
            await asyncio.wait_for(self.ready.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def close(self) -> None:
        if self.guard.closed:
            return
        self.guard.close()
        self.poller.stop()
        self.monitor.close()
        self.scan_lifecycle.close()
        self.notifications.close()
        await self.client.aclose()
        logger.info("Session closed")

    async def _on_recovered(self) -> None:
        await self.mirrors.load_all()
        if self.guard.closed:
            return
        self.ready.set()
        # The fan-out may itself have observed the daemon going away again
        if self.monitor.connected:
            self.poller.start()

    async def _on_lost(self) -> None:
        self.poller.stop()

    async def __aenter__(self) -> "PanelSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
