"""Periodic status polling while the daemon is reachable."""

import logging
from abc import ABC, abstractmethod

from avpanel.client.daemon_client import DaemonClient
from avpanel.consts import ENDPOINT_SCAN_STATUS, ENDPOINT_STATUS, ENDPOINT_UPDATE_STATUS
from avpanel.errors import ConnectivityError, is_endpoint_fault
from avpanel.models.model_state import AppState, ScanStatus
from avpanel.sync.connection import ConnectivityReporter
from avpanel.sync.guard import SessionGuard
from avpanel.sync.mirrors import Mirror, ResourceMirrorLoaders
from avpanel.sync.scan_lifecycle import ScanLifecycleStateMachine
from avpanel.sync.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)


class StatusFeed(ABC):
    """Source of status updates for the scan lifecycle and system mirror.

    Polling is one implementation; a push transport can provide another
    without changing the consumers.
    """

    @abstractmethod
    def start(self) -> None:
        """Begin delivering updates. Starting twice is a no-op."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering updates. Stopping twice is a no-op."""
        ...

    @property
    @abstractmethod
    def running(self) -> bool: ...


class PollingScheduler(StatusFeed):
    """One recurring tick refreshing system, scan and update status.

    Ticks never overlap: a tick that fires while the previous one is still
    waiting on the daemon is skipped. Failures inside a tick are logged and
    never shown to the user; connectivity failures go to the reporter.
    """

    def __init__(
        self,
        client: DaemonClient,
        store: AppState,
        scan_lifecycle: ScanLifecycleStateMachine,
        mirrors: ResourceMirrorLoaders,
        reporter: ConnectivityReporter,
        timers: Timers,
        guard: SessionGuard,
        period: float,
    ):
        self.client = client
        self.store = store
        self.scan_lifecycle = scan_lifecycle
        self.mirrors = mirrors
        self.reporter = reporter
        self.timers = timers
        self.guard = guard
        self.period = period
        self._handle: TimerHandle | None = None
        self._in_flight = False
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None or self.guard.closed:
            return
        logger.info(f"Polling every {self.period:.1f}s")
        self._handle = self.timers.call_every(self.period, self._on_timer)

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.info("Polling stopped")

    async def _on_timer(self) -> None:
        if self._in_flight:
            self.skipped_ticks += 1
            logger.debug("Previous tick still running, skipping")
            return
        self._in_flight = True
        try:
            await self.tick()
        finally:
            self._in_flight = False

    async def tick(self) -> None:
        """Run one polling round."""
        if self.guard.closed:
            return

        sequence = self.guard.next_sequence()
        try:
            body = await self.client.get(ENDPOINT_STATUS)
        except ConnectivityError as e:
            # The monitor owns the user-facing side of this
            logger.debug(f"Tick #{sequence} aborted: {e}")
            await self.reporter.report_unreachable(sequence, e)
            return
        except Exception as e:
            logger.warning(f"Failed to refresh system status: {e}")
            return

        # A newer observation already superseded this one
        if not await self.reporter.report_reachable(sequence) or self.guard.closed:
            return

        self.store.system.is_scanning = bool(body.get("scan_in_progress", False))

        if self.store.system.is_scanning or self.store.ui.show_progress:
            await self._poll_scan_status()

        if self.store.update.is_updating:
            await self._poll_update_status()

    async def _poll_scan_status(self) -> None:
        sequence = self.guard.next_sequence()
        try:
            body = await self.client.get(ENDPOINT_SCAN_STATUS)
            snapshot = ScanStatus.from_daemon(body)
        except ConnectivityError as e:
            logger.warning(f"Failed to refresh scan status: {e}")
            if not is_endpoint_fault(e):
                await self.reporter.report_unreachable(sequence, e)
            return
        except Exception as e:
            logger.warning(f"Failed to refresh scan status: {e}")
            return

        if not self.guard.closed:
            self.scan_lifecycle.observe(snapshot)

    async def _poll_update_status(self) -> None:
        sequence = self.guard.next_sequence()
        try:
            body = await self.client.get(ENDPOINT_UPDATE_STATUS)
        except ConnectivityError as e:
            logger.warning(f"Failed to refresh update status: {e}")
            if not is_endpoint_fault(e):
                await self.reporter.report_unreachable(sequence, e)
            return
        except Exception as e:
            logger.warning(f"Failed to refresh update status: {e}")
            return

        if self.guard.closed:
            return
        self.store.update.is_updating = bool(body.get("is_updating", False))
        if not self.store.update.is_updating:
            logger.info("Signature update finished")
            await self.mirrors.refresh(Mirror.SIGNATURE_VERSION, Mirror.UPDATE_HISTORY)
