"""Daemon liveness monitoring.

The monitor owns ``AppState.connection``. It probes the status endpoint,
folds transport failures and daemon-unavailable replies into a single
"unreachable" outcome, and fires its side effects only on edges:

    previous phase   new phase     effect
    CHECKING         CONNECTED     notify, initial fan-out, start polling
    UNREACHABLE      CONNECTED     notify, initial fan-out, start polling
    CHECKING         UNREACHABLE   notify, stop polling
    CONNECTED        UNREACHABLE   notify, stop polling

Repeated observations of the same phase have no effect beyond bookkeeping.
While unreachable, a re-probe is always scheduled after a fixed delay.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum

from avpanel.client.daemon_client import DaemonClient
from avpanel.consts import ENDPOINT_STATUS
from avpanel.errors import ConnectivityError
from avpanel.models.model_state import AppState
from avpanel.sync.guard import SessionGuard
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)

MSG_CONNECTED = "Connected to daemon"
MSG_CONNECTION_LOST = "Lost connection to daemon, retrying"


class ConnectionPhase(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    UNREACHABLE = "unreachable"


class ConnectivityReporter(ABC):
    """Where components report daemon reachability they observed in passing."""

    @abstractmethod
    async def report_reachable(self, sequence: int) -> bool:
        """Record a successful exchange issued at ``sequence``.

        Returns:
            True if the observation was applied, False if it was stale.
        """
        ...

    @abstractmethod
    async def report_unreachable(
        self, sequence: int, error: Exception, quiet: bool = False
    ) -> bool:
        """Record a connectivity failure issued at ``sequence``.

        Args:
            sequence: Sequence number taken when the request was issued.
            error: The connectivity error.
            quiet: Suppress the connection-lost notification (the caller
                   already told the user).

        Returns:
            True if the observation was applied, False if it was stale.
        """
        ...


class ConnectionMonitor(ConnectivityReporter):
    """Probes the daemon and drives recovery and loss effects."""

    _EDGES: dict[tuple[ConnectionPhase, ConnectionPhase], str] = {
        (ConnectionPhase.CHECKING, ConnectionPhase.CONNECTED): "_on_recovered",
        (ConnectionPhase.UNREACHABLE, ConnectionPhase.CONNECTED): "_on_recovered",
        (ConnectionPhase.CHECKING, ConnectionPhase.UNREACHABLE): "_on_lost",
        (ConnectionPhase.CONNECTED, ConnectionPhase.UNREACHABLE): "_on_lost",
    }

    def __init__(
        self,
        client: DaemonClient,
        store: AppState,
        notifier: NotificationCenter,
        timers: Timers,
        guard: SessionGuard,
        retry_delay: float,
        on_recovered: Callable[[], Awaitable[None]] | None = None,
        on_lost: Callable[[], Awaitable[None]] | None = None,
    ):
        """Initialize the monitor.

        Args:
            client: Relay client used for probes.
            store: Session state; the monitor writes ``store.connection``.
            notifier: Where edge notifications go.
            timers: Clock and scheduler.
            guard: Session teardown flag and sequence source.
            retry_delay: Seconds between probes while unreachable.
            on_recovered: Awaited on every disconnected -> connected edge.
            on_lost: Awaited on every connected -> disconnected edge.
        """
        self.client = client
        self.store = store
        self.notifier = notifier
        self.timers = timers
        self.guard = guard
        self.retry_delay = retry_delay
        self._on_recovered_callback = on_recovered
        self._on_lost_callback = on_lost
        self._phase = ConnectionPhase.CHECKING
        self._last_applied = 0
        self._retry_handle: TimerHandle | None = None

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def connected(self) -> bool:
        return self._phase == ConnectionPhase.CONNECTED

    async def probe(self) -> bool:
        """Check daemon liveness once.

        Returns:
            True if the daemon answered.
        """
        if self.guard.closed:
            return False

        sequence = self.guard.next_sequence()
        self.store.connection.checking = True
        try:
            body = await self.client.get(ENDPOINT_STATUS)
        except ConnectivityError as e:
            logger.debug(f"Probe #{sequence} failed: {e}")
            await self._observe(sequence, reachable=False, from_probe=True)
            return False

        if await self._observe(sequence, reachable=True, from_probe=True):
            self.store.system.is_scanning = bool(body.get("scan_in_progress", False))
        return True

    async def report_reachable(self, sequence: int) -> bool:
        return await self._observe(sequence, reachable=True)

    async def report_unreachable(
        self, sequence: int, error: Exception, quiet: bool = False
    ) -> bool:
        logger.debug(f"Unreachable reported for #{sequence}: {error}")
        return await self._observe(sequence, reachable=False, quiet=quiet)

    def close(self) -> None:
        self._cancel_retry()

    async def _observe(
        self,
        sequence: int,
        reachable: bool,
        from_probe: bool = False,
        quiet: bool = False,
    ) -> bool:
        if self.guard.closed:
            return False
        if sequence < self._last_applied:
            logger.debug(
                f"Discarding stale observation #{sequence} (last applied #{self._last_applied})"
            )
            return False
        self._last_applied = sequence

        previous = self._phase
        state = self.store.connection
        state.last_check = self.timers.now()
        if from_probe:
            state.checking = False

        if reachable:
            self._phase = ConnectionPhase.CONNECTED
            state.connected = True
            state.checking = False
            if from_probe:
                state.retry_count = 0
        else:
            self._phase = ConnectionPhase.UNREACHABLE
            state.connected = False
            if from_probe:
                state.retry_count += 1

        effect = self._EDGES.get((previous, self._phase))
        if effect is not None:
            logger.info(f"Connection {previous.value} -> {self._phase.value}")
            await getattr(self, effect)(quiet)

        if not reachable:
            self._schedule_retry()
        return True

    async def _on_recovered(self, quiet: bool) -> None:
        self._cancel_retry()
        if not quiet:
            self.notifier.success(MSG_CONNECTED)
        if self._on_recovered_callback is not None:
            await self._on_recovered_callback()

    async def _on_lost(self, quiet: bool) -> None:
        if not quiet:
            self.notifier.error(MSG_CONNECTION_LOST)
        if self._on_lost_callback is not None:
            await self._on_lost_callback()

    def _schedule_retry(self) -> None:
        if self.guard.closed or self._retry_handle is not None:
            return
        logger.debug(f"Re-probing in {self.retry_delay:.1f}s")
        self._retry_handle = self.timers.call_later(self.retry_delay, self._retry)

    async def _retry(self) -> None:
        self._retry_handle = None
        if self.guard.closed or self.connected:
            return
        await self.probe()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
