"""Scan lifecycle tracking from polled status snapshots.

Transition effects are keyed on (previous status, new status). Terminal
effects only fire when the previous observation was ``scanning``, so polling
the same completed scan twice notifies once and settles once.
"""

import logging

from avpanel.models.model_state import AppState, ScanState, ScanStatus
from avpanel.sync.guard import SessionGuard
from avpanel.sync.mirrors import Mirror, ResourceMirrorLoaders
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)


class ScanLifecycleStateMachine:
    """Owns ``AppState.scan`` and the progress-visibility flag."""

    _TRANSITIONS: dict[tuple[ScanState, ScanState], str] = {
        (ScanState.IDLE, ScanState.SCANNING): "_enter_scanning",
        (ScanState.COMPLETED, ScanState.SCANNING): "_enter_scanning",
        (ScanState.FAILED, ScanState.SCANNING): "_enter_scanning",
        (ScanState.SCANNING, ScanState.COMPLETED): "_enter_completed",
        (ScanState.SCANNING, ScanState.FAILED): "_enter_failed",
        # The daemon reports a scan it no longer tracks (e.g. after a stop) as idle
        (ScanState.SCANNING, ScanState.IDLE): "_enter_ended",
    }

    def __init__(
        self,
        store: AppState,
        notifier: NotificationCenter,
        mirrors: ResourceMirrorLoaders,
        timers: Timers,
        guard: SessionGuard,
        settle_delay: float,
    ):
        self.store = store
        self.notifier = notifier
        self.mirrors = mirrors
        self.timers = timers
        self.guard = guard
        self.settle_delay = settle_delay
        self._settle_handle: TimerHandle | None = None
        self._stop_requested = False

    @property
    def status(self) -> ScanState:
        return self.store.scan.status

    def observe(self, snapshot: ScanStatus) -> None:
        """Replace the scan status with ``snapshot`` and run any transition effect."""
        if self.guard.closed:
            return

        previous = self.store.scan.status
        self.store.scan = snapshot

        if snapshot.status == ScanState.SCANNING:
            self.store.ui.show_progress = True

        effect = self._TRANSITIONS.get((previous, snapshot.status))
        if effect is not None:
            logger.info(f"Scan {previous.value} -> {snapshot.status.value}")
            getattr(self, effect)(snapshot)

    def begin(self, scan_id: str | None) -> None:
        """Record a scan the user just started."""
        self.observe(ScanStatus(scan_id=scan_id, status=ScanState.SCANNING))

    def stop_requested(self) -> None:
        """Record that the user stopped the scan and has already been told."""
        self._stop_requested = True

    def close(self) -> None:
        self._cancel_settle()

    def _enter_scanning(self, snapshot: ScanStatus) -> None:
        # A settle left over from the previous scan must not reset this one
        self._cancel_settle()
        self._stop_requested = False
        logger.debug(f"Tracking scan {snapshot.scan_id}")

    def _enter_completed(self, snapshot: ScanStatus) -> None:
        count = snapshot.threats.count if snapshot.threats else 0
        if count > 0:
            self.notifier.warning(f"Scan completed, {count} threats found")
        else:
            self.notifier.success("Scan completed, no threats found")
        self._schedule_settle()

    def _enter_failed(self, snapshot: ScanStatus) -> None:
        if snapshot.daemon_status == "stopped":
            if not self._stop_requested:
                self.notifier.info("Scan stopped")
        else:
            self.notifier.error("Scan failed")
        self._schedule_settle()

    def _enter_ended(self, snapshot: ScanStatus) -> None:
        self._schedule_settle()

    def _schedule_settle(self) -> None:
        self._cancel_settle()
        self._settle_handle = self.timers.call_later(self.settle_delay, self._settle)

    def _cancel_settle(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

    async def _settle(self) -> None:
        self._settle_handle = None
        if self.guard.closed:
            return
        self._stop_requested = False

        self.store.ui.show_progress = False
        self.store.scan.status = ScanState.IDLE
        self.store.scan.progress = None
        logger.debug("Scan settled back to idle")
        await self.mirrors.refresh(Mirror.SCAN_HISTORY, Mirror.THREATS)
