"""User-triggered operations that mutate daemon state.

Each operation surfaces exactly one notification: success, or the daemon's
error message (falling back to a generic one). Destructive operations ask
the injected ``confirm`` capability first; declining is a silent no-op.
"""

import logging
from collections.abc import Callable
from typing import Any

from avpanel.client.daemon_client import DaemonClient
from avpanel.consts import (
    ENDPOINT_CONFIG,
    ENDPOINT_QUARANTINE,
    ENDPOINT_QUARANTINE_CLEANUP,
    ENDPOINT_SCAN_HISTORY,
    ENDPOINT_SCAN_HISTORY_CLEAR,
    ENDPOINT_SCAN_START,
    ENDPOINT_SCAN_STOP,
    ENDPOINT_THREATS,
    ENDPOINT_UPDATE_START,
)
from avpanel.errors import (
    ApplicationError,
    ConnectivityError,
    ScanPathsMissing,
    error_message,
    is_endpoint_fault,
)
from avpanel.models.model_daemon import PanelConfig, ScanKind, ThreatAction, split_scan_paths
from avpanel.models.model_state import ActiveView, AppState
from avpanel.sync.connection import ConnectivityReporter
from avpanel.sync.guard import SessionGuard
from avpanel.sync.mirrors import Mirror, ResourceMirrorLoaders
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.scan_lifecycle import ScanLifecycleStateMachine

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]

CONFIRM_DELETE_QUARANTINE = "Permanently delete this file?"
CONFIRM_CLEANUP_QUARANTINE = "Clean up the quarantine? This deletes all quarantined files."
CONFIRM_DELETE_HISTORY = "Delete this scan record?"
CONFIRM_CLEAR_HISTORY = "Clear the entire scan history?"

MSG_SCAN_PATHS_MISSING = "Configure scan paths in settings first"
MSG_CONFIG_NOT_LOADED = "Current configuration could not be loaded, nothing saved"


def _deny(prompt: str) -> bool:
    return False


class CommandDispatcher:
    """Issues mutating requests and applies their local effects."""

    def __init__(
        self,
        client: DaemonClient,
        store: AppState,
        notifier: NotificationCenter,
        mirrors: ResourceMirrorLoaders,
        scan_lifecycle: ScanLifecycleStateMachine,
        reporter: ConnectivityReporter,
        guard: SessionGuard,
        confirm: ConfirmFn | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            confirm: Asked before destructive operations. Defaults to
                     refusing, so nothing is deleted without a real prompt.
        """
        self.client = client
        self.store = store
        self.notifier = notifier
        self.mirrors = mirrors
        self.scan_lifecycle = scan_lifecycle
        self.reporter = reporter
        self.guard = guard
        self.confirm = confirm or _deny

    async def _submit(
        self,
        method: str,
        endpoint: str,
        failure_message: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Send a mutating request and check its ``success`` flag.

        Returns:
            The reply on success, None after notifying the failure (or when
            the session closed while the request was in flight).
        """
        sequence = self.guard.next_sequence()
        try:
            response = await self.client.request(method, endpoint, json=body)
            if not response.get("success", False):
                raise ApplicationError(error_message(response) or failure_message)
        except ConnectivityError as e:
            logger.warning(f"{method} {endpoint} failed: {e}")
            if self.guard.closed:
                return None
            self.notifier.error(failure_message)
            if not is_endpoint_fault(e):
                await self.reporter.report_unreachable(sequence, e, quiet=True)
            return None
        except ApplicationError as e:
            logger.warning(f"{method} {endpoint} rejected: {e.message}")
            if not self.guard.closed:
                self.notifier.error(e.message)
            return None

        if self.guard.closed:
            return None
        return response

    def _resolve_scan_paths(self, paths: str | list[str] | None) -> list[str]:
        candidates = self.store.config.scan_paths if paths is None else paths
        resolved = split_scan_paths(candidates)
        if not resolved:
            raise ScanPathsMissing(MSG_SCAN_PATHS_MISSING)
        return resolved

    async def start_scan(
        self, kind: ScanKind | str, paths: str | list[str] | None = None
    ) -> bool:
        """Start a full or custom scan.

        Args:
            kind: "full" or "custom".
            paths: Custom scan roots, as a list or newline-separated text.
                   None = use the configured scan paths.
        """
        kind = ScanKind(kind)
        body: dict[str, Any] = {"scan_type": kind.value}

        if kind == ScanKind.CUSTOM:
            try:
                body["paths"] = self._resolve_scan_paths(paths)
            except ScanPathsMissing as e:
                self.notifier.warning(str(e))
                self.store.ui.active_view = ActiveView.SETTINGS
                return False

        response = await self._submit("POST", ENDPOINT_SCAN_START, "Failed to start scan", body)
        if response is None:
            return False

        self.store.system.is_scanning = True
        self.scan_lifecycle.begin(response.get("scan_id"))
        label = "Full" if kind == ScanKind.FULL else "Custom"
        self.notifier.success(f"{label} scan started")
        await self.mirrors.refresh(Mirror.SCAN_HISTORY)
        return True

    async def stop_scan(self) -> bool:
        response = await self._submit("POST", ENDPOINT_SCAN_STOP, "Failed to stop scan")
        if response is None:
            return False

        self.store.system.is_scanning = False
        self.scan_lifecycle.stop_requested()
        self.notifier.info("Scan stopped")
        await self.mirrors.refresh(Mirror.SCAN_HISTORY)
        return True

    async def start_update(self) -> bool:
        """Start a signature update; the poller tracks it to completion."""
        response = await self._submit("POST", ENDPOINT_UPDATE_START, "Failed to start update", {})
        if response is None:
            return False

        self.store.update.is_updating = True
        self.notifier.success("Signature update started")
        return True

    async def handle_threat(self, threat_id: int | str, action: ThreatAction | str) -> bool:
        action = ThreatAction(action)
        response = await self._submit(
            "POST",
            f"{ENDPOINT_THREATS}/{threat_id}/handle",
            "Failed to handle threat",
            {"action": action.value},
        )
        if response is None:
            return False

        self.notifier.success("Threat handled")
        await self.mirrors.refresh(Mirror.THREATS, Mirror.QUARANTINE)
        return True

    async def restore_quarantine(self, uuid: str) -> bool:
        response = await self._submit(
            "POST", f"{ENDPOINT_QUARANTINE}/{uuid}/restore", "Failed to restore file"
        )
        if response is None:
            return False

        self.notifier.success("File restored")
        await self.mirrors.refresh(Mirror.QUARANTINE)
        return True

    async def delete_quarantine(self, uuid: str) -> bool:
        if not self.confirm(CONFIRM_DELETE_QUARANTINE):
            return False

        response = await self._submit(
            "DELETE", f"{ENDPOINT_QUARANTINE}/{uuid}", "Failed to delete file"
        )
        if response is None:
            return False

        self.notifier.success("File deleted")
        await self.mirrors.refresh(Mirror.QUARANTINE)
        return True

    async def cleanup_quarantine(self) -> bool:
        if not self.confirm(CONFIRM_CLEANUP_QUARANTINE):
            return False

        response = await self._submit("POST", ENDPOINT_QUARANTINE_CLEANUP, "Cleanup failed")
        if response is None:
            return False

        self.notifier.success("Quarantine cleaned up")
        await self.mirrors.refresh(Mirror.QUARANTINE)
        return True

    async def delete_scan_history(self, record_id: int | str) -> bool:
        if not self.confirm(CONFIRM_DELETE_HISTORY):
            return False

        response = await self._submit(
            "DELETE", f"{ENDPOINT_SCAN_HISTORY}/{record_id}", "Failed to delete scan record"
        )
        if response is None:
            return False

        self.notifier.success("Scan record deleted")
        await self.mirrors.refresh(Mirror.SCAN_HISTORY)
        return True

    async def clear_scan_history(self) -> bool:
        if not self.confirm(CONFIRM_CLEAR_HISTORY):
            return False

        response = await self._submit(
            "POST", ENDPOINT_SCAN_HISTORY_CLEAR, "Failed to clear scan history"
        )
        if response is None:
            return False

        self.notifier.success("Scan history cleared")
        await self.mirrors.refresh(Mirror.SCAN_HISTORY)
        return True

    async def save_config(self, config: PanelConfig) -> bool:
        response = await self._submit(
            "PUT", ENDPOINT_CONFIG, "Failed to save configuration", config.to_daemon()
        )
        if response is None:
            return False

        self.notifier.success("Configuration saved")
        await self.mirrors.refresh(Mirror.CONFIG)
        return True

    async def update_config(self, **changes: Any) -> bool:
        """Save ``changes`` merged onto the configuration mirrored from the daemon.

        Refuses when the mirror holds the blank fallback, since saving that
        would overwrite the daemon's real settings.
        """
        if not self.mirrors.is_fresh(Mirror.CONFIG):
            self.notifier.error(MSG_CONFIG_NOT_LOADED)
            return False
        return await self.save_config(self.store.config.model_copy(update=changes))
