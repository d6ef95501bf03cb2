"""Loaders that keep local mirrors of daemon-owned resources fresh.

All six loaders share one contract: on success the mirror is replaced with
the reply, on any failure it is reset to its default (never the previous
snapshot), the failure is logged, and nothing is shown to the user.
Network failures and daemon-unavailable replies are additionally reported to
the connection monitor.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel

from avpanel.client.daemon_client import DaemonClient
from avpanel.consts import (
    ENDPOINT_CONFIG,
    ENDPOINT_QUARANTINE,
    ENDPOINT_SCAN_HISTORY,
    ENDPOINT_THREATS,
    ENDPOINT_UPDATE_HISTORY,
    ENDPOINT_UPDATE_VERSION,
)
from avpanel.errors import ConnectivityError, is_endpoint_fault
from avpanel.models.model_daemon import (
    PanelConfig,
    QuarantineItem,
    ScanHistoryEntry,
    SignatureVersion,
    ThreatItem,
    UpdateHistoryEntry,
)
from avpanel.models.model_state import AppState
from avpanel.sync.connection import ConnectivityReporter
from avpanel.sync.guard import SessionGuard

logger = logging.getLogger(__name__)


class Mirror(str, Enum):
    """Mirrored resources. Values are the AppState attribute names."""

    THREATS = "threats"
    QUARANTINE = "quarantine"
    SCAN_HISTORY = "scan_history"
    UPDATE_HISTORY = "update_history"
    SIGNATURE_VERSION = "signature_version"
    CONFIG = "config"


def _items(body: dict[str, Any], model: type[BaseModel], *keys: str) -> list[Any]:
    """Parse the first list found under ``keys`` into ``model`` instances."""
    for key in keys:
        raw = body.get(key)
        if raw is not None:
            if not isinstance(raw, list):
                raise ValueError(f"'{key}' is not a list")
            return [model.model_validate(item) for item in raw]
    return []


def _parse_threats(body: dict[str, Any]) -> list[ThreatItem]:
    # Older daemons return the list under "threats"
    return _items(body, ThreatItem, "items", "threats")


def _parse_quarantine(body: dict[str, Any]) -> list[QuarantineItem]:
    return _items(body, QuarantineItem, "items")


def _parse_scan_history(body: dict[str, Any]) -> list[ScanHistoryEntry]:
    return _items(body, ScanHistoryEntry, "items")


def _parse_update_history(body: dict[str, Any]) -> list[UpdateHistoryEntry]:
    return _items(body, UpdateHistoryEntry, "items")


def _parse_signature_version(body: dict[str, Any]) -> SignatureVersion:
    return SignatureVersion.from_daemon(body.get("version"))


def _parse_config(body: dict[str, Any]) -> PanelConfig:
    return PanelConfig.from_daemon(body)


_LOADERS: dict[Mirror, tuple[str, Callable[[dict[str, Any]], Any], Callable[[], Any]]] = {
    Mirror.THREATS: (ENDPOINT_THREATS, _parse_threats, list),
    Mirror.QUARANTINE: (ENDPOINT_QUARANTINE, _parse_quarantine, list),
    Mirror.SCAN_HISTORY: (ENDPOINT_SCAN_HISTORY, _parse_scan_history, list),
    Mirror.UPDATE_HISTORY: (ENDPOINT_UPDATE_HISTORY, _parse_update_history, list),
    Mirror.SIGNATURE_VERSION: (ENDPOINT_UPDATE_VERSION, _parse_signature_version, SignatureVersion),
    Mirror.CONFIG: (ENDPOINT_CONFIG, _parse_config, PanelConfig),
}


class ResourceMirrorLoaders:
    """Fetch-and-replace loaders for the six mirrored resources."""

    def __init__(
        self,
        client: DaemonClient,
        store: AppState,
        guard: SessionGuard,
        reporter: ConnectivityReporter | None = None,
    ):
        self.client = client
        self.store = store
        self.guard = guard
        self.reporter = reporter
        self._fresh: dict[Mirror, bool] = {}

    async def load(self, mirror: Mirror) -> bool:
        """Refresh one mirror.

        Returns:
            True if the mirror now holds fresh data, False if it was reset.
        """
        endpoint, parse, default = _LOADERS[mirror]
        sequence = self.guard.next_sequence()

        try:
            body = await self.client.get(endpoint)
            value = parse(body)
        except ConnectivityError as e:
            logger.warning(f"Failed to load {mirror.value}: {e}")
            self._apply(mirror, default())
            self._fresh[mirror] = False
            if self.reporter is not None and not is_endpoint_fault(e) and not self.guard.closed:
                await self.reporter.report_unreachable(sequence, e)
            return False
        except Exception as e:
            logger.warning(f"Failed to load {mirror.value}: {e}")
            self._apply(mirror, default())
            self._fresh[mirror] = False
            return False

        self._apply(mirror, value)
        self._fresh[mirror] = True
        return True

    def is_fresh(self, mirror: Mirror) -> bool:
        """True if the last load of ``mirror`` succeeded, False if it holds the fallback."""
        return self._fresh.get(mirror, False)

    async def refresh(self, *mirrors: Mirror) -> dict[Mirror, bool]:
        """Refresh several mirrors concurrently."""
        results = await asyncio.gather(*(self.load(mirror) for mirror in mirrors))
        return dict(zip(mirrors, results, strict=True))

    async def load_all(self) -> dict[Mirror, bool]:
        """Initial fan-out: load every mirror, returning once all have settled."""
        results = await self.refresh(*Mirror)
        failed = [mirror.value for mirror, ok in results.items() if not ok]
        if failed:
            logger.info(f"Initial load finished with fallbacks for: {', '.join(failed)}")
        else:
            logger.info("Initial load finished")
        return results

    def _apply(self, mirror: Mirror, value: Any) -> None:
        if self.guard.closed:
            logger.debug(f"Session closed, dropping {mirror.value} result")
            return
        setattr(self.store, mirror.value, value)
