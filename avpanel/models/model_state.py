"""Application state mirrored from the daemon.

``AppState`` is the single aggregate a session owns. Each field has exactly
one writer (see the component that owns it); everything else only reads.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from avpanel.models.model_daemon import (
    PanelConfig,
    QuarantineItem,
    ScanHistoryEntry,
    SignatureVersion,
    ThreatItem,
    UpdateHistoryEntry,
)

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    """Client-side scan lifecycle states."""

    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


# Daemon status strings that are not lifecycle states of their own
_DAEMON_SCAN_STATES = {
    "error": ScanState.FAILED,
    "stopped": ScanState.FAILED,
}


def parse_scan_state(raw: Any) -> ScanState:
    """Map a daemon scan status string onto a lifecycle state."""
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in _DAEMON_SCAN_STATES:
            return _DAEMON_SCAN_STATES[value]
        try:
            return ScanState(value)
        except ValueError:
            pass
    logger.warning(f"Unknown scan status from daemon: {raw!r}, treating as idle")
    return ScanState.IDLE


class Severity(str, Enum):
    """Notification severities."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActiveView(str, Enum):
    """Panel views a command can navigate to."""

    THREATS = "threats"
    QUARANTINE = "quarantine"
    HISTORY = "history"
    UPDATES = "updates"
    SETTINGS = "settings"


class ConnectionState(BaseModel):
    """Liveness of the daemon as last observed. Owned by ConnectionMonitor."""

    connected: bool = False
    checking: bool = True
    last_check: datetime | None = None
    retry_count: int = Field(default=0, ge=0, description="Failed probes since last success")


class ScanProgress(BaseModel):
    """Progress snapshot of a running scan."""

    percent: float = Field(default=0.0, ge=0.0)
    scanned: int = 0
    estimated_total: int = 0
    current_file: str = ""
    discovered: int | None = None
    scan_rate: float | None = None


class ThreatFile(BaseModel):
    path: str = ""
    virus: str = ""
    action: str = ""


class ThreatsSummary(BaseModel):
    """Threats found so far by the current scan."""

    count: int = Field(default=0, ge=0)
    files: list[ThreatFile] = Field(default_factory=list)


class ScanStatus(BaseModel):
    """Current scan as seen by the client. Owned by ScanLifecycleStateMachine."""

    scan_id: str | None = None
    status: ScanState = ScanState.IDLE
    daemon_status: str | None = Field(
        default=None, description="Raw status string, kept to tell 'stopped' from 'error'"
    )
    progress: ScanProgress | None = None
    threats: ThreatsSummary | None = None

    @classmethod
    def from_daemon(cls, payload: dict[str, Any]) -> "ScanStatus":
        raw_status = payload.get("status")
        return cls(
            scan_id=payload.get("scan_id"),
            status=parse_scan_state(raw_status),
            daemon_status=raw_status if isinstance(raw_status, str) else None,
            progress=payload.get("progress"),
            threats=payload.get("threats"),
        )


class SystemStatus(BaseModel):
    """Daemon-reported scan activity, independent from ScanStatus."""

    is_scanning: bool = False


class UpdateStatus(BaseModel):
    """Whether a signature update is being tracked."""

    is_updating: bool = False


class Notification(BaseModel):
    """The single live user-facing message."""

    visible: bool = False
    message: str = ""
    severity: Severity = Severity.INFO
    dismiss_at: datetime | None = None


class UiState(BaseModel):
    """Presentation flags the core is responsible for."""

    show_progress: bool = False
    active_view: ActiveView = ActiveView.THREATS


class AppState(BaseModel):
    """Everything the panel knows about the daemon, with safe defaults."""

    connection: ConnectionState = Field(default_factory=ConnectionState)
    system: SystemStatus = Field(default_factory=SystemStatus)
    scan: ScanStatus = Field(default_factory=ScanStatus)
    update: UpdateStatus = Field(default_factory=UpdateStatus)
    ui: UiState = Field(default_factory=UiState)
    notification: Notification = Field(default_factory=Notification)

    # Mirrors
    threats: list[ThreatItem] = Field(default_factory=list)
    quarantine: list[QuarantineItem] = Field(default_factory=list)
    scan_history: list[ScanHistoryEntry] = Field(default_factory=list)
    update_history: list[UpdateHistoryEntry] = Field(default_factory=list)
    signature_version: SignatureVersion = Field(default_factory=SignatureVersion)
    config: PanelConfig = Field(default_factory=PanelConfig)

    @computed_field
    @property
    def total_threats(self) -> int:
        """Threats found across all recorded scans."""
        return sum(entry.threats_found or 0 for entry in self.scan_history)
