"""Pydantic models for avpanel."""

from avpanel.models.model_daemon import (
    PanelConfig,
    QuarantineItem,
    ScanHistoryEntry,
    ScanKind,
    SignatureVersion,
    ThreatAction,
    ThreatItem,
    UpdateHistoryEntry,
    normalize_version,
    split_scan_paths,
)
from avpanel.models.model_settings import SessionSettings
from avpanel.models.model_state import (
    ActiveView,
    AppState,
    ConnectionState,
    Notification,
    ScanProgress,
    ScanState,
    ScanStatus,
    Severity,
    SystemStatus,
    ThreatsSummary,
    UiState,
    UpdateStatus,
    parse_scan_state,
)

__all__ = [
    # Daemon records
    "PanelConfig",
    "QuarantineItem",
    "ScanHistoryEntry",
    "ScanKind",
    "SignatureVersion",
    "ThreatAction",
    "ThreatItem",
    "UpdateHistoryEntry",
    "normalize_version",
    "split_scan_paths",
    # Session state
    "ActiveView",
    "AppState",
    "ConnectionState",
    "Notification",
    "ScanProgress",
    "ScanState",
    "ScanStatus",
    "Severity",
    "SystemStatus",
    "ThreatsSummary",
    "UiState",
    "UpdateStatus",
    "parse_scan_state",
    # Settings
    "SessionSettings",
]
