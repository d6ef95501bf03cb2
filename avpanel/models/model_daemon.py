"""Models for records mirrored from the daemon."""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from avpanel.consts import NO_VERSION_LABEL, UNKNOWN_VERSION, UNKNOWN_VERSION_ALIASES

_AGE_SUFFIX = re.compile(r"\s*days\s*old.*", re.IGNORECASE | re.DOTALL)


class ScanKind(str, Enum):
    """Kinds of scan the daemon can start."""

    FULL = "full"
    CUSTOM = "custom"


class ThreatAction(str, Enum):
    """What the daemon does with a detected threat."""

    QUARANTINE = "quarantine"
    DELETE = "delete"
    IGNORE = "ignore"
    NONE = "none"


class ThreatItem(BaseModel):
    """A detected threat."""

    id: int
    scan_id: str = ""
    file_path: str = ""
    virus_name: str = ""
    detected_time: int | None = Field(default=None, description="Unix timestamp")
    action_taken: str | None = None
    quarantine_uuid: str | None = None
    action_time: int | None = None


class QuarantineItem(BaseModel):
    """A file held in quarantine."""

    uuid: str
    original_path: str = ""
    original_name: str = ""
    file_size: int = Field(default=0, ge=0, description="Size in bytes")
    virus_name: str = ""
    quarantined_at: int | None = Field(default=None, description="Unix timestamp")
    scan_id: str = ""


class ScanHistoryEntry(BaseModel):
    """One finished or running scan as recorded by the daemon."""

    id: int
    scan_id: str = ""
    scan_type: str = ""
    paths: str = ""
    status: str = ""
    start_time: int | None = None
    end_time: int | None = None
    total_files: int = 0
    scanned_files: int = 0
    threats_found: int = 0
    error_message: str | None = None


class UpdateHistoryEntry(BaseModel):
    """One signature update run. The daemon's record shape is loose."""

    model_config = {"extra": "allow"}

    id: int | None = None
    status: str = ""
    start_time: int | None = None
    end_time: int | None = None
    error_message: str | None = None


def normalize_version(raw: Any) -> str:
    """Strip the trailing age annotation from a signature version string.

    "25 days old" becomes "25". Missing values, blank values and the unknown
    sentinel all come back as the sentinel.
    """
    if not isinstance(raw, str) or raw.strip() in UNKNOWN_VERSION_ALIASES:
        return UNKNOWN_VERSION
    bare = _AGE_SUFFIX.sub("", raw).strip()
    return bare or UNKNOWN_VERSION


class SignatureVersion(BaseModel):
    """Normalized versions of the three signature databases."""

    daily: str = UNKNOWN_VERSION
    main: str = UNKNOWN_VERSION
    bytecode: str = UNKNOWN_VERSION

    @classmethod
    def from_daemon(cls, payload: dict[str, Any] | None) -> "SignatureVersion":
        payload = payload or {}
        return cls(
            daily=normalize_version(payload.get("daily")),
            main=normalize_version(payload.get("main")),
            bytecode=normalize_version(payload.get("bytecode")),
        )

    @computed_field
    @property
    def summary(self) -> str:
        """Headline label, e.g. "Daily 27001"."""
        if self.daily == UNKNOWN_VERSION:
            return UNKNOWN_VERSION
        return f"Daily {self.daily}"

    @computed_field
    @property
    def main_label(self) -> str:
        """Secondary label, e.g. "Main 62"."""
        if self.main == UNKNOWN_VERSION:
            return NO_VERSION_LABEL
        return f"Main {self.main}"


def split_scan_paths(value: str | list[str] | None) -> list[str]:
    """Split free-text or listed scan paths into non-empty trimmed entries."""
    if value is None:
        return []
    lines = value.splitlines() if isinstance(value, str) else value
    return [line.strip() for line in lines if isinstance(line, str) and line.strip()]


class PanelConfig(BaseModel):
    """Daemon configuration as edited from the panel."""

    scan_paths: list[str] = Field(default_factory=list, description="Ordered custom scan roots")
    auto_update: bool = Field(default=True, description="Update signatures on schedule")
    quarantine_enabled: bool = Field(default=True, description="Quarantine instead of deleting")
    threat_action: ThreatAction = Field(default=ThreatAction.QUARANTINE)

    @classmethod
    def from_daemon(cls, payload: dict[str, Any]) -> "PanelConfig":
        """Build from a config reply, accepting list or newline-joined paths."""
        defaults = cls()
        auto_update = payload.get("auto_update")
        quarantine_enabled = payload.get("quarantine_enabled")
        return cls(
            scan_paths=split_scan_paths(payload.get("scan_paths")),
            auto_update=defaults.auto_update if auto_update is None else auto_update,
            quarantine_enabled=(
                defaults.quarantine_enabled if quarantine_enabled is None else quarantine_enabled
            ),
            threat_action=payload.get("threat_action") or defaults.threat_action,
        )

    def to_daemon(self) -> dict[str, Any]:
        return {
            "scan_paths": split_scan_paths(self.scan_paths),
            "auto_update": self.auto_update,
            "quarantine_enabled": self.quarantine_enabled,
            "threat_action": self.threat_action.value,
        }
