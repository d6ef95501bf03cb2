DEFAULT_API_BASE = "http://127.0.0.1:8080/api/"
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds

# Environment overrides (explicit argument > env var > default)
ENV_API_BASE = "AVPANEL_API_BASE"
ENV_TIMEOUT = "AVPANEL_TIMEOUT"

# Timing
POLL_INTERVAL_SECONDS = 2.0  # Status tick while connected
RETRY_DELAY_SECONDS = 5.0  # Re-probe delay while disconnected
SETTLE_DELAY_SECONDS = 5.0  # Completed/failed scan stays visible this long
NOTIFICATION_TTL_SECONDS = 3.0  # Auto-dismiss for the live notification
NOTIFICATION_HISTORY_SIZE = 50

# Relay contract
DAEMON_UNAVAILABLE_MARKER = "DAEMON_UNAVAILABLE"

ENDPOINT_STATUS = "status"
ENDPOINT_SCAN_STATUS = "scan/status"
ENDPOINT_SCAN_START = "scan/start"
ENDPOINT_SCAN_STOP = "scan/stop"
ENDPOINT_SCAN_HISTORY = "scan/history"
ENDPOINT_SCAN_HISTORY_CLEAR = "scan/history/clear"
ENDPOINT_THREATS = "threats"
ENDPOINT_QUARANTINE = "quarantine"
ENDPOINT_QUARANTINE_CLEANUP = "quarantine/cleanup"
ENDPOINT_UPDATE_START = "update/start"
ENDPOINT_UPDATE_STATUS = "update/status"
ENDPOINT_UPDATE_VERSION = "update/version"
ENDPOINT_UPDATE_HISTORY = "update/history"
ENDPOINT_CONFIG = "config"

# Signature versions
UNKNOWN_VERSION = "unknown"
UNKNOWN_VERSION_ALIASES = frozenset({UNKNOWN_VERSION, "未知", ""})
NO_VERSION_LABEL = "-"


# Display
PATH_DISPLAY_LENGTH = 60
