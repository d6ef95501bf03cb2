"""Display helpers shared by the CLI views."""

from datetime import UTC, datetime

from avpanel.consts import PATH_DISPLAY_LENGTH

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def truncate_path(path: str | None, max_length: int = PATH_DISPLAY_LENGTH) -> str:
    """Shorten a long path by eliding its middle.

    Both ends stay readable, e.g. "/home/user/.../infected.exe". Paths that
    already fit are returned unchanged.
    """
    if not path:
        return ""
    if len(path) <= max_length:
        return path

    start_length = max_length // 2 - 2
    end_length = max_length // 2 - 1
    return f"{path[:start_length]}...{path[-end_length:]}"


def format_size(size: int | None) -> str:
    """Human-readable byte count, e.g. 1536 -> "1.5 KB"."""
    if not size or size < 0:
        return "0 B"
    value = float(size)
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
        value /= 1024
    if unit == "B":
        return f"{int(value)} B"
    return f"{value:.1f} {unit}"


def format_timestamp(timestamp: int | None) -> str:
    """Format a daemon Unix timestamp in local time, "-" when missing."""
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp, UTC).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_duration(start: int | None, end: int | None) -> str:
    """Elapsed time between two timestamps, e.g. "2m 05s"."""
    if not start or not end or end < start:
        return "-"
    minutes, seconds = divmod(end - start, 60)
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"
