"""Tunable timings for a panel session."""

from pydantic import BaseModel, Field

from avpanel.consts import (
    DAEMON_UNAVAILABLE_MARKER,
    NOTIFICATION_HISTORY_SIZE,
    NOTIFICATION_TTL_SECONDS,
    POLL_INTERVAL_SECONDS,
    RETRY_DELAY_SECONDS,
    SETTLE_DELAY_SECONDS,
)


class SessionSettings(BaseModel):
    """Intervals and limits used by the sync components."""

    poll_interval: float = Field(default=POLL_INTERVAL_SECONDS, gt=0.0, description="Seconds")
    retry_delay: float = Field(default=RETRY_DELAY_SECONDS, gt=0.0, description="Seconds")
    settle_delay: float = Field(default=SETTLE_DELAY_SECONDS, gt=0.0, description="Seconds")
    notification_ttl: float = Field(
        default=NOTIFICATION_TTL_SECONDS, gt=0.0, description="Seconds"
    )
    notification_history: int = Field(default=NOTIFICATION_HISTORY_SIZE, gt=0)
    unavailable_marker: str = Field(default=DAEMON_UNAVAILABLE_MARKER, min_length=1)
