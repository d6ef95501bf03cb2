"""Single-slot user notifications with auto-dismiss."""

import logging
from collections import deque
from datetime import timedelta

from avpanel.models.model_state import AppState, Notification, Severity
from avpanel.sync.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class NotificationCenter:
    """Holds at most one visible notification.

    Issuing a notification replaces the current one and cancels its pending
    auto-dismiss before scheduling a fresh one.
    """

    def __init__(
        self,
        store: AppState,
        timers: Timers,
        ttl: float,
        history_size: int = 50,
    ):
        self.store = store
        self.timers = timers
        self.ttl = ttl
        self.history: deque[Notification] = deque(maxlen=history_size)
        self._dismiss_handle: TimerHandle | None = None

    def notify(self, message: str, severity: Severity = Severity.INFO) -> Notification:
        self._cancel_dismiss()

        notification = Notification(
            visible=True,
            message=message,
            severity=severity,
            dismiss_at=self.timers.now() + timedelta(seconds=self.ttl),
        )
        self.store.notification = notification
        self.history.append(notification)
        logger.log(_LOG_LEVELS[severity], f"[{severity.value}] {message}")

        self._dismiss_handle = self.timers.call_later(self.ttl, self._expire)
        return notification

    def info(self, message: str) -> Notification:
        return self.notify(message, Severity.INFO)

    def success(self, message: str) -> Notification:
        return self.notify(message, Severity.SUCCESS)

    def warning(self, message: str) -> Notification:
        return self.notify(message, Severity.WARNING)

    def error(self, message: str) -> Notification:
        return self.notify(message, Severity.ERROR)

    def dismiss(self) -> None:
        """Hide the live notification now."""
        self._cancel_dismiss()
        self.store.notification.visible = False

    def close(self) -> None:
        self._cancel_dismiss()

    async def _expire(self) -> None:
        self._dismiss_handle = None
        self.store.notification.visible = False

    def _cancel_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
