"""!
@brief Thread-safe queue of short-lived status messages.
@details Producers on any thread call :meth:`NotificationQueue.push`; the UI
loop calls :meth:`NotificationQueue.tick` with the elapsed frame time and
renders :meth:`NotificationQueue.snapshot`. Entries keep insertion order
(oldest first) and are dropped once their countdown reaches zero. Duplicate
messages are separate entries.
"""
from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import List

from . import constants, logging_ext


class Severity(str, enum.Enum):
    """!
    @brief Severity of a notification; :attr:`color` is its display tag.
    """

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    Severity.INFO: constants.ACCENT_COLORS["blue"],
    Severity.SUCCESS: constants.ACCENT_COLORS["green"],
    Severity.WARNING: constants.ACCENT_COLORS["orange"],
    Severity.ERROR: constants.ACCENT_COLORS["red"],
}


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity
    remaining: float

    @property
    def color(self) -> str:
        return self.severity.color


class NotificationQueue:
    """!
    @brief Countdown-based notification store guarded by a single lock.
    """

    def __init__(self, lifetime: float = constants.DEFAULT_NOTIFICATION_LIFETIME) -> None:
        if lifetime <= 0:
            raise ValueError("lifetime must be positive")
        self._lifetime = float(lifetime)
        self._lock = threading.Lock()
        self._entries: List[Notification] = []

    @property
    def lifetime(self) -> float:
        return self._lifetime

    def push(
        self,
        message: str,
        severity: Severity = Severity.SUCCESS,
        *,
        lifetime: float | None = None,
    ) -> Notification:
        """!
        @brief Append a notification with the default (or given) countdown.
        """

        countdown = self._lifetime if lifetime is None else float(lifetime)
        entry = Notification(message=str(message), severity=Severity(severity), remaining=countdown)
        with self._lock:
            self._entries.append(entry)
        logging_ext.get_machine_logger().info(
            "notification_push",
            extra=logging_ext.build_event_extra(
                "notification_push", text=entry.message, severity=entry.severity.value
            ),
        )
        return entry

    def tick(self, delta: float) -> int:
        """!
        @brief Advance every countdown by ``delta`` seconds and drop expired entries.
        @details ``tick(0)`` changes nothing.
        @returns Number of entries removed.
        @throws ValueError when ``delta`` is negative.
        """

        if delta < 0:
            raise ValueError("delta must not be negative")
        if delta == 0:
            return 0
        with self._lock:
            before = len(self._entries)
            self._entries = [
                Notification(entry.message, entry.severity, entry.remaining - delta)
                for entry in self._entries
                if entry.remaining - delta > 0
            ]
            return before - len(self._entries)

    def snapshot(self) -> List[Notification]:
        """!
        @brief Copy of the active notifications, oldest first.
        """

        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["Notification", "NotificationQueue", "Severity"]
