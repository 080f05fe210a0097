from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Event


def local_now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class ReadinessOutcome(str, Enum):
    READY = "ready"
    DEGRADED_TIMEOUT = "degraded_timeout"
    CANCELLED = "cancelled"


class WatchOutcome(str, Enum):
    CRASHED = "crashed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollSnapshot:
    attempt: int
    total: int
    running: int
    port_ok: bool = False

    @property
    def all_running(self) -> bool:
        return self.total > 0 and self.running == self.total


class CancelToken:
    """Set from a signal handler; polling loops check it at every sleep point."""

    def __init__(self) -> None:
        self._event = Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if self.reason is None:
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


class Clock:
    """Real clock. Sleeps wake up early when the token is cancelled."""

    def sleep(self, seconds: float, token: CancelToken | None = None) -> bool:
        """Sleep for `seconds`. Returns False if the token fired before or during the sleep."""
        if token is None:
            time.sleep(max(0.0, seconds))
            return True
        if token.cancelled:
            return False
        return not token.wait(max(0.0, seconds))
