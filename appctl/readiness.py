from __future__ import annotations

from typing import Callable

from .compose_ops import ServiceStatusProvider
from .events import EventLog
from .health import ProbeTarget, probe
from .runtime import CancelToken, Clock, PollSnapshot, ReadinessOutcome, WatchOutcome

PortProbe = Callable[[str, int], bool]


class ReadinessMonitor:
    """Polls the deployment until every service runs and the app port answers.

    States: polling -> ready | degraded_timeout (| cancelled). A timeout is
    not an error; the caller keeps going and relies on the watchdog.
    """

    def __init__(
        self,
        provider: ServiceStatusProvider,
        events: EventLog,
        clock: Clock | None = None,
        token: CancelToken | None = None,
        port_probe: PortProbe = probe,
    ):
        self.provider = provider
        self.events = events
        self.clock = clock or Clock()
        self.token = token or CancelToken()
        self.port_probe = port_probe
        self.history: list[PollSnapshot] = []

    def poll(self, attempt: int, target: ProbeTarget) -> PollSnapshot:
        total = len(self.provider.services())
        running = len(self.provider.running_services())
        snap = PollSnapshot(attempt=attempt, total=total, running=running)
        if snap.all_running:
            self.events.info(f"All {running} containers are running")
            # Only probe once the containers are up.
            snap = PollSnapshot(attempt, total, running, port_ok=self.port_probe(target.host, target.port))
        self.history.append(snap)
        return snap

    def await_ready(self, max_attempts: int, interval_s: float, target: ProbeTarget) -> ReadinessOutcome:
        self.events.info("Waiting for services to become ready...")
        max_attempts = max(1, int(max_attempts))
        for attempt in range(1, max_attempts + 1):
            if self.token.cancelled:
                return ReadinessOutcome.CANCELLED
            snap = self.poll(attempt, target)
            if self.token.cancelled:
                # the signal also hits docker-compose, so this poll is not trustworthy
                return ReadinessOutcome.CANCELLED
            if snap.all_running and snap.port_ok:
                self.events.info(f"Application port {target.port} is reachable")
                return ReadinessOutcome.READY
            self.events.info(
                f"Waiting... ({attempt}/{max_attempts}) - {snap.running}/{snap.total} containers running"
            )
            if attempt < max_attempts and not self.clock.sleep(interval_s, self.token):
                return ReadinessOutcome.CANCELLED
        self.events.warn("Application is slow to start, continuing to monitor...")
        return ReadinessOutcome.DEGRADED_TIMEOUT


class CrashWatchdog:
    """Re-queries the deployment forever; reports a crash once nothing is running."""

    def __init__(
        self,
        provider: ServiceStatusProvider,
        events: EventLog,
        clock: Clock | None = None,
        token: CancelToken | None = None,
    ):
        self.provider = provider
        self.events = events
        self.clock = clock or Clock()
        self.token = token or CancelToken()
        self.polls = 0

    def watch(self, poll_interval_s: float) -> WatchOutcome:
        while not self.token.cancelled:
            self.polls += 1
            alive = self.provider.any_running()
            if self.token.cancelled:
                break
            if not alive:
                self.events.error("Containers stopped unexpectedly")
                return WatchOutcome.CRASHED
            if not self.clock.sleep(poll_interval_s, self.token):
                break
        return WatchOutcome.CANCELLED
