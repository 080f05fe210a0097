from __future__ import annotations

import signal
from contextlib import contextmanager
from typing import Callable, Iterator

from docker.errors import DockerException

from . import compose_ops
from .compose_ops import ComposeError, ComposeProject
from .events import EventLog
from .health import ProbeTarget, make_strategies, probe
from .readiness import CrashWatchdog, ReadinessMonitor
from .runtime import CancelToken, Clock, ReadinessOutcome, WatchOutcome
from .settings import Settings

EXIT_OK = 0
EXIT_FAILURE = 1

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)


def _fmt_bytes(n: int) -> str:
    size = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GiB"


class AppController:
    """start / stop / restart / status / logs for one compose deployment."""

    def __init__(
        self,
        settings: Settings,
        project: ComposeProject | None = None,
        events: EventLog | None = None,
        clock: Clock | None = None,
        token: CancelToken | None = None,
        port_probe: Callable[[str, int], bool] | None = None,
        usage_reader: Callable[[], list[compose_ops.ContainerUsage]] | None = None,
        engine_check: Callable[[], bool] | None = None,
    ):
        self.settings = settings
        self.project = project or ComposeProject(settings.app_dir, settings.compose_cmd)
        self.events = events or EventLog(settings.events_path)
        self.clock = clock or Clock()
        self.token = token or CancelToken()
        if port_probe is None:
            strategies = make_strategies(settings.probe_timeout_s)
            port_probe = lambda h, p: probe(h, p, strategies)  # noqa: E731
        self.port_probe = port_probe
        self.usage_reader = usage_reader or compose_ops.resource_usage
        self.engine_check = engine_check or compose_ops.docker_available

    @property
    def target(self) -> ProbeTarget:
        return ProbeTarget(self.settings.app_host, self.settings.app_port)

    # -- commands ----------------------------------------------------------

    def start(self) -> ReadinessOutcome:
        """Bring the deployment up and wait for readiness.

        Raises DeploymentNotFound / StartFailed; a readiness timeout is only logged.
        """
        self.events.info(f"Starting {self.settings.app_name}...")
        self.project.ensure_deployment()

        self.events.info("Stopping any containers that are already running...")
        self.project.down(check=False)

        self.events.info("Starting Docker Compose services...")
        try:
            self.project.up()
        except compose_ops.StartFailed:
            self.events.error("Docker Compose failed to start")
            raise
        self.events.info("Docker Compose started")

        outcome = self.monitor().await_ready(
            self.settings.ready_attempts, self.settings.ready_interval_s, self.target
        )
        if outcome is not ReadinessOutcome.CANCELLED:
            self.status()
        return outcome

    def stop(self) -> int:
        self.events.info(f"Stopping {self.settings.app_name}...")
        if not self.project.dir_exists():
            self.events.warn("Application directory not found, trying to stop related containers anyway...")
            self.project.down(check=False)
            return EXIT_OK
        rc = self.project.down(check=False)
        if rc != 0:
            self.events.error(f"docker-compose down exited with code {rc}")
            return EXIT_OK
        self.events.info("Application stopped")
        return EXIT_OK

    def restart(self) -> ReadinessOutcome:
        self.events.info(f"Restarting {self.settings.app_name}...")
        self.stop()
        if not self.clock.sleep(self.settings.restart_pause_s, self.token):
            return ReadinessOutcome.CANCELLED
        return self.start()

    def status(self) -> int:
        s = self.settings
        self.events.info(f"=== {s.app_name} status ===")
        if not self.project.dir_exists():
            self.events.error("Application directory not found")
            return EXIT_OK

        print("")
        print("Containers:")
        print(self.project.ps_table())

        print("")
        print("Resource usage:")
        self._print_usage()

        print("")
        print("Access:")
        preview = s.preview_url()
        if preview:
            print(f"- Cloud Studio preview: {preview}")
        print(f"- Local: {s.local_url()}")

        recent = self.events.latest(5)
        if recent:
            print("")
            print("Recent events:")
            for ev in reversed(recent):
                print(f"- {ev['ts']} [{ev['level']}] {ev['message']}")

        print("")
        print("Useful commands:")
        print(f"- Logs:    {' '.join(self.project.compose_argv)} logs -f")
        print(f"- Stop:    {' '.join(self.project.compose_argv)} down")
        print(f"- Restart: {' '.join(self.project.compose_argv)} restart")
        return EXIT_OK

    def _print_usage(self) -> None:
        if not self.engine_check():
            print("Unable to read resource statistics")
            return
        try:
            usage = self.usage_reader()
        except DockerException:
            print("Unable to read resource statistics")
            return
        if not usage:
            print("No running containers")
            return
        print(f"{'NAME':<32} {'CPU %':>7} {'MEM USAGE / LIMIT':>24} {'MEM %':>7}")
        for u in usage:
            mem = f"{_fmt_bytes(u.mem_usage)} / {_fmt_bytes(u.mem_limit)}"
            print(f"{u.name:<32} {u.cpu_percent:>6.2f}% {mem:>24} {u.mem_percent:>6.2f}%")

    def logs(self) -> int:
        self.events.info(f"Showing {self.settings.app_name} logs (Ctrl+C to quit)...")
        if not self.project.dir_exists():
            self.events.error("Application directory not found")
            return EXIT_OK
        try:
            self.project.stream_logs()
        except KeyboardInterrupt:
            pass
        return EXIT_OK

    # -- supervision -------------------------------------------------------

    def monitor(self) -> ReadinessMonitor:
        return ReadinessMonitor(self.project, self.events, self.clock, self.token, self.port_probe)

    def watchdog(self) -> CrashWatchdog:
        return CrashWatchdog(self.project, self.events, self.clock, self.token)

    def supervise(self, restart: bool = False) -> int:
        """start (or restart), then watch until a crash or a shutdown signal."""
        self.events.persist = True
        try:
            with self.signal_handlers():
                try:
                    outcome = self.restart() if restart else self.start()
                except ComposeError:
                    # a signal during `up --build` kills compose too; still clean up
                    if self.token.cancelled:
                        return self.shutdown()
                    raise
                if outcome is ReadinessOutcome.CANCELLED:
                    return self.shutdown()
                self.events.info("Entering monitor mode, press Ctrl+C to stop the application...")
                result = self.watchdog().watch(self.settings.watch_interval_s)
                if result is WatchOutcome.CANCELLED:
                    return self.shutdown()
                return EXIT_FAILURE
        finally:
            self.events.persist = False

    def shutdown(self) -> int:
        """Deterministic cleanup once the token has been cancelled."""
        print("")
        self.events.warn(f"Received {self.token.reason or 'stop request'}, cleaning up...")
        self.stop()
        self.events.remove()
        # journal is gone; console only from here on
        self.events.log("INFO", "Cleanup finished", persist=False)
        return EXIT_OK

    @contextmanager
    def signal_handlers(self) -> Iterator[CancelToken]:
        def _handler(signum, frame):
            self.token.cancel(signal.Signals(signum).name)

        previous = {}
        for sig in SHUTDOWN_SIGNALS:
            previous[sig] = signal.signal(sig, _handler)
        try:
            yield self.token
        finally:
            for sig, old in previous.items():
                signal.signal(sig, old)
