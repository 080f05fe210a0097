import io
import os
import subprocess
import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing the package)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from appctl.events import EventLog  # noqa: E402
from appctl.runtime import CancelToken  # noqa: E402
from appctl.settings import Settings  # noqa: E402


class FakeClock:
    """Records sleeps instead of sleeping. `on_sleep(n)` may cancel the token."""

    def __init__(self, on_sleep=None):
        self.sleeps = []
        self.on_sleep = on_sleep

    def sleep(self, seconds, token=None):
        self.sleeps.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))
        return not (token is not None and token.cancelled)


class ScriptedProvider:
    """Service status provider replaying (total, running) pairs.

    The position advances on every running_services() call; the last pair sticks.
    """

    def __init__(self, states, on_poll=None):
        self.states = list(states)
        self.on_poll = on_poll
        self.idx = 0
        self.calls = 0

    def _current(self):
        return self.states[min(self.idx, len(self.states) - 1)]

    def services(self):
        total, _ = self._current()
        return [f"svc{i}" for i in range(total)]

    def running_services(self):
        _, running = self._current()
        self.idx += 1
        self.calls += 1
        if self.on_poll is not None:
            self.on_poll(self.calls)
        return [f"svc{i}" for i in range(running)]

    def any_running(self):
        return bool(self.running_services())


class ScriptedRunner:
    """Stands in for subprocess.run when driving docker-compose."""

    def __init__(self, services="", running=("",), up_rc=0, down_rc=0, table="NAME  STATE", on_up=None):
        self.on_up = on_up
        self.calls = []
        self.services = services
        self.running = list(running)
        self.up_rc = up_rc
        self.down_rc = down_rc
        self.table = table

    def __call__(self, cmd, cwd=None, **kwargs):
        self.calls.append((list(cmd), cwd))
        args = list(cmd[1:])
        rc, out = 0, ""
        if args == ["ps", "--services"]:
            out = self.services
        elif args[:3] == ["ps", "--services", "--filter"]:
            out = self.running.pop(0) if len(self.running) > 1 else self.running[0]
        elif args == ["ps"]:
            out = self.table
        elif args[:1] == ["up"]:
            rc = self.up_rc
            if self.on_up is not None:
                self.on_up()
        elif args[:1] == ["down"]:
            rc = self.down_rc
        return subprocess.CompletedProcess(cmd, rc, stdout=out, stderr="")

    def commands(self):
        return [c[0][1:] for c in self.calls]


@pytest.fixture
def console():
    return io.StringIO()


@pytest.fixture
def events(tmp_path, console):
    return EventLog(str(tmp_path / "events.db"), stream=console, color=False)


@pytest.fixture
def token():
    return CancelToken()


@pytest.fixture
def app_dir(tmp_path):
    d = tmp_path / "app"
    d.mkdir()
    (d / "docker-compose.yml").write_text("services: {}\n")
    return d


@pytest.fixture
def settings(tmp_path, app_dir):
    return Settings(
        app_name="TestApp",
        app_dir=str(app_dir),
        app_port=18080,
        events_path=str(tmp_path / "events.db"),
        ready_attempts=5,
        ready_interval_s=2,
        watch_interval_s=10,
        restart_pause_s=2,
    )
