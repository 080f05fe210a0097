from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import docker
from docker.errors import DockerException

MANIFEST_NAMES = ("docker-compose.yml", "docker-compose.yaml")


class ComposeError(RuntimeError):
    pass


class MissingDependency(ComposeError):
    pass


class DeploymentNotFound(ComposeError):
    pass


class StartFailed(ComposeError):
    pass


class ServiceStatusProvider(Protocol):
    def services(self) -> list[str]: ...

    def running_services(self) -> list[str]: ...

    def any_running(self) -> bool: ...


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def _lines(text: str | None) -> list[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


class ComposeProject:
    """One docker-compose deployment, addressed by its working directory.

    Every query shells out again; results are never cached.
    """

    def __init__(self, app_dir: str, compose_cmd: str = "docker-compose", runner: Runner | None = None):
        self.app_dir = app_dir
        self.compose_argv = shlex.split(compose_cmd) or ["docker-compose"]
        self._runner = runner or subprocess.run

    # -- deployment checks -------------------------------------------------

    def dir_exists(self) -> bool:
        return os.path.isdir(self.app_dir)

    def manifest_path(self) -> str | None:
        for name in MANIFEST_NAMES:
            p = os.path.join(self.app_dir, name)
            if os.path.isfile(p):
                return p
        return None

    def ensure_deployment(self) -> str:
        if not self.dir_exists():
            raise DeploymentNotFound(f"Cannot change to directory: {self.app_dir}")
        manifest = self.manifest_path()
        if manifest is None:
            raise DeploymentNotFound(f"No docker-compose.yml found in {self.app_dir}")
        return manifest

    # -- raw command execution ---------------------------------------------

    def _run(self, *args: str, capture: bool = True, cwd: str | None = None) -> "subprocess.CompletedProcess[str]":
        cmd = [*self.compose_argv, *args]
        if cwd is None and self.dir_exists():
            cwd = self.app_dir
        try:
            if capture:
                return self._runner(cmd, cwd=cwd, capture_output=True, text=True, check=False)
            return self._runner(cmd, cwd=cwd, check=False)
        except FileNotFoundError as e:
            raise MissingDependency(f"{self.compose_argv[0]} is not installed") from e

    # -- status provider ---------------------------------------------------

    def services(self) -> list[str]:
        return _lines(self._run("ps", "--services").stdout)

    def running_services(self) -> list[str]:
        return _lines(self._run("ps", "--services", "--filter", "status=running").stdout)

    def any_running(self) -> bool:
        return bool(self.running_services())

    def ps_table(self) -> str:
        return (self._run("ps").stdout or "").rstrip()

    # -- lifecycle ---------------------------------------------------------

    def up(self) -> None:
        res = self._run("up", "-d", "--build", capture=False)
        if res.returncode != 0:
            raise StartFailed(f"docker-compose up exited with code {res.returncode}")

    def down(self, check: bool = True) -> int:
        """Bring the deployment down.

        With check=False a failure is reported through the return code only.
        When the directory is gone the command runs from the current directory.
        """
        res = self._run("down", capture=not check)
        if check and res.returncode != 0:
            raise ComposeError(f"docker-compose down exited with code {res.returncode}")
        return res.returncode

    def stream_logs(self) -> int:
        return self._run("logs", "-f", capture=False).returncode


def _version_of(argv: list[str], runner: Runner) -> str:
    """First version-looking token of `<tool> --version`, e.g. '24.0.7'."""
    res = runner([*argv, "--version"], capture_output=True, text=True, check=False)
    for tok in (res.stdout or "").replace(",", " ").split():
        if tok[:1].isdigit() or (tok[:1] == "v" and tok[1:2].isdigit()):
            return tok
    return (res.stdout or "").strip() or "unknown"


def check_dependencies(compose_cmd: str = "docker-compose", runner: Runner | None = None) -> dict[str, str]:
    """Make sure docker and the compose command are on PATH.

    Returns {"docker": version, "compose": version}.
    """
    runner = runner or subprocess.run
    compose_argv = shlex.split(compose_cmd) or ["docker-compose"]
    if shutil.which("docker") is None:
        raise MissingDependency("Docker is not installed; install Docker first")
    if shutil.which(compose_argv[0]) is None:
        raise MissingDependency("Docker Compose is not installed; install Docker Compose first")
    return {
        "docker": _version_of(["docker"], runner),
        "compose": _version_of(compose_argv, runner),
    }


# -- docker engine (SDK) -----------------------------------------------------


@dataclass(frozen=True)
class ContainerUsage:
    name: str
    cpu_percent: float
    mem_usage: int
    mem_limit: int

    @property
    def mem_percent(self) -> float:
        if self.mem_limit <= 0:
            return 0.0
        return round(self.mem_usage * 100.0 / self.mem_limit, 2)


def _client() -> docker.DockerClient:
    return docker.from_env()


def docker_available() -> bool:
    try:
        c = _client()
        c.ping()
        return True
    except DockerException:
        return False


def _cpu_percent(stats: dict[str, Any]) -> float:
    cpu = stats.get("cpu_stats") or {}
    pre = stats.get("precpu_stats") or {}
    cpu_delta = (cpu.get("cpu_usage") or {}).get("total_usage", 0) - (pre.get("cpu_usage") or {}).get("total_usage", 0)
    sys_delta = cpu.get("system_cpu_usage", 0) - pre.get("system_cpu_usage", 0)
    online = cpu.get("online_cpus") or len((cpu.get("cpu_usage") or {}).get("percpu_usage") or []) or 1
    if cpu_delta <= 0 or sys_delta <= 0:
        return 0.0
    return round(cpu_delta / sys_delta * online * 100.0, 2)


def usage_from_stats(name: str, stats: dict[str, Any]) -> ContainerUsage:
    mem = stats.get("memory_stats") or {}
    return ContainerUsage(
        name=name,
        cpu_percent=_cpu_percent(stats),
        mem_usage=int(mem.get("usage", 0)),
        mem_limit=int(mem.get("limit", 0)),
    )


def resource_usage() -> list[ContainerUsage]:
    """One-shot stats for every running container (like `docker stats --no-stream`)."""
    c = _client()
    return [usage_from_stats(cont.name, cont.stats(stream=False)) for cont in c.containers.list()]
