from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Deployment
    app_name: str = "PanSou"
    app_dir: str = "/workspace/pansou"
    app_host: str = "localhost"
    app_port: int = 8080
    compose_cmd: str = "docker-compose"

    # Transient event journal, removed on shutdown
    events_path: str = "/tmp/appctl-events.db"

    # Polling knobs
    ready_attempts: int = 30
    ready_interval_s: float = 2.0
    watch_interval_s: float = 10.0
    restart_pause_s: float = 2.0
    probe_timeout_s: float = 2.0

    # Cloud preview hostname fragment, only used to print an access URL.
    codespace_name: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        d = cls()
        return cls(
            app_name=_env_str("APPCTL_APP_NAME", d.app_name),
            app_dir=_env_str("APPCTL_APP_DIR", d.app_dir),
            app_host=_env_str("APPCTL_APP_HOST", d.app_host),
            app_port=_env_int("APPCTL_APP_PORT", d.app_port),
            compose_cmd=_env_str("APPCTL_COMPOSE_CMD", d.compose_cmd),
            events_path=_env_str("APPCTL_EVENTS_PATH", d.events_path),
            ready_attempts=max(1, _env_int("APPCTL_READY_ATTEMPTS", d.ready_attempts)),
            ready_interval_s=max(0.0, _env_float("APPCTL_READY_INTERVAL_S", d.ready_interval_s)),
            watch_interval_s=max(0.1, _env_float("APPCTL_WATCH_INTERVAL_S", d.watch_interval_s)),
            restart_pause_s=max(0.0, _env_float("APPCTL_RESTART_PAUSE_S", d.restart_pause_s)),
            probe_timeout_s=max(0.1, _env_float("APPCTL_PROBE_TIMEOUT_S", d.probe_timeout_s)),
            codespace_name=os.getenv("CODESPACE_NAME") or None,
        )

    def local_url(self) -> str:
        return f"http://localhost:{self.app_port}"

    def preview_url(self) -> str | None:
        if not self.codespace_name:
            return None
        return f"https://{self.codespace_name}-{self.app_port}.app.github.dev"
