from __future__ import annotations

import os
import sqlite3
import sys
from typing import Any, TextIO

from .runtime import local_now

_COLORS = {
    "INFO": "\033[0;32m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
    "DEBUG": "\033[0;34m",
}
_RESET = "\033[0m"


class EventLog:
    """Console messages with severity markers, mirrored into a small sqlite journal.

    The journal lives at a transient path (see APPCTL_EVENTS_PATH) so that
    `status` run from another shell can show what the supervisor has been
    doing. Only a supervising process writes it (`persist=True`); it is
    deleted by the shutdown sequence.
    """

    def __init__(
        self,
        path: str,
        stream: TextIO | None = None,
        color: bool | None = None,
        persist: bool = False,
    ) -> None:
        self.path = path
        self.persist = persist
        self.stream = stream if stream is not None else sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color

    def _resolve_path(self) -> str:
        p = os.path.abspath(self.path)
        if os.path.isdir(p):
            p = os.path.join(p, "appctl-events.db")
        parent = os.path.dirname(p)
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)
        return p

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._resolve_path())
        conn.row_factory = sqlite3.Row
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              message TEXT NOT NULL
            )
            """
        )
        return conn

    def _marker(self, level: str) -> str:
        if not self.color:
            return f"[{level}]"
        return f"{_COLORS.get(level, '')}[{level}]{_RESET}"

    def log(self, level: str, message: str, persist: bool | None = None) -> None:
        level = level.upper()
        ts = local_now()
        print(f"{self._marker(level)} {ts} - {message}", file=self.stream, flush=True)
        if persist is None:
            persist = self.persist
        if not persist:
            return
        conn = self.connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO events (ts, level, message) VALUES (?, ?, ?)",
                    (ts, level, message),
                )
        finally:
            conn.close()

    def info(self, message: str) -> None:
        self.log("INFO", message)

    def warn(self, message: str) -> None:
        self.log("WARN", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)

    def latest(self, limit: int = 10) -> list[dict[str, Any]]:
        if not os.path.exists(self._resolve_path()):
            return []
        conn = self.connect()
        try:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
        finally:
            conn.close()

    def remove(self) -> bool:
        p = self._resolve_path()
        try:
            os.remove(p)
            return True
        except FileNotFoundError:
            return False
