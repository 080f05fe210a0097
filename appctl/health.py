from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Callable, Sequence

import httpx

OK_STATUSES = frozenset({200, 301, 302})


@dataclass(frozen=True)
class ProbeTarget:
    host: str
    port: int

    @property
    def url(self) -> str:
        host = self.host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"http://{host}:{int(self.port)}/"


def tcp_probe(host: str, port: int, timeout_s: float = 2.0) -> bool:
    """True if something accepts a TCP connection on host:port."""
    try:
        with socket.create_connection((host, int(port)), timeout=timeout_s):
            return True
    except OSError:
        return False


def http_probe(
    host: str,
    port: int,
    timeout_s: float = 2.0,
    transport: httpx.BaseTransport | None = None,
) -> bool:
    """GET http://host:port/ without following redirects.

    200, 301 and 302 count as "the application answers".
    """
    url = ProbeTarget(host, port).url
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport) as client:
            resp = client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL):
        return False
    return resp.status_code in OK_STATUSES


Strategy = Callable[[str, int], bool]

DEFAULT_STRATEGIES: tuple[Strategy, ...] = (tcp_probe, http_probe)


def probe(host: str, port: int, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES) -> bool:
    """Try each strategy in order; the first success wins.

    An empty strategy list means nothing can be checked, which is a failure.
    """
    for strategy in strategies:
        if strategy(host, port):
            return True
    return False


def make_strategies(timeout_s: float) -> tuple[Strategy, ...]:
    return (
        lambda h, p: tcp_probe(h, p, timeout_s=timeout_s),
        lambda h, p: http_probe(h, p, timeout_s=timeout_s),
    )
