"""Async HTTP execution with connection-phase timings.

- execute_request: one POST with timing, never raises
- create_client: shared AsyncClient factory (one per run)

Phase timings come from the httpcore trace extension:
connect_tcp -> connecting, start_tls -> TLS handshake, send_request_* -> sending,
receive_response_headers -> waiting (TTFB), receive_response_body -> receiving.
Reused connections report 0 for connecting and TLS.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

import httpx

from .models import RequestResult

# Tuned for throughput: high connection limits, shared client.
DEFAULT_MAX_CONNECTIONS = 1000
DEFAULT_MAX_KEEPALIVE = 200
DEFAULT_KEEPALIVE_EXPIRY = 30.0
DEFAULT_TIMEOUT_SEC = 10.0
NS_TO_MS = 1_000_000
# Approximate framing bytes per header line (": " and CRLF)
HEADER_LINE_OVERHEAD = 4


class PhaseTimer:
    """httpx trace callback accumulating per-phase durations in ms."""

    __slots__ = ("_started", "durations")

    def __init__(self) -> None:
        self._started: dict[str, int] = {}
        self.durations: dict[str, float] = defaultdict(float)

    async def __call__(self, event_name: str, info: dict[str, Any]) -> None:
        prefix, _, stage = event_name.rpartition(".")
        # "http11.send_request_headers" / "connection.connect_tcp" -> phase name
        phase = prefix.split(".", 1)[-1]
        now = time.perf_counter_ns()
        if stage == "started":
            self._started[phase] = now
        elif stage in ("complete", "failed"):
            start = self._started.pop(phase, None)
            if start is not None:
                self.durations[phase] += (now - start) / NS_TO_MS

    @property
    def connecting_ms(self) -> float:
        return self.durations.get("connect_tcp", 0.0)

    @property
    def tls_handshaking_ms(self) -> float:
        return self.durations.get("start_tls", 0.0)

    @property
    def sending_ms(self) -> float:
        return self.durations.get("send_request_headers", 0.0) + self.durations.get("send_request_body", 0.0)

    @property
    def waiting_ms(self) -> float:
        return self.durations.get("receive_response_headers", 0.0)

    @property
    def receiving_ms(self) -> float:
        return self.durations.get("receive_response_body", 0.0)


def _headers_size(raw_headers: list[tuple[bytes, bytes]]) -> int:
    return sum(len(k) + len(v) + HEADER_LINE_OVERHEAD for k, v in raw_headers)


async def execute_request(
    client: httpx.AsyncClient,
    url: str,
    content: bytes,
    headers: dict[str, str],
    method: str = "POST",
) -> RequestResult:
    """Execute a single HTTP request and return result with timing.

    Success here means "a response arrived"; status and body checks are the
    caller's job. Transport errors are captured in the result, never raised.
    """
    timer = PhaseTimer()
    start_ns = time.perf_counter_ns()
    try:
        r = await client.request(
            method,
            url,
            headers=headers,
            content=content,
            extensions={"trace": timer},
        )
        elapsed_ms = (time.perf_counter_ns() - start_ns) / NS_TO_MS
        body = r.content
        return RequestResult(
            status_code=r.status_code,
            duration_ms=elapsed_ms,
            success=True,
            body=body,
            connecting_ms=timer.connecting_ms,
            tls_handshaking_ms=timer.tls_handshaking_ms,
            sending_ms=timer.sending_ms,
            waiting_ms=timer.waiting_ms,
            receiving_ms=timer.receiving_ms,
            bytes_sent=len(content) + _headers_size(r.request.headers.raw),
            bytes_received=len(body) + _headers_size(r.headers.raw),
        )
    except Exception as e:  # noqa: BLE001
        elapsed_ms = (time.perf_counter_ns() - start_ns) / NS_TO_MS
        return RequestResult(
            status_code=None,
            duration_ms=elapsed_ms,
            success=False,
            error=f"{type(e).__name__}: {e}",
            connecting_ms=timer.connecting_ms,
            tls_handshaking_ms=timer.tls_handshaking_ms,
            sending_ms=timer.sending_ms,
            bytes_sent=len(content),
        )


def create_client(
    timeout: float = DEFAULT_TIMEOUT_SEC,
    http2: bool = True,
    verify: bool = False,
    limits: httpx.Limits | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared async HTTP client. TLS verification is off unless verify=True.

    A custom transport (e.g. httpx.MockTransport) replaces http2/limits/verify handling.
    """
    limits = limits or httpx.Limits(
        max_connections=DEFAULT_MAX_CONNECTIONS,
        max_keepalive_connections=DEFAULT_MAX_KEEPALIVE,
        keepalive_expiry=DEFAULT_KEEPALIVE_EXPIRY,
    )
    return httpx.AsyncClient(
        http2=http2,
        timeout=timeout,
        limits=limits,
        verify=verify,
        transport=transport,
    )
