"""Single-shot HTTP latency probe.

A probe issues one GET request over a fresh connection and records four
timestamps: DNS start, DNS end, connect start and first response byte.

- dns_lookup_time = dns_end - dns_start
- response_time = first_byte - connect_start
- round_trip_time = body read complete - request start

DNS is timed with an explicit resolver call just before the request, and the
request then goes to the resolved address with the original ``Host`` header
(and SNI name for https), so the name is resolved once. Connect and first-byte
come from the httpcore ``trace`` extension. The numbers are a heuristic for
picking the nearest endpoint, not a benchmark.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import time

import httpx

from allocator_client.errors import EmptyTracesError, ProbeError
from allocator_client.ping.models import Trace

logger = logging.getLogger(__name__)

_CONNECT_STARTED = "connection.connect_tcp.started"
_HEADERS_RECEIVED = "receive_response_headers.complete"


def normalize_target(target: str) -> str:
    """Prefix ``http://`` when the target carries no scheme."""
    if not target.startswith(("http://", "https://")):
        logger.debug("host %s does not contain valid scheme - assuming http://", target)
        return f"http://{target}"
    return target


class _TimingRecorder:
    """Collects timestamps from httpcore trace events for one request."""

    def __init__(self, log: logging.Logger) -> None:
        self._log = log
        self.connect_start: float | None = None
        self.first_byte: float | None = None

    async def __call__(self, event_name: str, info: dict) -> None:
        now = time.perf_counter()
        self._log.debug("trace event %s", event_name)
        if event_name == _CONNECT_STARTED:
            self.connect_start = now
        elif event_name.endswith(_HEADERS_RECEIVED) and self.first_byte is None:
            self.first_byte = now


class LatencyProbe:
    """Timed HTTP round trip against a probe target.

    Parameters
    ----------
    timeout_seconds:
        Overall budget for resolution, connect and the HTTP exchange.
    log:
        Logger to report progress to. Defaults to this module's logger.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._log = log or logger

    async def run(self, target: str) -> Trace:
        """Probe ``target`` once and return its trace.

        Raises
        ------
        ProbeError
            If DNS resolution, connection, or the HTTP exchange fails.
        """
        url = normalize_target(target)
        self._log.debug("starting trace on host: %s", url, extra={"probe_target": url})

        recorder = _TimingRecorder(self._log)
        request_start = time.perf_counter()
        try:
            parsed = httpx.URL(url)
            port = parsed.port or (443 if parsed.scheme == "https" else 80)

            dns_start = time.perf_counter()
            addresses = await asyncio.wait_for(
                asyncio.get_running_loop().getaddrinfo(
                    parsed.host, port, type=socket.SOCK_STREAM
                ),
                timeout=self._timeout_seconds,
            )
            dns_end = time.perf_counter()

            # connect to the resolved address so the name is looked up only once
            ip = addresses[0][4][0]
            extensions: dict = {"trace": recorder}
            if parsed.scheme == "https":
                extensions["sni_hostname"] = parsed.host

            # always a direct connection; HTTP_PROXY and friends are ignored
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, trust_env=False
            ) as client:
                response = await client.get(
                    parsed.copy_with(host=f"[{ip}]" if ":" in ip else ip),
                    headers={"Host": parsed.netloc.decode("ascii")},
                    extensions=extensions,
                )
                body = response.text
            finished = time.perf_counter()
        except (httpx.HTTPError, httpx.InvalidURL, OSError, asyncio.TimeoutError) as exc:
            self._log.debug(
                "trace failed on %s - %s", url, exc, extra={"probe_target": url}
            )
            raise ProbeError(f"trace failed on {url}: {exc}", target=url) from exc

        connect_start = recorder.connect_start or dns_end
        first_byte = recorder.first_byte or finished

        trace = Trace(
            host=url,
            dns_lookup_time=dns_end - dns_start,
            response=body,
            response_time=first_byte - connect_start,
            round_trip_time=finished - request_start,
        )
        self._log.debug(
            "trace complete for %s: response_time=%.6fs",
            url,
            trace.response_time,
            extra={"probe_target": url, "duration_ms": trace.response_time * 1000},
        )
        return trace

    async def probe_all(self, targets: list[str]) -> list[Trace]:
        """Probe every target concurrently, returning traces in input order.

        The first failing probe's ProbeError propagates.
        """
        return list(await asyncio.gather(*(self.run(t) for t in targets)))


def fastest_trace(traces: list[Trace]) -> Trace:
    """Return the trace with the lowest response_time.

    Ties go to the earliest trace in the list.

    Raises
    ------
    EmptyTracesError
        If ``traces`` is empty.
    """
    if not traces:
        raise EmptyTracesError()

    fastest = traces[0]
    for trace in traces[1:]:
        if trace.response_time < fastest.response_time:
            fastest = trace
    return fastest
