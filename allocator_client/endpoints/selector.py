"""Latency-based endpoint selection.

Candidates are given as an ordered mapping of allocator endpoint to probe
target (the host a latency probe is sent to). An empty probe target means the
endpoint has no latency preference.

Selection rules:
- No probe targets at all: the first candidate wins.
- Otherwise every distinct probe target is probed concurrently. Endpoints
  whose probe fails are pruned from the eligible set, and so are endpoints
  with no probe target, since they cannot be ranked.
- The fastest surviving trace is mapped back to its endpoint, which is
  returned normalized to include a port.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from allocator_client.errors import NoTracesSucceededError, ProbeError
from allocator_client.endpoints.types import normalize_endpoint
from allocator_client.ping.models import Trace
from allocator_client.ping.probe import LatencyProbe, fastest_trace

logger = logging.getLogger(__name__)


class EndpointSelector:
    """Chooses the active allocator endpoint from a set of candidates.

    Parameters
    ----------
    probe:
        Latency probe used for candidates that carry a probe target.
    log:
        Logger to report progress to. Defaults to this module's logger.
    """

    def __init__(
        self,
        probe: LatencyProbe | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._probe = probe or LatencyProbe()
        self._log = log or logger
        self._eligible: dict[str, str] = {}

    @property
    def eligible(self) -> dict[str, str]:
        """Candidates that survived the most recent selection pass."""
        return dict(self._eligible)

    async def select(self, candidates: Mapping[str, str]) -> str:
        """Pick the active endpoint.

        Raises
        ------
        NoTracesSucceededError
            If probing was required and every probe failed.
        ValueError
            If ``candidates`` is empty.
        """
        if not candidates:
            raise ValueError("at least one candidate endpoint is required")

        targets = list(dict.fromkeys(t for t in candidates.values() if t))
        if not targets:
            self._eligible = dict(candidates)
            first = next(iter(candidates))
            self._log.debug("no probe targets given, using first endpoint %s", first)
            return normalize_endpoint(first)

        results = await asyncio.gather(*(self._try_probe(t) for t in targets))
        traces_by_target: dict[str, Trace] = {
            target: trace for target, trace in zip(targets, results) if trace is not None
        }

        self._eligible = {
            endpoint: target
            for endpoint, target in candidates.items()
            if target in traces_by_target
        }
        for endpoint in candidates:
            if endpoint not in self._eligible:
                self._log.info(
                    "removing unreachable endpoint %s",
                    endpoint,
                    extra={"endpoint": endpoint, "probe_target": candidates[endpoint]},
                )

        if not traces_by_target:
            raise NoTracesSucceededError()

        fastest = fastest_trace(list(traces_by_target.values()))
        for endpoint, target in self._eligible.items():
            if traces_by_target[target] is fastest:
                chosen = normalize_endpoint(endpoint)
                self._log.info(
                    "setting fastest endpoint to %s",
                    chosen,
                    extra={"endpoint": chosen, "probe_target": target},
                )
                return chosen

        # fastest always comes from traces_by_target, which only holds eligible targets
        raise NoTracesSucceededError("unknown error resolving hosts")

    async def _try_probe(self, target: str) -> Trace | None:
        """Run one probe, turning a ProbeError into None."""
        try:
            return await self._probe.run(target)
        except ProbeError as exc:
            self._log.info(
                "trace failed on %s - %s",
                target,
                exc,
                extra={"probe_target": target},
            )
            return None
