"""Concurrent allocation load harness.

Launches ``count`` independent load units, one asyncio task each, with a
fixed delay between launches so load ramps up rather than arriving as a
burst. Each unit allocates a game server (with retry) and runs a scripted
session against it. A failing unit is logged and counted; it never stops its
siblings or the harness. ``run_load`` returns once every unit has finished.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from allocator_client.allocation.client import AllocationClient
from allocator_client.errors import AllocatorClientError
from allocator_client.load.session import GameServerSession, Protocol, parse_protocol

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class LoadReport:
    """Outcome counts for one harness run."""

    launched: int = 0
    allocated: int = 0
    completed: int = 0
    failed: int = 0

    def summary(self) -> str:
        return (
            f"launched={self.launched} allocated={self.allocated} "
            f"completed={self.completed} failed={self.failed}"
        )


class LoadHarness:
    """Drives concurrent allocate-and-connect cycles against the allocator.

    Parameters
    ----------
    client:
        Shared allocation client. Its failover is serialized internally.
    session:
        Runs the per-unit exchange with the allocated server.
    sleep:
        Awaitable used for the stagger between launches.
    log:
        Logger to report progress to. Defaults to this module's logger.
    """

    def __init__(
        self,
        client: AllocationClient,
        *,
        session: GameServerSession | None = None,
        sleep: Sleep = asyncio.sleep,
        log: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._log = log or logger
        self._session = session or GameServerSession(log=self._log)
        self._sleep = sleep

    async def run_load(
        self,
        count: int,
        delay: float,
        duration: float,
        protocol: str | Protocol,
    ) -> LoadReport:
        """Run ``count`` load units, ``delay`` seconds apart.

        Raises
        ------
        UnsupportedProtocolError
            Before launching anything, if ``protocol`` is not udp or tcp.
        """
        proto = parse_protocol(protocol)
        report = LoadReport()
        tasks: list[asyncio.Task[None]] = []

        for unit_id in range(count):
            tasks.append(
                asyncio.create_task(
                    self._run_unit(unit_id, duration, proto, report),
                    name=f"load-unit-{unit_id}",
                )
            )
            report.launched += 1
            if unit_id < count - 1:
                await self._sleep(delay)

        await asyncio.gather(*tasks)
        self._log.info("load test finished: %s", report.summary())
        return report

    async def _run_unit(
        self,
        unit_id: int,
        duration: float,
        protocol: Protocol,
        report: LoadReport,
    ) -> None:
        """Allocate and run one session. Never raises."""
        start = time.monotonic()
        extra: dict[str, object] = {"unit_id": unit_id, "protocol": protocol.value}

        try:
            allocation = await self._client.allocate_with_retry()
        except AllocatorClientError as exc:
            report.failed += 1
            self._log.error("%d - allocation failed: %s", unit_id, exc, extra=extra)
            return
        except Exception:  # noqa: BLE001
            report.failed += 1
            self._log.exception("%d - unexpected allocation error", unit_id, extra=extra)
            return

        report.allocated += 1
        extra["address"] = allocation.target
        self._log.info(
            "%d - got allocation %s %d. Proceeding to connection...",
            unit_id,
            allocation.address,
            allocation.port,
            extra=extra,
        )

        try:
            await self._session.run(allocation, unit_id, duration, protocol)
        except AllocatorClientError as exc:
            report.failed += 1
            self._log.error("%s", exc, extra=extra)
            return
        except Exception:  # noqa: BLE001
            report.failed += 1
            self._log.exception("%d - unexpected session error", unit_id, extra=extra)
            return

        report.completed += 1
        extra["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
        self._log.info("%d - session complete", unit_id, extra=extra)
