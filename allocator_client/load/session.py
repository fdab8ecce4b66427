"""Scripted sessions against an allocated game server.

TCP: send ``HELLO\\n``, read one status line, hold the connection for the
configured duration, send ``EXIT\\n`` and close.

UDP: send a hello datagram, hold for the configured duration, send a goodbye
datagram and a literal ``EXIT`` datagram, then close. Nothing is read back,
so a silent server never blocks the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from enum import Enum

from allocator_client.allocation.models import Allocation
from allocator_client.errors import SessionError, UnsupportedProtocolError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Protocol(str, Enum):
    """Transport used to talk to the allocated server."""

    UDP = "udp"
    TCP = "tcp"


def parse_protocol(value: str | Protocol) -> Protocol:
    """Map a protocol string to a Protocol.

    Raises
    ------
    UnsupportedProtocolError
        For anything other than udp or tcp.
    """
    try:
        return Protocol(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise UnsupportedProtocolError(protocol=str(value)) from None


class GameServerSession:
    """Runs the hello/hold/exit exchange for one load unit.

    Parameters
    ----------
    read_timeout_seconds:
        How long the TCP session waits for the status line after HELLO.
    sleep:
        Awaitable used to hold the session open.
    log:
        Logger to report progress to. Defaults to this module's logger.
    """

    def __init__(
        self,
        *,
        read_timeout_seconds: float = 5.0,
        sleep: Sleep = asyncio.sleep,
        log: logging.Logger | None = None,
    ) -> None:
        self._read_timeout = read_timeout_seconds
        self._sleep = sleep
        self._log = log or logger

    async def run(
        self,
        allocation: Allocation,
        unit_id: int,
        duration: float,
        protocol: Protocol,
    ) -> None:
        """Run the exchange for ``protocol``.

        Raises
        ------
        SessionError
            If the connection cannot be opened or a write fails.
        """
        try:
            if protocol is Protocol.TCP:
                await self._run_tcp(allocation, unit_id, duration)
            else:
                await self._run_udp(allocation, unit_id, duration)
        except OSError as exc:
            raise SessionError(
                f"{unit_id} - session with {allocation.target} failed: {exc}",
                unit_id=unit_id,
                address=allocation.target,
            ) from exc

    async def _run_tcp(self, allocation: Allocation, unit_id: int, duration: float) -> None:
        extra = {"unit_id": unit_id, "protocol": "tcp", "address": allocation.target}
        reader, writer = await asyncio.open_connection(allocation.address, allocation.port)
        try:
            self._log.info("%d - connected to gameserver and sending hello", unit_id, extra=extra)
            writer.write(b"HELLO\n")
            await writer.drain()

            try:
                status = await asyncio.wait_for(reader.readline(), timeout=self._read_timeout)
                self._log.debug(
                    "%d - response: %s", unit_id, status.decode(errors="replace").strip(), extra=extra
                )
            except asyncio.TimeoutError:
                self._log.warning("%d - no response to hello", unit_id, extra=extra)

            self._log.debug("%d - sleeping %s seconds to view logs", unit_id, duration, extra=extra)
            await self._sleep(duration)

            self._log.debug("%d - closing connection", unit_id, extra=extra)
            writer.write(b"EXIT\n")
            await writer.drain()
        finally:
            writer.close()
            with suppress(ConnectionError):
                await writer.wait_closed()

    async def _run_udp(self, allocation: Allocation, unit_id: int, duration: float) -> None:
        extra = {"unit_id": unit_id, "protocol": "udp", "address": allocation.target}
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            remote_addr=(allocation.address, allocation.port),
        )
        try:
            self._log.info("%d - connected to gameserver and sending hello", unit_id, extra=extra)
            transport.sendto(f"Hello from process {unit_id}!".encode())

            self._log.debug("%d - sleeping %s seconds to view logs", unit_id, duration, extra=extra)
            await self._sleep(duration)

            transport.sendto(f"Goodbye from process {unit_id}.".encode())

            self._log.debug("%d - closing connection", unit_id, extra=extra)
            transport.sendto(b"EXIT")
        finally:
            transport.close()
