"""Unit tests for load sessions and the staggered load harness."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from allocator_client.allocation.models import Allocation
from allocator_client.errors import RetriesExhaustedError, SessionError, UnsupportedProtocolError
from allocator_client.load import GameServerSession, LoadHarness, LoadReport, Protocol, parse_protocol


class _FakeClient:
    """AllocationClient stand-in returning scripted outcomes in call order."""

    def __init__(self, outcomes: list) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def allocate_with_retry(self) -> Allocation:
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _allocation(port: int = 7654) -> Allocation:
    return Allocation(address="127.0.0.1", port=port)


class _UDPCollector(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.datagrams: list[bytes] = []

    def datagram_received(self, data: bytes, addr) -> None:
        self.datagrams.append(data)


class TestParseProtocol:
    def test_udp(self):
        assert parse_protocol("udp") is Protocol.UDP

    def test_tcp_any_case(self):
        assert parse_protocol("TCP") is Protocol.TCP

    def test_enum_passthrough(self):
        assert parse_protocol(Protocol.UDP) is Protocol.UDP

    def test_unknown_rejected(self):
        with pytest.raises(UnsupportedProtocolError, match=r"udp\|tcp"):
            parse_protocol("quic")


class TestGameServerSession:
    @pytest.mark.asyncio
    async def test_udp_session_against_silent_server(self):
        loop = asyncio.get_running_loop()
        transport, collector = await loop.create_datagram_endpoint(
            _UDPCollector, local_addr=("127.0.0.1", 0)
        )
        port = transport.get_extra_info("sockname")[1]
        try:
            session = GameServerSession(sleep=AsyncMock())
            await asyncio.wait_for(session.run(_allocation(port), 3, 10, Protocol.UDP), timeout=5)
            await asyncio.sleep(0.05)
        finally:
            transport.close()

        assert collector.datagrams[0] == b"Hello from process 3!"
        assert collector.datagrams[-1] == b"EXIT"
        assert b"Goodbye from process 3." in collector.datagrams

    @pytest.mark.asyncio
    async def test_tcp_session_sends_hello_and_exit(self):
        received: list[bytes] = []
        done = asyncio.Event()

        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            received.append(await reader.readline())
            writer.write(b"ACK: HELLO\n")
            await writer.drain()
            received.append(await reader.readline())
            writer.close()
            done.set()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        sleep = AsyncMock()
        try:
            await GameServerSession(sleep=sleep).run(_allocation(port), 0, 2.5, Protocol.TCP)
            await asyncio.wait_for(done.wait(), timeout=5)
        finally:
            server.close()
            await server.wait_closed()

        assert received == [b"HELLO\n", b"EXIT\n"]
        sleep.assert_awaited_once_with(2.5)

    @pytest.mark.asyncio
    async def test_tcp_missing_status_line_is_not_fatal(self):
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            await reader.readline()
            await reader.readline()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            session = GameServerSession(read_timeout_seconds=0.05, sleep=AsyncMock())
            await session.run(_allocation(port), 0, 0, Protocol.TCP)
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_tcp_refused_raises_session_error(self):
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        with pytest.raises(SessionError):
            await GameServerSession(sleep=AsyncMock()).run(_allocation(port), 1, 0, Protocol.TCP)


class TestLoadHarness:
    @pytest.mark.asyncio
    async def test_invalid_protocol_launches_nothing(self):
        client = _FakeClient([])
        with pytest.raises(UnsupportedProtocolError):
            await LoadHarness(client, sleep=AsyncMock()).run_load(3, 0, 0, "icmp")
        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_all_units_complete(self):
        client = _FakeClient([_allocation() for _ in range(3)])
        session = AsyncMock(spec=GameServerSession)
        harness = LoadHarness(client, session=session, sleep=AsyncMock())

        report = await harness.run_load(3, 0.5, 1, "udp")

        assert (report.launched, report.allocated, report.completed, report.failed) == (3, 3, 3, 0)
        assert session.run.await_count == 3
        unit_ids = sorted(c.args[1] for c in session.run.await_args_list)
        assert unit_ids == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_siblings(self):
        client = _FakeClient(
            [_allocation(), RetriesExhaustedError("max retries (1) reached"), _allocation()]
        )
        session = AsyncMock(spec=GameServerSession)
        session.run.side_effect = [None, SessionError("boom")]
        harness = LoadHarness(client, session=session, sleep=AsyncMock())

        report = await harness.run_load(3, 0, 1, Protocol.TCP)

        assert report.launched == 3
        assert report.allocated == 2
        assert report.completed == 1
        assert report.failed == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_counted(self):
        client = _FakeClient([RuntimeError("surprise")])
        harness = LoadHarness(client, session=AsyncMock(spec=GameServerSession), sleep=AsyncMock())
        report = await harness.run_load(1, 0, 0, "udp")
        assert report.failed == 1

    @pytest.mark.asyncio
    async def test_stagger_between_launches(self):
        client = _FakeClient([_allocation() for _ in range(4)])
        sleep = AsyncMock()
        harness = LoadHarness(client, session=AsyncMock(spec=GameServerSession), sleep=sleep)

        await harness.run_load(4, 2, 0, "udp")

        assert sleep.await_count == 3
        assert all(c.args[0] == 2 for c in sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_zero_count(self):
        harness = LoadHarness(_FakeClient([]), sleep=AsyncMock())
        report = await harness.run_load(0, 1, 1, "udp")
        assert report.launched == 0

    def test_summary(self):
        report = LoadReport(launched=2, allocated=2, completed=1, failed=1)
        assert report.summary() == "launched=2 allocated=2 completed=1 failed=1"
