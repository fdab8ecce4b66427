"""Load testing package: staggered concurrent allocate-and-connect units."""

from allocator_client.load.harness import LoadHarness, LoadReport
from allocator_client.load.session import GameServerSession, Protocol, parse_protocol

__all__ = ["GameServerSession", "LoadHarness", "LoadReport", "Protocol", "parse_protocol"]
