"""Latency probing: timed HTTP round trips and fastest-trace selection."""

from allocator_client.ping.models import Trace, dump_traces
from allocator_client.ping.probe import LatencyProbe, fastest_trace, normalize_target

__all__ = ["LatencyProbe", "Trace", "dump_traces", "fastest_trace", "normalize_target"]
