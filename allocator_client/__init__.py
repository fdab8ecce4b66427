"""Test client for the Agones game server allocator service.

Exposes the latency-based endpoint selector, the retrying allocation client
and the concurrent load harness.
"""

from __future__ import annotations

__version__ = "0.1.0"

from allocator_client.allocation import Allocation, AllocationClient, MetaPatch, TLSMaterial
from allocator_client.endpoints import EndpointSelector, normalize_endpoint
from allocator_client.load import LoadHarness, LoadReport
from allocator_client.ping import LatencyProbe, Trace, fastest_trace

__all__ = [
    "Allocation",
    "AllocationClient",
    "EndpointSelector",
    "LatencyProbe",
    "LoadHarness",
    "LoadReport",
    "MetaPatch",
    "TLSMaterial",
    "Trace",
    "fastest_trace",
    "normalize_endpoint",
]
