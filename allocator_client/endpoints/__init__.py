"""Endpoint selection package: normalization and latency-based choice."""

from allocator_client.endpoints.selector import EndpointSelector
from allocator_client.endpoints.types import DEFAULT_PORT, has_port, normalize_endpoint

__all__ = ["DEFAULT_PORT", "EndpointSelector", "has_port", "normalize_endpoint"]
