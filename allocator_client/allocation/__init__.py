"""Allocation package: mutual-TLS gRPC client with retry and failover."""

from allocator_client.allocation.client import AllocationClient
from allocator_client.allocation.credentials import TLSMaterial
from allocator_client.allocation.models import Allocation, MetaPatch

__all__ = ["Allocation", "AllocationClient", "MetaPatch", "TLSMaterial"]
