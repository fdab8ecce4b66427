"""Error hierarchy for the allocator client.

All client-specific errors extend AllocatorClientError. The CLI catches these
errors and turns them into a non-zero exit with a readable message; load units
catch them per unit and only log.

Taxonomy:
- ConfigurationError: fatal, surfaced before any network activity
- ProbeError / NoTracesSucceededError: latency probing failures
- AllocationError: remote allocation failures after the retry policy gives up
- SessionError: failures talking to an allocated game server
"""

from __future__ import annotations


class AllocatorClientError(Exception):
    """Base error for all allocator client errors."""

    exit_code: int = 1
    message: str = "Allocator client error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(AllocatorClientError):
    """Invalid or contradictory configuration."""

    exit_code = 2
    message = "Invalid configuration"


class EndpointConfigError(ConfigurationError):
    """Neither or both of hosts and ping hosts were supplied."""

    message = "You must pass either a list of hosts or a map of hosts to ping servers"


class TLSMaterialError(ConfigurationError):
    """Missing or unparseable client certificate / key."""

    message = "Client certificate and key must be valid PEM"


class MalformedCAError(TLSMaterialError):
    """CA bundle is not PEM."""

    message = "Only PEM format is accepted for server CA"


class UnsupportedProtocolError(ConfigurationError):
    """Load-test protocol is not udp or tcp."""

    message = "protocol must be one of (udp|tcp)"


# ---------------------------------------------------------------------------
# Probe errors
# ---------------------------------------------------------------------------


class ProbeError(AllocatorClientError):
    """A single latency probe failed (DNS, connect, or HTTP exchange)."""

    message = "Latency probe failed"


class EmptyTracesError(ProbeError):
    """fastest_trace was called with no traces."""

    message = "cannot handle empty list of traces"


class NoTracesSucceededError(ProbeError):
    """Every candidate's probe failed."""

    message = "no traces succeeded, could not find a valid server"


# ---------------------------------------------------------------------------
# Allocation errors
# ---------------------------------------------------------------------------


class AllocationError(AllocatorClientError):
    """Allocation could not be obtained."""

    message = "Allocation failed"


class RetriesDisabledError(AllocationError):
    """Allocation failed and max_retries is zero."""

    message = "Allocation failed - max-retries is zero"


class RetriesExhaustedError(AllocationError):
    """Allocation failed on every permitted attempt."""

    message = "Max retries reached"


class AllocationResponseError(AllocationError):
    """The allocation service answered without a usable address/port."""

    message = "Allocation response did not contain any ports"


# ---------------------------------------------------------------------------
# Load session errors
# ---------------------------------------------------------------------------


class SessionError(AllocatorClientError):
    """Talking to an allocated game server failed."""

    message = "Game server session failed"
