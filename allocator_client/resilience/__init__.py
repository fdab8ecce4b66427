"""Resilience components for the allocator client."""

from allocator_client.resilience.retry import (
    TRANSITIONS,
    ExponentialBackoff,
    InvalidTransitionError,
    RetryEvent,
    RetryState,
    RetryStateMachine,
)

__all__ = [
    "TRANSITIONS",
    "ExponentialBackoff",
    "InvalidTransitionError",
    "RetryEvent",
    "RetryState",
    "RetryStateMachine",
]
