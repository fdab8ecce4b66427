"""Retry state machine with exponential backoff for allocation calls.

State machine:
- Attempting → Succeeded: the attempt returned an allocation
- Attempting → Retrying: the attempt failed and the retry budget allows another
- Attempting → Exhausted: the attempt failed and no retries remain
- Retrying → Attempting: the backoff delay has elapsed

``max_retries == 0`` disables retrying: the first failure goes straight to
Exhausted and ``retries_disabled`` tells callers apart from a spent budget.
With ``max_retries == N`` a call makes at most N + 1 attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RetryState(str, Enum):
    """Retry loop states."""

    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class RetryEvent(str, Enum):
    """Inputs that drive the retry loop."""

    SUCCESS = "success"
    FAILURE = "failure"
    RESUME = "resume"


# (state, event) -> states the machine may move to
TRANSITIONS: dict[tuple[RetryState, RetryEvent], tuple[RetryState, ...]] = {
    (RetryState.ATTEMPTING, RetryEvent.SUCCESS): (RetryState.SUCCEEDED,),
    (RetryState.ATTEMPTING, RetryEvent.FAILURE): (
        RetryState.RETRYING,
        RetryState.EXHAUSTED,
    ),
    (RetryState.RETRYING, RetryEvent.RESUME): (RetryState.ATTEMPTING,),
}


class InvalidTransitionError(RuntimeError):
    """An event arrived that the current state does not accept."""


@dataclass
class ExponentialBackoff:
    """Non-decreasing exponential delay schedule without jitter.

    Args:
        initial_interval: First delay in seconds.
        multiplier: Growth factor applied after each delay.
        max_interval: Upper bound for any single delay.
    """

    initial_interval: float = 1.0
    multiplier: float = 1.5
    max_interval: float = 60.0
    _current: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._current = self.initial_interval

    def next_delay(self) -> float:
        """Return the next delay and advance the schedule."""
        delay = min(self._current, self.max_interval)
        self._current = min(self._current * self.multiplier, self.max_interval)
        return delay


class RetryStateMachine:
    """Tracks one retrying call from first attempt to a terminal state.

    Args:
        max_retries: Number of retries allowed after the first attempt.
        backoff: Delay schedule; a fresh default schedule when omitted.
    """

    def __init__(
        self,
        max_retries: int,
        backoff: ExponentialBackoff | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = max_retries
        self._backoff = backoff or ExponentialBackoff()
        self._state = RetryState.ATTEMPTING
        self._attempts = 1
        self._failures = 0

    @property
    def state(self) -> RetryState:
        return self._state

    @property
    def attempts(self) -> int:
        """Attempts started so far, including the current one."""
        return self._attempts

    @property
    def retries_left(self) -> int:
        return max(self._max_retries - self._failures, 0)

    @property
    def retries_disabled(self) -> bool:
        return self._max_retries == 0

    def record_success(self) -> RetryState:
        """The current attempt succeeded."""
        return self._transition(RetryEvent.SUCCESS, RetryState.SUCCEEDED)

    def record_failure(self) -> RetryState:
        """The current attempt failed; move to Retrying or Exhausted."""
        self._require(RetryEvent.FAILURE)
        self._failures += 1
        if self._failures > self._max_retries:
            return self._transition(RetryEvent.FAILURE, RetryState.EXHAUSTED)
        return self._transition(RetryEvent.FAILURE, RetryState.RETRYING)

    def next_delay(self) -> float:
        """Backoff to wait before the next attempt. Only valid while Retrying."""
        if self._state is not RetryState.RETRYING:
            raise InvalidTransitionError(f"no backoff delay in state {self._state.value}")
        return self._backoff.next_delay()

    def resume(self) -> RetryState:
        """The backoff elapsed; start the next attempt."""
        state = self._transition(RetryEvent.RESUME, RetryState.ATTEMPTING)
        self._attempts += 1
        return state

    def _require(self, event: RetryEvent) -> tuple[RetryState, ...]:
        allowed = TRANSITIONS.get((self._state, event))
        if allowed is None:
            raise InvalidTransitionError(
                f"event {event.value} not accepted in state {self._state.value}"
            )
        return allowed

    def _transition(self, event: RetryEvent, target: RetryState) -> RetryState:
        if target not in self._require(event):
            raise InvalidTransitionError(
                f"{self._state.value} -> {target.value} is not a valid transition"
            )
        self._state = target
        return target
