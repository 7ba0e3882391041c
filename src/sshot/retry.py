"""Retry policy for task execution.

A task is attempted ``retries + 1`` times. ``until_success`` without an
explicit retry count means 60 retries, and any task that retries waits 5
seconds between attempts unless it sets ``retry_delay``.

When the task has a ``timeout``, the clock starts before the first attempt.
After every failed attempt the deadline is checked; if it has not passed yet,
the retry delay races the remaining time and whichever ends first decides
between giving up and attempting again. A single running attempt is never
interrupted by the timeout.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .exceptions import TaskExecutionError
from .types import Task

logger = logging.getLogger(__name__)

UNTIL_SUCCESS_RETRIES = 60
DEFAULT_RETRY_DELAY = 5.0


@dataclass
class RetryPolicy:
    """Effective retry settings for one task.

    Attributes:
        retries: Retries after the first attempt
        delay: Seconds to wait between attempts
        timeout: Seconds after which retrying stops (0 = no timeout)

    Example:
        >>> policy = RetryPolicy.from_task(Task(name="t", until_success=True))
        >>> policy.max_attempts, policy.delay
        (61, 5.0)
    """

    retries: int = 0
    delay: float = 0.0
    timeout: float = 0.0

    @classmethod
    def from_task(cls, task: Task) -> "RetryPolicy":
        retries = task.retries
        if retries == 0 and task.until_success:
            retries = UNTIL_SUCCESS_RETRIES
        delay = float(task.retry_delay)
        if delay == 0 and retries > 0:
            delay = DEFAULT_RETRY_DELAY
        return cls(retries=retries, delay=delay, timeout=float(task.timeout))

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


@dataclass
class RetryState:
    """Progress of one task's retry loop.

    Attributes:
        task_name: Task being retried
        attempts: Attempts made so far
        output: Output of the last attempt
        last_error: Error of the last failed attempt
        succeeded: Whether an attempt succeeded
        timed_out: Whether the loop stopped on the task timeout
        started: Monotonic start time of the loop
    """

    task_name: str
    attempts: int = 0
    output: str = ""
    last_error: TaskExecutionError | None = None
    succeeded: bool = False
    timed_out: bool = False
    started: float = 0.0

    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def remaining(self, timeout: float) -> float:
        """Seconds left before ``timeout`` expires (never negative)."""
        return max(0.0, timeout - self.elapsed())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "task_name": self.task_name,
            "attempts": self.attempts,
            "last_error": str(self.last_error) if self.last_error else "",
            "succeeded": self.succeeded,
            "timed_out": self.timed_out,
        }


async def race_retry_delay(delay: float, remaining: float) -> bool:
    """Sleep ``delay`` seconds unless ``remaining`` runs out first.

    Returns:
        True if the delay elapsed, False if the deadline won the race
    """
    if delay >= remaining:
        # Deadline ends first (or together): wait for it, then stop.
        await asyncio.sleep(remaining)
        return False
    try:
        await asyncio.wait_for(asyncio.sleep(delay), timeout=remaining)
    except asyncio.TimeoutError:
        return False
    return True


async def run_with_retry(
    attempt: Callable[[], Awaitable[str]],
    policy: RetryPolicy,
    task_name: str = "",
    accept: Callable[[TaskExecutionError], bool] | None = None,
    on_retry: Callable[[RetryState, float], None] | None = None,
) -> RetryState:
    """Run ``attempt`` under ``policy``.

    Only :class:`TaskExecutionError` is retried; anything else propagates.
    The loop never raises for execution failures, the caller inspects the
    returned state instead.

    Args:
        attempt: Callable returning a coroutine that performs one attempt
        policy: Effective retry settings
        task_name: Task name for logging
        accept: Predicate turning a failure into a success (allowed exit codes)
        on_retry: Called with the state and delay before waiting for a retry

    Returns:
        The final retry state
    """
    state = RetryState(task_name=task_name, started=time.monotonic())

    while True:
        state.attempts += 1
        try:
            state.output = await attempt()
        except TaskExecutionError as e:
            state.output = e.output
            if accept is not None and accept(e):
                logger.debug(f"Task '{task_name}' exit status {e.exit_status} accepted")
                state.succeeded = True
                state.last_error = None
                return state
            state.last_error = e
        else:
            state.succeeded = True
            state.last_error = None
            return state

        if policy.timeout > 0 and state.remaining(policy.timeout) <= 0:
            state.timed_out = True
            return state

        if state.attempts >= policy.max_attempts:
            return state

        logger.info(
            f"Retry {state.attempts}/{policy.max_attempts} for '{task_name}': "
            f"{state.last_error} - waiting {policy.delay:g}s"
        )
        if on_retry is not None:
            on_retry(state, policy.delay)

        if policy.timeout > 0:
            if not await race_retry_delay(policy.delay, state.remaining(policy.timeout)):
                state.timed_out = True
                return state
        else:
            await asyncio.sleep(policy.delay)
