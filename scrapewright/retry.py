"""Standardized retry logic for scrapewright.

Provides one retry routine, built on tenacity, that every externally fragile
step goes through. Only errors tagged transient are retried.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import logfire
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from scrapewright.exceptions import RetriesExhausted, ScrapeError
from scrapewright.models import RetryPolicy

T = TypeVar('T')


@dataclass
class RetryContext:
    """State of one retried operation. Discarded on success or final failure.

    Attributes:
        policy: Policy governing the operation
        attempts: Calls made so far
        last_error: Most recent failure, if any
        last_classification: 'transient' or 'permanent' for the last failure
        started_at: Monotonic start time
        elapsed: Seconds since start, updated after every attempt

    """

    policy: RetryPolicy
    attempts: int = 0
    last_error: BaseException | None = None
    last_classification: str | None = None
    started_at: float = field(default_factory=time.monotonic)
    elapsed: float = 0.0

    def record_failure(self, error: BaseException) -> None:
        self.last_error = error
        if isinstance(error, ScrapeError):
            self.last_classification = error.classification
        else:
            self.last_classification = 'permanent'

    def touch(self) -> None:
        self.elapsed = time.monotonic() - self.started_at


class wait_bounded_jitter(wait_base):  # noqa: N801
    """Tenacity wait strategy delegating to ``RetryPolicy.backoff``."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.policy.backoff(retry_state.attempt_number)


def is_transient(error: BaseException) -> bool:
    """Retry predicate: only scrape errors tagged transient are retried."""
    return isinstance(error, ScrapeError) and error.transient


def log_retry(retry_state: RetryCallState) -> None:
    """Default logging callback for retries.

    Args:
        retry_state: The tenacity retry state object.

    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    sleep = retry_state.next_action.sleep if retry_state.next_action else 0.0
    name = retry_state.kwargs.get('_name', 'operation') if retry_state.kwargs else 'operation'
    logfire.warn(
        'Retrying {name}',
        name=name,
        attempt=retry_state.attempt_number,
        sleep=round(sleep, 3),
        error=str(exception) if exception else 'Unknown error',
    )


def get_retryer(
    policy: RetryPolicy,
    log_callback: Callable[[RetryCallState], None] | None = log_retry,
) -> AsyncRetrying:
    """Create a standardized tenacity AsyncRetrying object.

    Args:
        policy: Attempts and backoff bounds
        log_callback: Called before each backoff sleep. Receives the retry state.

    Returns:
        A configured tenacity.AsyncRetrying object that raises RetryError on exhaustion.

    """
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_bounded_jitter(policy),
        retry=retry_if_exception(is_transient),
        before_sleep=log_callback,
        reraise=False,
    )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    context: RetryContext | None = None,
    name: str = 'operation',
) -> T:
    """Run ``operation`` under ``policy``.

    Transient ScrapeErrors are retried with backoff. Anything else (permanent
    errors, unexpected exceptions, cancellation) propagates after one call.

    Args:
        operation: Zero-argument coroutine factory
        policy: Attempts and backoff bounds
        context: Optional RetryContext filled in as attempts happen
        name: Label used in retry logs

    Returns:
        Whatever the operation returns.

    Raises:
        RetriesExhausted: If every attempt failed with a transient error.

    """
    ctx = context if context is not None else RetryContext(policy=policy)

    async def attempt(_name: str) -> Any:
        ctx.attempts += 1
        try:
            return await operation()
        except BaseException as exc:
            ctx.record_failure(exc)
            raise
        finally:
            ctx.touch()

    try:
        return await get_retryer(policy)(attempt, _name=name)
    except RetryError as err:
        last_error = err.last_attempt.exception()
        assert last_error is not None, 'RetryError without a failed attempt'
        logfire.error('Retries exhausted for {name}', name=name, attempts=ctx.attempts, error=str(last_error))
        raise RetriesExhausted(ctx.attempts, last_error) from last_error
