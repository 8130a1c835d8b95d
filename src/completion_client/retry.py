"""
Bounded retry with per-attempt timeouts and exponential backoff.

Schedule with the default policy (base 1 s, cap 10 s):
  attempt 1 fails → wait 2 s, attempt 2 fails → wait 4 s,
  attempt 3 fails → wait 8 s, attempt 4 fails → ExhaustedError.

This module knows nothing about fallback content; the client decides what
to do with :class:`ExhaustedError`.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from .config import BASE_DELAY_MS, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS, MAX_DELAY_MS
from .errors import AttemptError, ExhaustedError, RequestTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt bound, backoff base/cap, and per-attempt timeout."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = BASE_DELAY_MS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_delay_ms: int = MAX_DELAY_MS

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Backoff delays must be >= 0")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


# ---------------------------------------------------------------------------
# Backoff helpers
# ---------------------------------------------------------------------------

def exponential_backoff(
    attempt: int,
    base_delay_ms: int = BASE_DELAY_MS,
    max_delay_ms: int = MAX_DELAY_MS,
) -> int:
    """
    Return the wait in milliseconds after a failed attempt.

    Args:
        attempt: 0-based index of the attempt that just failed.
        base_delay_ms: Backoff base.
        max_delay_ms: Ceiling applied to every wait.

    Returns:
        ``min(base_delay_ms * 2 ** (attempt + 1), max_delay_ms)``.
    """
    return min(base_delay_ms * 2 ** (attempt + 1), max_delay_ms)


def should_retry(attempt: int, policy: RetryPolicy) -> bool:
    """True while attempts remain after the 0-based ``attempt`` failed."""
    return attempt < policy.max_retries


# ---------------------------------------------------------------------------
# Main retry wrapper
# ---------------------------------------------------------------------------

def execute_with_retry(
    attempt_fn: Callable[[float], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    log=None,
) -> T:
    """
    Run ``attempt_fn`` until it succeeds or the policy's attempts run out.

    ``attempt_fn`` receives the per-attempt timeout in seconds and should
    pass it to its network call.  An attempt that raises
    :class:`RequestTimeoutError`, or that returns only after the timeout
    elapsed, counts as a timed-out attempt.  Any :class:`AttemptError` is
    retried; other exceptions propagate unchanged.

    Args:
        attempt_fn: Callable performing one attempt.
        policy: Retry policy; defaults to :class:`RetryPolicy()`.
        sleep: Sleeper taking seconds (injectable for tests).
        clock: Monotonic clock in seconds (injectable for tests).
        log: structlog-compatible logger; defaults to the module logger.

    Returns:
        The first successful return value of ``attempt_fn``.

    Raises:
        ExhaustedError: After ``policy.max_retries + 1`` failed attempts,
            carrying the last :class:`AttemptError`.
    """
    policy = policy or RetryPolicy()
    log = log if log is not None else logger
    last_error: AttemptError | None = None

    for attempt in range(policy.total_attempts):
        log.debug(
            "attempt_started",
            attempt=attempt + 1,
            total_attempts=policy.total_attempts,
        )
        started = clock()
        try:
            result = attempt_fn(policy.timeout_seconds)
            elapsed_ms = (clock() - started) * 1000
            if elapsed_ms > policy.timeout_ms:
                raise RequestTimeoutError(
                    f"Attempt took {elapsed_ms:.0f} ms (limit {policy.timeout_ms} ms)"
                )
            return result

        except AttemptError as exc:
            last_error = exc
            log.warning(
                "attempt_failed",
                attempt=attempt + 1,
                total_attempts=policy.total_attempts,
                category=exc.category,
                error=str(exc)[:120],
            )

            if should_retry(attempt, policy):
                delay_ms = exponential_backoff(
                    attempt, policy.base_delay_ms, policy.max_delay_ms
                )
                log.info("retry_scheduled", delay_ms=delay_ms, next_attempt=attempt + 2)
                sleep(delay_ms / 1000)

    raise ExhaustedError(policy.total_attempts, last_error)
