"""
Retry Policies

Backoff and retry for extraction provider calls.

Providers sit behind network calls, so a timeout or a 5xx is routine.
A provider steers the policy by raising RetryableError (try again) or
NonRetryableError (give up now, e.g. the image was rejected). Any other
exception is repeated only if its type is listed in retry_exceptions.

retry_with_result never raises; the caller turns a failed RetryResult
into an ExtractionOutcome.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, List, Optional, Tuple, Type

from loguru import logger

from ..settings import EngineConfig


class RetryableError(Exception):
    """Transient provider failure; the call may be repeated."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class NonRetryableError(Exception):
    """Permanent provider failure; never repeated."""


class BackoffStrategy(Enum):
    CONSTANT = auto()
    LINEAR = auto()
    EXPONENTIAL = auto()


@dataclass
class RetryAttempt:
    """One failed call."""
    number: int
    error: Exception
    elapsed: float
    will_retry: bool
    delay: float


@dataclass
class RetryResult:
    """Outcome of a call and its repeats."""
    success: bool
    result: Any = None
    attempts: int = 0
    total_time: float = 0.0
    last_error: Optional[Exception] = None
    attempt_history: List[RetryAttempt] = field(default_factory=list)

    @property
    def retried(self) -> bool:
        return self.attempts > 1


@dataclass
class RetryPolicy:
    """
    When and how often to repeat a failed extraction call.

    Usage:
        policy = RetryPolicy(max_retries=2, base_delay=0.25)
        result = retry_with_result(provider.extract_barcode, policy, image, request_id)
    """
    max_retries: int = 0
    max_time: Optional[float] = None   # seconds across all attempts

    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.1                # fraction of the delay

    retry_exceptions: Tuple[Type[Exception], ...] = (RetryableError, TimeoutError, ConnectionError)
    ignore_exceptions: Tuple[Type[Exception], ...] = (NonRetryableError,)

    def get_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (0-based)."""
        if self.backoff is BackoffStrategy.CONSTANT:
            steps = 1.0
        elif self.backoff is BackoffStrategy.LINEAR:
            steps = attempt + 1.0
        else:
            steps = self.multiplier ** attempt

        delay = min(self.base_delay * steps, self.max_delay)
        if self.jitter > 0:
            spread = delay * self.jitter
            delay += random.uniform(-spread, spread)
        return max(0.0, delay)

    def should_retry_exception(self, exc: Exception) -> bool:
        if isinstance(exc, self.ignore_exceptions):
            return False
        return isinstance(exc, self.retry_exceptions)

    def allows(self, attempt: int, exc: Exception, elapsed: float) -> bool:
        """Whether failed attempt `attempt` (0-based) may be followed by another."""
        if attempt >= self.max_retries or not self.should_retry_exception(exc):
            return False
        return self.max_time is None or elapsed < self.max_time

    @classmethod
    def from_config(cls, config: EngineConfig) -> 'RetryPolicy':
        return cls(max_retries=config.max_retries, base_delay=config.retry_base_delay)

    @classmethod
    def no_retry(cls) -> 'RetryPolicy':
        return cls(max_retries=0)


def retry_with_result(
    func: Callable[..., Any],
    policy: RetryPolicy,
    *args,
    **kwargs,
) -> RetryResult:
    """
    Call func under policy and report what happened.

    Args:
        func: Provider call
        policy: Retry policy
        *args, **kwargs: Passed to func on every attempt

    Returns:
        RetryResult; exceptions from func are captured, never raised
    """
    started = time.monotonic()
    history: List[RetryAttempt] = []
    attempt = 0

    while True:
        try:
            value = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.monotonic() - started
            again = policy.allows(attempt, e, elapsed)
            delay = policy.get_delay(attempt) if again else 0.0
            history.append(RetryAttempt(attempt + 1, e, elapsed, again, delay))

            if not again:
                return RetryResult(
                    success=False,
                    attempts=len(history),
                    total_time=time.monotonic() - started,
                    last_error=e,
                    attempt_history=history,
                )

            logger.warning(f"Attempt {attempt + 1} failed: {e}; retrying in {delay:.2f}s")
            time.sleep(delay)
            attempt += 1
        else:
            return RetryResult(
                success=True,
                result=value,
                attempts=attempt + 1,
                total_time=time.monotonic() - started,
                attempt_history=history,
            )
