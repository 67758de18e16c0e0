"""
Extraction Pool

Runs the independent extraction calls of one report (barcode, label,
weight, case pack, customs) concurrently, each in isolation.

Guarantees:
- one call failing, raising or hanging never affects the others
- no call blocks longer than the pool timeout
- every call ends as an ExtractionOutcome; nothing propagates

A provider answering success=false is repeated under the retry policy
like a raised RetryableError; its last answer is kept when retries run out.

A timeout is reported as FailureReason.TIMEOUT and is handled by the
fallback coordinator exactly like any other failure.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from ..extractor.attempts import ExtractionAttempts, ExtractionOutcome, FailureReason, outcome_for
from ..settings import EngineConfig, default_engine_config
from .retry import RetryableError, RetryPolicy, retry_with_result


ExtractionCall = Callable[[], Any]


class UpstreamFailure(RetryableError):
    """A provider answered success=false; carries the parsed outcome."""

    def __init__(self, outcome: ExtractionOutcome):
        super().__init__(outcome.detail or "provider reported failure")
        self.outcome = outcome


@dataclass
class PoolConfig:
    """Configuration for the extraction pool."""
    max_workers: int = 5
    timeout: float = 20.0   # seconds, for the whole batch
    retry_policy: Optional[RetryPolicy] = None

    @classmethod
    def from_engine_config(cls, config: EngineConfig) -> 'PoolConfig':
        return cls(
            max_workers=config.max_workers,
            timeout=config.extraction_timeout,
            retry_policy=RetryPolicy.from_config(config),
        )


class ExtractionPool:
    """
    Concurrent, isolated extraction runner.

    Usage:
        pool = ExtractionPool()
        outcomes = pool.run({
            'barcode': lambda: vision.extract_barcode(image, request_id),
            'customs': lambda: reasoning.infer_customs(name, category),
        })
        attempts = attempts.with_outcomes(outcomes)
    """

    def __init__(self, config: Optional[PoolConfig] = None, engine_config: Optional[EngineConfig] = None):
        self.config = config or PoolConfig.from_engine_config(engine_config or default_engine_config())
        self.retry_policy = self.config.retry_policy or RetryPolicy.no_retry()

    def run(self, calls: Mapping[str, ExtractionCall]) -> Dict[str, ExtractionOutcome]:
        """
        Run every call and collect one outcome per slot.

        Args:
            calls: Slot name (barcode, label, weight, casePack, customs) → zero-arg callable
                   returning the provider response {success, draft?, error?}

        Returns:
            Slot name → ExtractionOutcome, for every slot in calls
        """
        if not calls:
            return {}

        outcomes: Dict[str, ExtractionOutcome] = {}
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.config.max_workers, len(calls))),
            thread_name_prefix="extraction",
        )
        try:
            futures: Dict[Future, str] = {
                executor.submit(self._attempt, slot, call): slot for slot, call in calls.items()
            }
            deadline = time.monotonic() + self.config.timeout
            pending = set(futures)

            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    outcomes[futures[future]] = future.result()

            for future in pending:
                slot = futures[future]
                future.cancel()
                logger.warning(f"Extraction '{slot}' timed out after {self.config.timeout:.1f}s")
                outcomes[slot] = ExtractionOutcome.failure(
                    FailureReason.TIMEOUT, f"no response within {self.config.timeout:.1f}s"
                )
        finally:
            # Hung provider threads are abandoned, not awaited
            executor.shutdown(wait=False, cancel_futures=True)

        return {slot: outcomes[slot] for slot in calls}

    def gather(self, attempts: ExtractionAttempts, calls: Mapping[str, ExtractionCall]) -> ExtractionAttempts:
        """Run calls and fold their outcomes into attempts."""
        return attempts.with_outcomes(self.run(calls))

    def _attempt(self, slot: str, call: ExtractionCall) -> ExtractionOutcome:
        def parsed() -> ExtractionOutcome:
            outcome = _parse(slot, call())
            if not outcome.ok and outcome.reason is FailureReason.UPSTREAM_ERROR:
                raise UpstreamFailure(outcome)
            return outcome

        result = retry_with_result(parsed, self.retry_policy)
        if result.success:
            return result.result

        error = result.last_error
        if isinstance(error, UpstreamFailure):
            logger.warning(f"Extraction '{slot}' failed upstream after {result.attempts} attempt(s): {error}")
            return error.outcome
        logger.warning(f"Extraction '{slot}' raised: {error}")
        return ExtractionOutcome.failure(FailureReason.EXCEPTION, str(error) if error else "extraction raised")


def _parse(slot: str, response: Any) -> ExtractionOutcome:
    try:
        return outcome_for(slot, response)
    except KeyError:
        return ExtractionOutcome.from_upstream(response)
