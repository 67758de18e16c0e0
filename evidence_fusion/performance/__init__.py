"""
Performance and Isolation

Concurrent extraction calls with per-call failure isolation, a batch
timeout and retry with backoff.
"""

from .retry import (
    BackoffStrategy,
    NonRetryableError,
    RetryableError,
    RetryPolicy,
    RetryResult,
    retry_with_result,
)
from .extraction_pool import (
    ExtractionPool,
    PoolConfig,
)

__all__ = [
    'BackoffStrategy',
    'NonRetryableError',
    'RetryableError',
    'RetryPolicy',
    'RetryResult',
    'retry_with_result',
    'ExtractionPool',
    'PoolConfig',
]
