"""Resilience patterns and implementations.

Currently the durable retry queue used to redeliver failed notifications.
"""

from infrastructure.resilience.retry import (
    RetryConfig,
    RetryProcessor,
    RetryRecord,
    RetryResult,
    RetryStatus,
    RetryStore,
    RetryWorker,
)

__all__ = [
    "RetryRecord",
    "RetryResult",
    "RetryStatus",
    "RetryConfig",
    "RetryStore",
    "RetryWorker",
    "RetryProcessor",
]
