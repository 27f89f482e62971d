"""Generic retry queue for failed operations.

Architecture:
- RetryRecord / RetryStatus: Base record and its queued -> processing ->
  {sent | dead_letter | queued} state machine
- RetryStore: Storage protocol with atomic claim semantics
- RetryWorker: Batch processor applying the backoff and dead-letter policy
- RetryProcessor: Protocol for module-specific retry logic
- RetryConfig: Backoff, batch and claim lease configuration

Usage:
    from infrastructure.resilience.retry import RetryConfig, RetryWorker

    worker = RetryWorker(store, MyProcessor(), RetryConfig(batch_size=20))
    stats = worker.process_batch()
"""

from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import (
    RetryRecord,
    RetryResult,
    RetryStatus,
)
from infrastructure.resilience.retry.store import RetryStore
from infrastructure.resilience.retry.worker import RetryProcessor, RetryWorker

__all__ = [
    # Models
    "RetryRecord",
    "RetryResult",
    "RetryStatus",
    # Configuration
    "RetryConfig",
    # Store
    "RetryStore",
    # Worker
    "RetryWorker",
    "RetryProcessor",
]
