"""Generic retry worker and processor protocol.

This module provides the worker infrastructure for draining a retry queue.
Module-specific retry logic is implemented via the RetryProcessor protocol.
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryRecord, RetryResult, utc_now
from infrastructure.resilience.retry.store import RetryStore

logger = get_module_logger()


class RetryProcessor(Protocol):
    """Protocol for module-specific retry processing logic.

    The worker owns the queue state machine; the processor only performs the
    operation once and reports how it went:

    - SUCCESS: record is marked sent
    - PERMANENT_ERROR / NOT_FOUND: record is dead-lettered immediately
    - anything else: attempt is counted and the record is requeued or
      dead-lettered once max_attempts is reached
    """

    def process_record(self, record: RetryRecord) -> OperationResult:
        """Perform the operation described by the record exactly once."""
        ...


def _empty_stats() -> Dict[str, int]:
    return {
        "processed": 0,
        "sent": 0,
        "retried": 0,
        "dead_lettered": 0,
        "skipped": 0,
    }


class RetryWorker:
    """Generic worker for processing batches of retry records.

    This worker handles the mechanics of retry processing:
    - Releasing claims abandoned by crashed workers
    - Fetching due records from the store
    - Claiming records so concurrent workers never process the same one
    - Delegating to a RetryProcessor for the actual operation
    - Applying the backoff / dead-letter policy

    Attributes:
        store: RetryStore holding the queue
        processor: RetryProcessor for module-specific processing logic
        config: RetryConfig controlling backoff, batch size and claim lease
        worker_id: Identifier for this worker instance (logging only)
    """

    def __init__(
        self,
        store: RetryStore,
        processor: RetryProcessor,
        config: RetryConfig | None = None,
        worker_id: str = "retry-worker-1",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.processor = processor
        self.config = config or RetryConfig()
        self.worker_id = worker_id
        self._clock = clock
        self._stop_event = threading.Event()
        self._batch_lock = threading.Lock()
        self.log = logger.bind(component="retry_worker", worker_id=worker_id)

    @property
    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Request graceful shutdown.

        The record currently being processed is finished; no further records
        are claimed and no new batch starts.

        Args:
            timeout: Seconds to wait for an in-flight batch. None waits forever.

        Returns:
            True if no batch is running when this returns
        """
        self._stop_event.set()
        self.log.info("retry_worker_stopping")
        acquired = self._batch_lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._batch_lock.release()
        return acquired

    def process_batch(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Process a batch of due retry records.

        Safe to call repeatedly and from several workers at once.

        Args:
            limit: Optional override of config.batch_size

        Returns:
            Dictionary with processing statistics:
                - processed: Records claimed and processed
                - sent: Records delivered
                - retried: Records requeued with backoff
                - dead_lettered: Records moved to dead-letter
                - skipped: Records another worker claimed first
        """
        stats = _empty_stats()
        if self.is_stopping:
            self.log.debug("retry_batch_skipped_stopping")
            return stats

        with self._batch_lock:
            now = self._clock()
            cutoff = now - timedelta(seconds=self.config.claim_lease_seconds)
            released = self.store.release_expired_claims(cutoff)
            if released:
                self.log.warning(
                    "retry_claims_released",
                    count=len(released),
                    record_ids=released,
                )

            records = self.store.fetch_due(now=now, limit=limit or self.config.batch_size)
            if not records:
                self.log.debug("retry_batch_no_records")
                return stats

            self.log.info("retry_batch_start", record_count=len(records))

            for record in records:
                if self.is_stopping:
                    self.log.info(
                        "retry_batch_interrupted",
                        remaining=len(records) - stats["processed"] - stats["skipped"],
                    )
                    break

                if not record.id or not self.store.claim_record(
                    record.id, now=self._clock()
                ):
                    self.log.debug("retry_record_skipped_claim_failed", record_id=record.id)
                    stats["skipped"] += 1
                    continue

                try:
                    result = self._process_record(record)
                except Exception as e:  # pylint: disable=broad-except
                    # Record stays claimed and is released once its lease expires
                    self.log.error(
                        "retry_record_transition_failed",
                        record_id=record.id,
                        error=str(e),
                        exc_info=True,
                    )
                    stats["skipped"] += 1
                    continue

                stats["processed"] += 1
                if result == RetryResult.SUCCESS:
                    stats["sent"] += 1
                elif result == RetryResult.RETRY:
                    stats["retried"] += 1
                else:
                    stats["dead_lettered"] += 1

            self.log.info("retry_batch_complete", **stats)
            return stats

    def _process_record(self, record: RetryRecord) -> RetryResult:
        """Process one claimed record and apply the resulting transition."""
        record_id = record.id or ""
        self.log.info(
            "retry_record_processing",
            record_id=record_id,
            attempt=record.attempt_count + 1,
            max_attempts=record.max_attempts,
        )

        try:
            result = self.processor.process_record(record)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error(
                "retry_processor_exception",
                record_id=record_id,
                error=str(e),
                exc_info=True,
            )
            result = OperationResult.transient_error(
                f"Processor exception: {e}", error_code="PROCESSOR_EXCEPTION"
            )

        now = self._clock()

        if result.is_success:
            self.store.mark_sent(record_id, record.attempt_count + 1, processed_at=now)
            self.log.info(
                "retry_record_sent",
                record_id=record_id,
                attempts=record.attempt_count + 1,
            )
            return RetryResult.SUCCESS

        if result.status in (OperationStatus.PERMANENT_ERROR, OperationStatus.NOT_FOUND):
            self.store.mark_dead_letter(
                record_id, record.attempt_count, result.message, processed_at=now
            )
            self.log.warning(
                "retry_record_dead_lettered",
                record_id=record_id,
                reason=result.message,
                error_code=result.error_code,
            )
            return RetryResult.DEAD_LETTER

        attempts = record.attempt_count + 1
        if attempts >= record.max_attempts:
            self.store.mark_dead_letter(record_id, attempts, result.message, processed_at=now)
            self.log.warning(
                "retry_record_exhausted",
                record_id=record_id,
                attempts=attempts,
                last_error=result.message,
            )
            return RetryResult.DEAD_LETTER

        delay = self.config.calculate_delay(attempts)
        self.store.reschedule(
            record_id,
            attempts,
            next_attempt_at=now + timedelta(seconds=delay),
            last_error=result.message,
        )
        self.log.info(
            "retry_record_rescheduled",
            record_id=record_id,
            attempts=attempts,
            next_retry_in_seconds=delay,
        )
        return RetryResult.RETRY
