"""Retry queue storage protocol.

Backends (in-memory, DynamoDB, ...) implement every state transition as a
single conditional operation on the current status, so several workers can
poll the same queue without in-process locks.
"""

from datetime import datetime
from typing import List, Protocol, Sequence

from infrastructure.resilience.retry.models import RetryRecord


class RetryStore(Protocol):
    """Storage interface for retry records.

    Methods:
        fetch_due: Queued records whose next_attempt_at has passed
        claim_record: Atomic queued -> processing transition for a due record
        mark_sent: processing -> sent
        mark_dead_letter: processing -> dead_letter
        reschedule: processing -> queued with a new next_attempt_at
        release_expired_claims: abandoned processing -> queued
    """

    def fetch_due(self, now: datetime, limit: int) -> Sequence[RetryRecord]:
        """Return queued records with next_attempt_at <= now, oldest due first.

        Args:
            now: Reference time
            limit: Maximum number of records to return
        """
        ...

    def claim_record(self, record_id: str, now: datetime) -> bool:
        """Atomically move a due record from queued to processing.

        The claim fails when the record is no longer queued or was rescheduled
        past now since it was fetched.

        Args:
            record_id: ID of record to claim
            now: Claim time, stored as locked_at

        Returns:
            True if this caller won the claim, False otherwise
        """
        ...

    def mark_sent(
        self, record_id: str, attempt_count: int, processed_at: datetime
    ) -> bool:
        """Move a claimed record to sent."""
        ...

    def mark_dead_letter(
        self,
        record_id: str,
        attempt_count: int,
        last_error: str,
        processed_at: datetime,
    ) -> bool:
        """Move a claimed record to dead_letter with the final error."""
        ...

    def reschedule(
        self,
        record_id: str,
        attempt_count: int,
        next_attempt_at: datetime,
        last_error: str,
    ) -> bool:
        """Return a claimed record to queued for a later attempt."""
        ...

    def release_expired_claims(self, claimed_before: datetime) -> List[str]:
        """Requeue processing records whose claim was taken before the cutoff.

        Returns:
            IDs of the released records
        """
        ...
