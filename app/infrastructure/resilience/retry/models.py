"""Generic retry queue models.

Core data structures shared by every retry queue: the entry status state
machine, the base record and the outcome of processing one record.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RetryStatus(str, Enum):
    """Lifecycle of a queued retry.

    queued -> processing -> {sent | dead_letter | queued}

    SENT and DEAD_LETTER are terminal.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    SENT = "sent"
    DEAD_LETTER = "dead_letter"

    @property
    def is_terminal(self) -> bool:
        return self in (RetryStatus.SENT, RetryStatus.DEAD_LETTER)


class RetryResult(Enum):
    """Outcome of processing a claimed retry record.

    Values:
        SUCCESS: Operation completed, record marked sent
        RETRY: Operation failed but is retryable, record requeued with backoff
        DEAD_LETTER: Record moved to dead-letter (permanent failure or exhausted)
    """

    SUCCESS = "success"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"


@dataclass(kw_only=True)
class RetryRecord:
    """Base retry record.

    Modules subclass this to add the data they need to rebuild the failed
    operation.

    Fields:
        id: Unique identifier (assigned by the store when empty)
        attempt_count: Queue-level attempts made so far
        max_attempts: Attempts allowed before dead-lettering
        status: Current RetryStatus
        next_attempt_at: Earliest time the record may be claimed
        last_error: Last error message encountered
        locked_at: When the current claim was taken
        processed_at: When a terminal state was reached
        created_at: When the record was first queued
    """

    id: Optional[str] = None
    attempt_count: int = 0
    max_attempts: int = 5
    status: RetryStatus = RetryStatus.QUEUED
    next_attempt_at: datetime = field(default_factory=utc_now)
    last_error: Optional[str] = None
    locked_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate counters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.attempt_count < 0 or self.attempt_count > self.max_attempts:
            raise ValueError("attempt_count must be between 0 and max_attempts")
