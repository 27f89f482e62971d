"""Retry queue configuration.

This module defines configuration for retry queue behavior.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infrastructure.configuration import RetrySettings


@dataclass
class RetryConfig:
    """Configuration for retry queue behavior.

    Attributes:
        max_attempts: Queue-level attempts before an entry is dead-lettered
        base_delay_seconds: Delay before the first queued retry
        max_delay_seconds: Cap for the exponential backoff
        batch_size: Number of entries processed in a single batch
        claim_lease_seconds: How long an entry may stay claimed before it is
            considered abandoned and returned to the queue

    Example:
        config = RetryConfig(max_attempts=3, base_delay_seconds=30)
        config.calculate_delay(2)  # 120
    """

    max_attempts: int = 5
    base_delay_seconds: int = 120  # 2 minutes
    max_delay_seconds: int = 3600  # 1 hour
    batch_size: int = 50
    claim_lease_seconds: int = 300  # 5 minutes

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 1:
            raise ValueError("base_delay_seconds must be at least 1")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.claim_lease_seconds < 1:
            raise ValueError("claim_lease_seconds must be at least 1")

    def calculate_delay(self, attempts: int) -> int:
        """Exponential backoff delay in seconds.

        Uses min(base_delay * 2 ** attempts, max_delay), so the delay never
        decreases as attempts grow and never exceeds max_delay_seconds.

        Args:
            attempts: Number of attempts already made

        Returns:
            Delay in seconds before the next attempt
        """
        attempts = max(attempts, 0)
        # Past this exponent the cap always wins; avoids huge integers
        if attempts >= 32:
            return self.max_delay_seconds
        return min(self.base_delay_seconds * (2**attempts), self.max_delay_seconds)

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "RetryConfig":
        """Build a config from the RETRY_* environment settings."""
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.base_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
            batch_size=settings.batch_size,
            claim_lease_seconds=settings.claim_lease_seconds,
        )
