"""Retry queue infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry queue configuration for failed deliveries.

    Controls the durable retry queue used when immediate delivery fails and
    the background worker that drains it.

    Environment Variables:
        RETRY_ENABLED: Run the background retry poller (default: True)
        RETRY_MAX_ATTEMPTS: Queue-level attempts before dead-letter (default: 5)
        RETRY_BASE_DELAY_SECONDS: Base exponential backoff delay (default: 120s)
        RETRY_MAX_DELAY_SECONDS: Maximum backoff delay (default: 3600s = 1h)
        RETRY_BATCH_SIZE: Entries processed per poll (default: 50)
        RETRY_CLAIM_LEASE_SECONDS: Time before an abandoned claim is released
        RETRY_POLL_INTERVAL_SECONDS: Seconds between polls (default: 30)

    Exponential Backoff:
        Delay calculation: min(base_delay * (2 ^ attempt), max_delay)

        Example with defaults (base=120s, max=3600s):
            Enqueued: 120s
            Attempt 1 failed: 240s
            Attempt 2 failed: 480s
            Attempt 3 failed: 960s
            Attempt 4 failed: 1920s
            Attempt 5 failed: dead-letter

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.retry.enabled:
            interval = settings.retry.poll_interval_seconds
        ```
    """

    enabled: bool = Field(
        default=True,
        alias="RETRY_ENABLED",
        description="Run the background retry queue poller",
    )
    max_attempts: int = Field(
        default=5,
        alias="RETRY_MAX_ATTEMPTS",
        description="Maximum retry attempts before moving to dead-letter",
    )
    base_delay_seconds: int = Field(
        default=120,
        alias="RETRY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    max_delay_seconds: int = Field(
        default=3600,
        alias="RETRY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds, 1 hour)",
    )
    batch_size: int = Field(
        default=50,
        alias="RETRY_BATCH_SIZE",
        description="Number of entries to process per batch",
    )
    claim_lease_seconds: int = Field(
        default=300,
        alias="RETRY_CLAIM_LEASE_SECONDS",
        description="Duration before a processing claim is considered abandoned",
    )
    poll_interval_seconds: int = Field(
        default=30,
        alias="RETRY_POLL_INTERVAL_SECONDS",
        description="Interval between background retry polls (seconds)",
    )
