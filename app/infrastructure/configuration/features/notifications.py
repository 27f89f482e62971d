"""Notifications module feature settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class NotificationsSettings(FeatureSettings):
    """Configuration for notification dispatch and delivery.

    Environment Variables:
        NOTIFICATIONS_STORE_BACKEND: Store backend, 'memory' or 'dynamodb'
        NOTIFICATIONS_RULES_TABLE: DynamoDB table holding notification rules
        NOTIFICATIONS_CHANNELS_TABLE: DynamoDB table holding channels
        NOTIFICATIONS_COOLDOWNS_TABLE: DynamoDB table holding cooldown records
        NOTIFICATIONS_RETRY_QUEUE_TABLE: DynamoDB table holding the retry queue
        NOTIFICATIONS_HISTORY_TABLE: DynamoDB table holding delivery history
        NOTIFICATIONS_IMMEDIATE_ATTEMPTS: In-process delivery attempts per channel
        NOTIFICATIONS_IMMEDIATE_BACKOFF_SECONDS: Sleep unit between attempts
        NOTIFICATIONS_HTTP_TIMEOUT_SECONDS: Timeout for outbound HTTP requests
        NOTIFICATIONS_ERROR_MAX_LENGTH: Max length of stored error messages
        NOTIFICATIONS_COOLDOWN_CLAIM_SECONDS: Lifetime of a pending cooldown gate
        NOTIFICATIONS_SUBMIT_MAX_WORKERS: Background delivery threads
        NOTIFICATIONS_SUBMIT_MAX_PENDING: Max queued background submissions
        NOTIFICATIONS_APP_URL: Optional dashboard URL linked from messages
        CRON_SECRET: Bearer token required by the retry processing endpoints

    Immediate Backoff:
        Sleep between in-process attempts is backoff * attempt, so with the
        defaults (3 attempts, 0.2s) a failing channel blocks for 0.6s total.

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        attempts = settings.notifications.immediate_attempts
        backend = settings.notifications.store_backend
        ```
    """

    store_backend: str = Field(
        default="memory",
        alias="NOTIFICATIONS_STORE_BACKEND",
        description="Store backend: 'memory' or 'dynamodb'",
    )
    rules_table: str = Field(
        default="notification_rules",
        alias="NOTIFICATIONS_RULES_TABLE",
    )
    channels_table: str = Field(
        default="notification_channels",
        alias="NOTIFICATIONS_CHANNELS_TABLE",
    )
    cooldowns_table: str = Field(
        default="notification_cooldowns",
        alias="NOTIFICATIONS_COOLDOWNS_TABLE",
    )
    retry_queue_table: str = Field(
        default="notification_retry_queue",
        alias="NOTIFICATIONS_RETRY_QUEUE_TABLE",
    )
    history_table: str = Field(
        default="notification_history",
        alias="NOTIFICATIONS_HISTORY_TABLE",
    )
    immediate_attempts: int = Field(
        default=3,
        alias="NOTIFICATIONS_IMMEDIATE_ATTEMPTS",
        description="Delivery attempts per channel before queueing for retry",
    )
    immediate_backoff_seconds: float = Field(
        default=0.2,
        alias="NOTIFICATIONS_IMMEDIATE_BACKOFF_SECONDS",
        description="Backoff unit between in-process attempts (seconds)",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        alias="NOTIFICATIONS_HTTP_TIMEOUT_SECONDS",
    )
    error_max_length: int = Field(
        default=200,
        alias="NOTIFICATIONS_ERROR_MAX_LENGTH",
        description="Provider error bodies are truncated to this length",
    )
    cooldown_claim_seconds: int = Field(
        default=60,
        alias="NOTIFICATIONS_COOLDOWN_CLAIM_SECONDS",
        description="How long a pending cooldown gate blocks concurrent triggers",
    )
    submit_max_workers: int = Field(
        default=4,
        alias="NOTIFICATIONS_SUBMIT_MAX_WORKERS",
    )
    submit_max_pending: int = Field(
        default=1000,
        alias="NOTIFICATIONS_SUBMIT_MAX_PENDING",
    )
    app_url: str | None = Field(default=None, alias="NOTIFICATIONS_APP_URL")
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Normalize and validate the store backend name."""
        backend = v.strip().lower()
        if backend not in ("memory", "dynamodb"):
            raise ValueError(f"Unsupported notifications store backend: {v}")
        return backend

    @field_validator("immediate_attempts")
    @classmethod
    def validate_immediate_attempts(cls, v: int) -> int:
        """At least one immediate attempt is always made."""
        if v < 1:
            raise ValueError("NOTIFICATIONS_IMMEDIATE_ATTEMPTS must be at least 1")
        return v
