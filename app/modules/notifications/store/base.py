"""Notification store protocol.

One protocol covers the five persisted collections: rules, channels,
cooldowns, the retry queue and the delivery history. Rules and channels are
read-only to the engine (save_* exists for seeding and tests).

Backends raise NotificationStoreError when the underlying storage fails.
Conditional operations (cooldown gate, queue transitions) that lose their
race are not errors and return False.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from infrastructure.resilience.retry.store import RetryStore
from modules.notifications.models import (
    CooldownRecord,
    NotificationChannel,
    NotificationHistoryRecord,
    NotificationRule,
    RetryQueueEntry,
)


class NotificationStoreError(Exception):
    """Raised when the storage backend cannot complete an operation."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class NotificationStore(RetryStore, Protocol):
    """Storage interface used by the matcher, cooldown tracker, orchestrator
    and retry processor."""

    # Rules

    def get_enabled_rules(
        self, organization_id: str, event_type: str
    ) -> List[NotificationRule]:
        """Enabled rules for the organization and exact event type."""
        ...

    def get_rule(self, rule_id: str) -> Optional[NotificationRule]: ...

    def save_rule(self, rule: NotificationRule) -> None: ...

    # Channels

    def get_channel(self, channel_id: str) -> Optional[NotificationChannel]: ...

    def get_channels(self, channel_ids: Sequence[str]) -> List[NotificationChannel]:
        """Channels that exist among channel_ids, enabled or not, in any order."""
        ...

    def save_channel(self, channel: NotificationChannel) -> None: ...

    # Cooldowns

    def get_cooldown(
        self, rule_id: str, resource_type: str, resource_id: str
    ) -> Optional[CooldownRecord]: ...

    def claim_cooldown(
        self,
        organization_id: str,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        now: datetime,
        notified_before: datetime,
        claimed_before: datetime,
    ) -> bool:
        """Atomically pass the cooldown gate for a (rule, resource) key.

        Succeeds, writing claimed_at = now, only when last_notified_at is
        missing or <= notified_before, and claimed_at is missing or
        <= claimed_before. Creates the record when it does not exist.
        """
        ...

    def upsert_cooldown(
        self,
        organization_id: str,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        notified_at: datetime,
    ) -> None:
        """Set last_notified_at and clear claimed_at.

        No-op when the stored last_notified_at is already newer, so the
        timestamp never moves backwards.
        """
        ...

    def release_cooldown(
        self,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        claimed_at: datetime,
    ) -> bool:
        """Clear claimed_at if it still holds the given reservation."""
        ...

    # Retry queue (plus the RetryStore transitions)

    def enqueue_retry(self, entry: RetryQueueEntry) -> str:
        """Persist a new queued entry and return its id."""
        ...

    def get_retry_entry(self, entry_id: str) -> Optional[RetryQueueEntry]: ...

    def list_retry_entries(
        self,
        status: Optional[str] = None,
        organization_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[RetryQueueEntry]: ...

    def fetch_due(self, now: datetime, limit: int) -> List[RetryQueueEntry]: ...

    # History

    def add_history(self, record: NotificationHistoryRecord) -> None: ...

    def list_history(
        self, organization_id: Optional[str] = None, limit: int = 50
    ) -> List[NotificationHistoryRecord]: ...
