"""In-memory notification store.

Thread-safe implementation of NotificationStore for development, tests and
single-instance deployments. Every conditional operation runs under one lock,
which gives the same compare-and-swap guarantees the DynamoDB backend gets
from ConditionExpressions. Records are copied on the way in and out so
callers never share mutable state with the store.
"""

import copy
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry.models import RetryStatus
from modules.notifications.models import (
    CooldownRecord,
    NotificationChannel,
    NotificationHistoryRecord,
    NotificationRule,
    RetryQueueEntry,
    cooldown_key,
)

logger = get_module_logger()


class InMemoryNotificationStore:
    """Lock-based store keeping every collection in dictionaries."""

    def __init__(self) -> None:
        self._rules: Dict[str, NotificationRule] = {}
        self._channels: Dict[str, NotificationChannel] = {}
        self._cooldowns: Dict[str, CooldownRecord] = {}
        self._retry_queue: Dict[str, RetryQueueEntry] = {}
        self._history: List[NotificationHistoryRecord] = []
        self._lock = threading.Lock()

    # Rules

    def get_enabled_rules(
        self, organization_id: str, event_type: str
    ) -> List[NotificationRule]:
        with self._lock:
            return [
                rule.model_copy(deep=True)
                for rule in self._rules.values()
                if rule.is_enabled
                and rule.organization_id == organization_id
                and rule.event_type.value == event_type
            ]

    def get_rule(self, rule_id: str) -> Optional[NotificationRule]:
        with self._lock:
            rule = self._rules.get(rule_id)
            return rule.model_copy(deep=True) if rule else None

    def save_rule(self, rule: NotificationRule) -> None:
        with self._lock:
            self._rules[rule.id] = rule.model_copy(deep=True)

    # Channels

    def get_channel(self, channel_id: str) -> Optional[NotificationChannel]:
        with self._lock:
            channel = self._channels.get(channel_id)
            return channel.model_copy(deep=True) if channel else None

    def get_channels(self, channel_ids: Sequence[str]) -> List[NotificationChannel]:
        with self._lock:
            return [
                self._channels[channel_id].model_copy(deep=True)
                for channel_id in dict.fromkeys(channel_ids)
                if channel_id in self._channels
            ]

    def save_channel(self, channel: NotificationChannel) -> None:
        with self._lock:
            self._channels[channel.id] = channel.model_copy(deep=True)

    # Cooldowns

    def get_cooldown(
        self, rule_id: str, resource_type: str, resource_id: str
    ) -> Optional[CooldownRecord]:
        with self._lock:
            record = self._cooldowns.get(cooldown_key(rule_id, resource_type, resource_id))
            return record.model_copy() if record else None

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
        key = cooldown_key(rule_id, resource_type, resource_id)
        with self._lock:
            record = self._cooldowns.get(key)
            if record is None:
                self._cooldowns[key] = CooldownRecord(
                    organization_id=organization_id,
                    rule_id=rule_id,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    claimed_at=now,
                )
                return True

            if record.last_notified_at and record.last_notified_at > notified_before:
                return False
            if record.claimed_at and record.claimed_at > claimed_before:
                return False

            record.claimed_at = now
            return True

    def upsert_cooldown(
        self,
        organization_id: str,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        notified_at: datetime,
    ) -> None:
        key = cooldown_key(rule_id, resource_type, resource_id)
        with self._lock:
            record = self._cooldowns.get(key)
            if record is None:
                record = CooldownRecord(
                    organization_id=organization_id,
                    rule_id=rule_id,
                    resource_type=resource_type,
                    resource_id=resource_id,
                )
                self._cooldowns[key] = record
            # A newer notification already won; leave its record untouched
            if record.last_notified_at is None or record.last_notified_at <= notified_at:
                record.last_notified_at = notified_at
                record.claimed_at = None

    def release_cooldown(
        self,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        claimed_at: datetime,
    ) -> bool:
        key = cooldown_key(rule_id, resource_type, resource_id)
        with self._lock:
            record = self._cooldowns.get(key)
            if record is None or record.claimed_at != claimed_at:
                return False
            record.claimed_at = None
            return True

    # Retry queue

    def enqueue_retry(self, entry: RetryQueueEntry) -> str:
        with self._lock:
            stored = copy.deepcopy(entry)
            stored.id = stored.id or str(uuid.uuid4())
            self._retry_queue[stored.id] = stored
            logger.debug("retry_entry_stored", entry_id=stored.id)
            return stored.id

    def get_retry_entry(self, entry_id: str) -> Optional[RetryQueueEntry]:
        with self._lock:
            entry = self._retry_queue.get(entry_id)
            return copy.deepcopy(entry) if entry else None

    def list_retry_entries(
        self,
        status: Optional[str] = None,
        organization_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[RetryQueueEntry]:
        with self._lock:
            entries = [
                copy.deepcopy(entry)
                for entry in self._retry_queue.values()
                if (status is None or entry.status.value == status)
                and (organization_id is None or entry.organization_id == organization_id)
            ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    def fetch_due(self, now: datetime, limit: int) -> List[RetryQueueEntry]:
        with self._lock:
            due = [
                entry
                for entry in self._retry_queue.values()
                if entry.status == RetryStatus.QUEUED and entry.next_attempt_at <= now
            ]
            due.sort(key=lambda e: (e.next_attempt_at, e.created_at))
            return [copy.deepcopy(entry) for entry in due[:limit]]

    def claim_record(self, record_id: str, now: datetime) -> bool:
        with self._lock:
            entry = self._retry_queue.get(record_id)
            if entry is None or entry.status != RetryStatus.QUEUED:
                return False
            if entry.next_attempt_at > now:
                return False
            entry.status = RetryStatus.PROCESSING
            entry.locked_at = now
            return True

    def mark_sent(
        self, record_id: str, attempt_count: int, processed_at: datetime
    ) -> bool:
        with self._lock:
            entry = self._processing_entry(record_id)
            if entry is None:
                return False
            entry.status = RetryStatus.SENT
            entry.attempt_count = min(attempt_count, entry.max_attempts)
            entry.processed_at = processed_at
            entry.locked_at = None
            return True

    def mark_dead_letter(
        self,
        record_id: str,
        attempt_count: int,
        last_error: str,
        processed_at: datetime,
    ) -> bool:
        with self._lock:
            entry = self._processing_entry(record_id)
            if entry is None:
                return False
            entry.status = RetryStatus.DEAD_LETTER
            entry.attempt_count = min(attempt_count, entry.max_attempts)
            entry.last_error = last_error
            entry.processed_at = processed_at
            entry.locked_at = None
            return True

    def reschedule(
        self,
        record_id: str,
        attempt_count: int,
        next_attempt_at: datetime,
        last_error: str,
    ) -> bool:
        with self._lock:
            entry = self._processing_entry(record_id)
            if entry is None:
                return False
            entry.status = RetryStatus.QUEUED
            entry.attempt_count = attempt_count
            entry.next_attempt_at = next_attempt_at
            entry.last_error = last_error
            entry.locked_at = None
            return True

    def release_expired_claims(self, claimed_before: datetime) -> List[str]:
        released = []
        with self._lock:
            for entry in self._retry_queue.values():
                if (
                    entry.status == RetryStatus.PROCESSING
                    and entry.locked_at is not None
                    and entry.locked_at <= claimed_before
                ):
                    entry.status = RetryStatus.QUEUED
                    entry.locked_at = None
                    released.append(entry.id)
        return released

    def _processing_entry(self, record_id: str) -> Optional[RetryQueueEntry]:
        entry = self._retry_queue.get(record_id)
        if entry is None or entry.status != RetryStatus.PROCESSING:
            logger.warning("retry_transition_rejected", entry_id=record_id)
            return None
        return entry

    # History

    def add_history(self, record: NotificationHistoryRecord) -> None:
        with self._lock:
            self._history.append(record.model_copy(deep=True))

    def list_history(
        self, organization_id: Optional[str] = None, limit: int = 50
    ) -> List[NotificationHistoryRecord]:
        with self._lock:
            records = [
                record.model_copy(deep=True)
                for record in self._history
                if organization_id is None or record.organization_id == organization_id
            ]
        return list(reversed(records))[:limit]
