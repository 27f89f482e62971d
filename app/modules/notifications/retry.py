"""Retry processing for queued notification deliveries.

The generic RetryWorker (infrastructure.resilience.retry) owns the queue
state machine. This module supplies the notification-specific part: rebuild
the event from the stored snapshot, re-resolve the rule and channel, send
once and record the attempt.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from infrastructure.operations.classifiers import truncate_message
from infrastructure.resilience.retry.models import RetryRecord, utc_now
from modules.notifications.channels.registry import SenderRegistry
from modules.notifications.cooldown import CooldownTracker
from modules.notifications.models import (
    RESERVED_EVENT_DATA_KEYS,
    EventType,
    HistoryStatus,
    NotificationEvent,
    NotificationHistoryRecord,
    ResourceType,
    RetryQueueEntry,
)
from modules.notifications.store.base import NotificationStore, NotificationStoreError

logger = get_module_logger()

REQUIRED_EVENT_FIELDS = ("resource_type", "resource_id", "resource_name")


class MalformedRetryEntry(ValueError):
    """The stored event snapshot cannot be turned back into an event."""


def rebuild_event(entry: RetryQueueEntry) -> NotificationEvent:
    """Reconstruct the NotificationEvent captured in entry.event_data.

    Raises:
        MalformedRetryEntry: Missing fields, or unknown event/resource type
    """
    data: Dict[str, Any] = dict(entry.event_data or {})

    missing = [name for name in REQUIRED_EVENT_FIELDS if not data.get(name)]
    if missing:
        raise MalformedRetryEntry(
            f"Retry entry is missing event fields: {', '.join(missing)}"
        )

    try:
        event_type = EventType(entry.event_type)
    except ValueError:
        raise MalformedRetryEntry(f"Unknown event type: {entry.event_type}") from None

    try:
        resource_type = ResourceType(data["resource_type"])
    except ValueError:
        raise MalformedRetryEntry(
            f"Unknown resource type: {data['resource_type']}"
        ) from None

    fields: Dict[str, Any] = {
        "type": event_type,
        "organization_id": entry.organization_id,
        "resource_type": resource_type,
        "resource_id": str(data["resource_id"]),
        "resource_name": str(data["resource_name"]),
        "data": {k: v for k, v in data.items() if k not in RESERVED_EVENT_DATA_KEYS},
    }
    if data.get("timestamp"):
        fields["timestamp"] = data["timestamp"]

    try:
        return NotificationEvent(**fields)
    except ValidationError as e:
        raise MalformedRetryEntry(f"Invalid event data: {e.errors()[0]['msg']}") from None


class NotificationRetryProcessor:
    """RetryProcessor that redelivers one queued notification.

    Outcomes reported to the worker:
    - SUCCESS: delivered; history written and the cooldown advanced
    - PERMANENT_ERROR: malformed entry, rule/channel gone or channel disabled,
      or a configuration failure from the sender
    - TRANSIENT_ERROR: sender failure or store error
    """

    def __init__(
        self,
        store: NotificationStore,
        senders: SenderRegistry,
        cooldowns: Optional[CooldownTracker] = None,
        error_max_length: int = 200,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.senders = senders
        self.cooldowns = cooldowns
        self.error_max_length = error_max_length
        self._clock = clock

    def process_record(self, record: RetryRecord) -> OperationResult:
        if not isinstance(record, RetryQueueEntry):
            return OperationResult.permanent_error(
                f"Unsupported retry record: {type(record).__name__}",
                error_code="INVALID_RECORD",
            )
        try:
            return self._process(record)
        except NotificationStoreError as e:
            logger.error(
                "notification_retry_store_error",
                entry_id=record.id,
                error=e.message,
            )
            return OperationResult.transient_error(
                f"Store error: {e.message}", error_code=e.error_code or "STORE_ERROR"
            )

    def _process(self, entry: RetryQueueEntry) -> OperationResult:
        try:
            event = rebuild_event(entry)
        except MalformedRetryEntry as e:
            logger.warning("notification_retry_malformed", entry_id=entry.id, error=str(e))
            return OperationResult.permanent_error(str(e), error_code="MALFORMED_ENTRY")

        rule = self.store.get_rule(entry.rule_id)
        if rule is None:
            return OperationResult.permanent_error(
                f"Rule {entry.rule_id} no longer exists", error_code="RULE_NOT_FOUND"
            )

        channel = self.store.get_channel(entry.channel_id)
        if channel is None:
            return OperationResult.permanent_error(
                f"Channel {entry.channel_id} no longer exists",
                error_code="CHANNEL_NOT_FOUND",
            )
        if not channel.is_enabled:
            return OperationResult.permanent_error(
                f"Channel {entry.channel_id} is disabled", error_code="CHANNEL_DISABLED"
            )

        sender = self.senders.get(channel.channel_type)
        if sender is None:
            result = OperationResult.permanent_error(
                f"Unsupported channel type: {channel.channel_type}",
                error_code="INVALID_CONFIG",
            )
        else:
            try:
                result = sender.send(event, rule, channel)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(
                    "notification_sender_exception",
                    entry_id=entry.id,
                    channel_type=channel.channel_type,
                    error=str(e),
                )
                result = OperationResult.transient_error(
                    f"{type(e).__name__}: {e}", error_code="SENDER_EXCEPTION"
                )

        now = self._clock()
        error = None
        if not result.is_success:
            error = truncate_message(result.message or "unknown error", self.error_max_length)
        self.store.add_history(
            NotificationHistoryRecord(
                organization_id=entry.organization_id,
                rule_id=rule.id,
                channel_id=channel.id,
                event_type=event.type.value,
                event_data=event.snapshot(),
                status=HistoryStatus.SENT if result.is_success else HistoryStatus.FAILED,
                error=error,
                sent_at=now if result.is_success else None,
                created_at=now,
            )
        )

        if result.is_success:
            if self.cooldowns is not None:
                self.cooldowns.update_cooldown(rule, event)
            logger.info(
                "notification_retry_sent",
                entry_id=entry.id,
                rule_id=rule.id,
                channel_id=channel.id,
            )
            return result

        logger.warning(
            "notification_retry_failed",
            entry_id=entry.id,
            rule_id=rule.id,
            channel_id=channel.id,
            error=error,
            error_code=result.error_code,
        )
        # Keep the worker's stored last_error bounded
        result.message = error
        return result
