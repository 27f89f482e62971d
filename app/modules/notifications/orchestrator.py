"""Delivery orchestration for one matched rule."""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from infrastructure.operations.classifiers import truncate_message
from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryStatus, utc_now
from modules.notifications.channels.registry import SenderRegistry
from modules.notifications.cooldown import CooldownTracker
from modules.notifications.models import (
    DeliveryResult,
    HistoryStatus,
    NotificationChannel,
    NotificationEvent,
    NotificationHistoryRecord,
    NotificationRule,
    RetryQueueEntry,
)
from modules.notifications.store.base import NotificationStore, NotificationStoreError

logger = get_module_logger()


@dataclass
class DeliveryPolicy:
    """In-process retry policy for a single delivery.

    Attributes:
        immediate_attempts: Sender calls per channel before escalating
        immediate_backoff_seconds: Sleep before attempt n+1 is backoff * n
        error_max_length: Stored error messages are truncated to this length
    """

    immediate_attempts: int = 3
    immediate_backoff_seconds: float = 0.2
    error_max_length: int = 200

    def __post_init__(self) -> None:
        if self.immediate_attempts < 1:
            raise ValueError("immediate_attempts must be at least 1")
        if self.immediate_backoff_seconds < 0:
            raise ValueError("immediate_backoff_seconds must not be negative")


def build_event_data(
    event: NotificationEvent, rule: NotificationRule, channel: NotificationChannel
) -> dict:
    """event_data stored on retry entries: the event snapshot plus target ids."""
    event_data = event.snapshot()
    event_data["rule_id"] = rule.id
    event_data["channel_id"] = channel.id
    return event_data


class DeliveryOrchestrator:
    """Delivers one event for one rule across all of the rule's channels.

    Per channel: up to policy.immediate_attempts sender calls with a linear
    backoff, one history record for the outcome, and a retry queue entry when
    the final failure was transient. The cooldown is advanced when any
    channel succeeded and released otherwise. deliver() never raises.
    """

    def __init__(
        self,
        store: NotificationStore,
        senders: SenderRegistry,
        cooldowns: CooldownTracker,
        policy: Optional[DeliveryPolicy] = None,
        retry_config: Optional[RetryConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.senders = senders
        self.cooldowns = cooldowns
        self.policy = policy or DeliveryPolicy()
        self.retry_config = retry_config or RetryConfig()
        self._clock = clock
        self._sleep = sleep

    def deliver(
        self, rule: NotificationRule, event: NotificationEvent
    ) -> List[DeliveryResult]:
        log = logger.bind(
            rule_id=rule.id,
            organization_id=event.organization_id,
            event_type=event.type.value,
            resource_id=event.resource_id,
        )
        results: List[DeliveryResult] = []

        for channel in self.resolve_channels(rule):
            try:
                results.append(self._deliver_to_channel(rule, channel, event))
            except Exception as e:  # pylint: disable=broad-except
                log.error(
                    "notification_delivery_crashed",
                    channel_id=channel.id,
                    error=str(e),
                    exc_info=True,
                )
                results.append(
                    DeliveryResult(
                        rule_id=rule.id,
                        channel_id=channel.id,
                        channel_type=channel.channel_type,
                        success=False,
                        error=truncate_message(str(e), self.policy.error_max_length),
                    )
                )

        if any(result.success for result in results):
            self.cooldowns.update_cooldown(rule, event)
        else:
            self.cooldowns.release(rule, event)

        log.info(
            "notification_rule_delivered",
            channels=len(results),
            succeeded=sum(1 for result in results if result.success),
            queued=sum(1 for result in results if result.queued_for_retry),
        )
        return results

    def resolve_channels(self, rule: NotificationRule) -> List[NotificationChannel]:
        """Enabled channels of the rule, in the rule's channel order."""
        try:
            channels = {c.id: c for c in self.store.get_channels(rule.channel_ids)}
        except NotificationStoreError as e:
            logger.error(
                "notification_channels_lookup_failed",
                rule_id=rule.id,
                error=e.message,
            )
            return []

        resolved = []
        for channel_id in dict.fromkeys(rule.channel_ids):
            channel = channels.get(channel_id)
            if channel is None:
                logger.debug("notification_channel_missing", rule_id=rule.id, channel_id=channel_id)
            elif not channel.is_enabled:
                logger.debug("notification_channel_disabled", rule_id=rule.id, channel_id=channel_id)
            else:
                resolved.append(channel)
        return resolved

    def _deliver_to_channel(
        self,
        rule: NotificationRule,
        channel: NotificationChannel,
        event: NotificationEvent,
    ) -> DeliveryResult:
        result, attempts = self._attempt(rule, channel, event)
        error = None
        if not result.is_success:
            error = truncate_message(result.message or "unknown error", self.policy.error_max_length)

        self._record_history(rule, channel, event, result.is_success, error)

        delivery = DeliveryResult(
            rule_id=rule.id,
            channel_id=channel.id,
            channel_type=channel.channel_type,
            success=result.is_success,
            error=error,
            attempts=attempts,
        )

        if result.is_success:
            logger.info(
                "notification_sent",
                rule_id=rule.id,
                channel_id=channel.id,
                channel_type=channel.channel_type,
                attempts=attempts,
            )
            return delivery

        if result.status == OperationStatus.PERMANENT_ERROR:
            logger.error(
                "notification_failed_permanently",
                rule_id=rule.id,
                channel_id=channel.id,
                channel_type=channel.channel_type,
                error=error,
                error_code=result.error_code,
            )
            return delivery

        entry_id = self._enqueue_retry(rule, channel, event, error)
        delivery.queued_for_retry = entry_id is not None
        delivery.retry_entry_id = entry_id
        return delivery

    def _attempt(
        self,
        rule: NotificationRule,
        channel: NotificationChannel,
        event: NotificationEvent,
    ) -> Tuple[OperationResult, int]:
        sender = self.senders.get(channel.channel_type)
        if sender is None:
            return (
                OperationResult.permanent_error(
                    f"Unsupported channel type: {channel.channel_type}",
                    error_code="INVALID_CONFIG",
                ),
                0,
            )

        result = OperationResult.transient_error("not attempted")
        attempts = 0
        for attempt in range(1, self.policy.immediate_attempts + 1):
            attempts = attempt
            try:
                result = sender.send(event, rule, channel)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(
                    "notification_sender_exception",
                    channel_id=channel.id,
                    channel_type=channel.channel_type,
                    error=str(e),
                )
                result = OperationResult.transient_error(
                    f"{type(e).__name__}: {e}", error_code="SENDER_EXCEPTION"
                )

            if result.is_success or result.status == OperationStatus.PERMANENT_ERROR:
                break

            logger.warning(
                "notification_attempt_failed",
                rule_id=rule.id,
                channel_id=channel.id,
                attempt=attempt,
                max_attempts=self.policy.immediate_attempts,
                error=result.message,
            )
            if attempt < self.policy.immediate_attempts:
                self._sleep(self.policy.immediate_backoff_seconds * attempt)

        return result, attempts

    def _record_history(
        self,
        rule: NotificationRule,
        channel: NotificationChannel,
        event: NotificationEvent,
        success: bool,
        error: Optional[str],
    ) -> None:
        now = self._clock()
        record = NotificationHistoryRecord(
            organization_id=event.organization_id,
            rule_id=rule.id,
            channel_id=channel.id,
            event_type=event.type.value,
            event_data=event.snapshot(),
            status=HistoryStatus.SENT if success else HistoryStatus.FAILED,
            error=error,
            sent_at=now if success else None,
            created_at=now,
        )
        try:
            self.store.add_history(record)
        except NotificationStoreError as e:
            logger.error(
                "notification_history_write_failed",
                rule_id=rule.id,
                channel_id=channel.id,
                error=e.message,
            )

    def _enqueue_retry(
        self,
        rule: NotificationRule,
        channel: NotificationChannel,
        event: NotificationEvent,
        error: Optional[str],
    ) -> Optional[str]:
        now = self._clock()
        entry = RetryQueueEntry(
            id=str(uuid.uuid4()),
            organization_id=event.organization_id,
            rule_id=rule.id,
            channel_id=channel.id,
            event_type=event.type.value,
            event_data=build_event_data(event, rule, channel),
            attempt_count=0,
            max_attempts=self.retry_config.max_attempts,
            next_attempt_at=now + timedelta(seconds=self.retry_config.base_delay_seconds),
            status=RetryStatus.QUEUED,
            last_error=error,
            created_at=now,
        )
        try:
            entry_id = self.store.enqueue_retry(entry)
        except NotificationStoreError as e:
            logger.error(
                "notification_retry_enqueue_failed",
                rule_id=rule.id,
                channel_id=channel.id,
                error=e.message,
            )
            return None

        logger.warning(
            "notification_queued_for_retry",
            rule_id=rule.id,
            channel_id=channel.id,
            retry_entry_id=entry_id,
            next_attempt_at=entry.next_attempt_at.isoformat(),
            error=error,
        )
        return entry_id
