"""Notification service: the trigger entry point.

Wires the store, senders, matcher, cooldown tracker, orchestrator and retry
worker together. Built once per process by build_notification_service() and
passed to whoever needs it (FastAPI app state, scheduled jobs, tests).

Usage:
    from infrastructure.services import get_settings
    from modules.notifications.service import build_notification_service

    service = build_notification_service(get_settings())
    results = service.trigger(
        {
            "type": "device.offline",
            "organizationId": "org-1",
            "resourceType": "device",
            "resourceId": "d1",
            "resourceName": "core-switch",
            "data": {"ip_address": "10.0.0.1"},
        }
    )
"""

import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import RetryConfig, RetryStatus, RetryWorker
from infrastructure.resilience.retry.models import utc_now
from modules.notifications.channels.registry import SenderRegistry, build_default_registry
from modules.notifications.cooldown import CooldownTracker
from modules.notifications.matcher import RuleMatcher
from modules.notifications.models import (
    DeliveryResult,
    EventType,
    NotificationEvent,
    ResourceType,
    RetryQueueEntry,
)
from modules.notifications.orchestrator import DeliveryOrchestrator, DeliveryPolicy
from modules.notifications.retry import NotificationRetryProcessor
from modules.notifications.store.base import NotificationStore, NotificationStoreError
from modules.notifications.store.factory import create_notification_store

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()

EventInput = Union[NotificationEvent, Mapping[str, Any]]


def parse_event(event: EventInput) -> NotificationEvent:
    """Validate trigger input.

    Raises:
        pydantic.ValidationError: When the input is malformed
    """
    if isinstance(event, NotificationEvent):
        return event
    return NotificationEvent.model_validate(dict(event))


class NotificationService:
    """Trigger API and retry queue operations.

    Attributes:
        store: Persistence backend
        matcher: RuleMatcher used by trigger()
        cooldowns: CooldownTracker gating each matched rule
        orchestrator: DeliveryOrchestrator performing deliveries
        worker: RetryWorker draining the retry queue
    """

    def __init__(
        self,
        store: NotificationStore,
        matcher: RuleMatcher,
        cooldowns: CooldownTracker,
        orchestrator: DeliveryOrchestrator,
        worker: RetryWorker,
    ) -> None:
        self.store = store
        self.matcher = matcher
        self.cooldowns = cooldowns
        self.orchestrator = orchestrator
        self.worker = worker

    def trigger(self, event: EventInput) -> List[DeliveryResult]:
        """Deliver an event to every matching rule that is not cooling down.

        Args:
            event: NotificationEvent or a mapping in snake_case or camelCase

        Returns:
            One DeliveryResult per (rule, channel) delivered

        Raises:
            pydantic.ValidationError: Only when the input is malformed
        """
        event = parse_event(event)
        log = logger.bind(
            organization_id=event.organization_id,
            event_type=event.type.value,
            resource_type=event.resource_type.value,
            resource_id=event.resource_id,
        )

        results: List[DeliveryResult] = []
        rules = self.matcher.match(event)
        if not rules:
            log.debug("notification_no_matching_rules")
            return results

        for rule in rules:
            try:
                if self.cooldowns.in_cooldown(rule, event):
                    continue
                results.extend(self.orchestrator.deliver(rule, event))
            except Exception as e:  # pylint: disable=broad-except
                log.error(
                    "notification_rule_failed",
                    rule_id=rule.id,
                    error=str(e),
                    exc_info=True,
                )

        log.info(
            "notification_triggered",
            rules_matched=len(rules),
            deliveries=len(results),
            succeeded=sum(1 for result in results if result.success),
            queued_for_retry=sum(1 for result in results if result.queued_for_retry),
        )
        return results

    def trigger_device_notification(
        self,
        organization_id: str,
        device_id: str,
        device_name: str,
        event_type: Union[EventType, str],
        data: Optional[Dict[str, Any]] = None,
    ) -> List[DeliveryResult]:
        return self.trigger(
            NotificationEvent(
                type=EventType(event_type),
                organization_id=organization_id,
                resource_type=ResourceType.DEVICE,
                resource_id=device_id,
                resource_name=device_name,
                data=data or {},
            )
        )

    def trigger_agent_notification(
        self,
        organization_id: str,
        agent_id: str,
        agent_name: str,
        event_type: Union[EventType, str],
        data: Optional[Dict[str, Any]] = None,
    ) -> List[DeliveryResult]:
        return self.trigger(
            NotificationEvent(
                type=EventType(event_type),
                organization_id=organization_id,
                resource_type=ResourceType.AGENT,
                resource_id=agent_id,
                resource_name=agent_name,
                data=data or {},
            )
        )

    def trigger_scan_complete_notification(
        self,
        organization_id: str,
        segment_id: str,
        segment_name: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[DeliveryResult]:
        return self.trigger(
            NotificationEvent(
                type=EventType.SCAN_COMPLETE,
                organization_id=organization_id,
                resource_type=ResourceType.SEGMENT,
                resource_id=segment_id,
                resource_name=segment_name,
                data=data or {},
            )
        )

    def process_retry_queue(self, limit: Optional[int] = None) -> Dict[str, Any]:
        """Run one retry batch.

        Returns:
            Worker stats plus "success" (False when the store failed)
        """
        try:
            stats = self.worker.process_batch(limit=limit)
        except NotificationStoreError as e:
            logger.error("retry_queue_processing_failed", error=e.message)
            return {
                "success": False,
                "error": e.message,
                "processed": 0,
                "sent": 0,
                "retried": 0,
                "dead_lettered": 0,
                "skipped": 0,
            }
        return {"success": True, **stats}

    def list_dead_letters(
        self, organization_id: Optional[str] = None, limit: int = 50
    ) -> List[RetryQueueEntry]:
        return self.store.list_retry_entries(
            status=RetryStatus.DEAD_LETTER.value,
            organization_id=organization_id,
            limit=limit,
        )


def build_notification_service(
    settings: "Settings",
    store: Optional[NotificationStore] = None,
    senders: Optional[SenderRegistry] = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
) -> NotificationService:
    """Assemble a NotificationService from settings.

    Args:
        settings: Application settings
        store: Optional store; defaults to create_notification_store(settings)
        senders: Optional registry; defaults to build_default_registry(settings)
        clock: Time source shared by every component
        sleep: Sleep used for in-process backoff

    Returns:
        Ready-to-use NotificationService
    """
    config = settings.notifications
    if store is None:
        store = create_notification_store(settings)
    if senders is None:
        senders = build_default_registry(settings)
    retry_config = RetryConfig.from_settings(settings.retry)

    cooldowns = CooldownTracker(
        store, claim_seconds=config.cooldown_claim_seconds, clock=clock
    )
    orchestrator = DeliveryOrchestrator(
        store,
        senders,
        cooldowns,
        policy=DeliveryPolicy(
            immediate_attempts=config.immediate_attempts,
            immediate_backoff_seconds=config.immediate_backoff_seconds,
            error_max_length=config.error_max_length,
        ),
        retry_config=retry_config,
        clock=clock,
        sleep=sleep,
    )
    # The processor only advances cooldowns; a separate tracker keeps it away
    # from the reservations held by in-flight triggers
    processor = NotificationRetryProcessor(
        store,
        senders,
        cooldowns=CooldownTracker(
            store, claim_seconds=config.cooldown_claim_seconds, clock=clock
        ),
        error_max_length=config.error_max_length,
        clock=clock,
    )
    worker = RetryWorker(
        store,
        processor,
        config=retry_config,
        worker_id="notifications-retry-worker",
        clock=clock,
    )

    logger.info(
        "notification_service_built",
        store_backend=config.store_backend,
        channel_types=senders.channel_types,
    )
    return NotificationService(
        store=store,
        matcher=RuleMatcher(store),
        cooldowns=cooldowns,
        orchestrator=orchestrator,
        worker=worker,
    )
