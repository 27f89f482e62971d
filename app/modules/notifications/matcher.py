"""Rule matching."""

from typing import List, Optional

from infrastructure.logging import get_module_logger
from modules.notifications.models import (
    NotificationEvent,
    NotificationRule,
    ResourceType,
)
from modules.notifications.store.base import NotificationStore, NotificationStoreError

logger = get_module_logger()


def _segment_id(event: NotificationEvent) -> Optional[str]:
    if event.resource_type == ResourceType.SEGMENT:
        return event.resource_id
    value = event.data.get("segment_id")
    return str(value) if value is not None else None


def rule_matches(rule: NotificationRule, event: NotificationEvent) -> bool:
    """Apply the rule's filters to the event.

    Every non-empty filter list must contain the event's identifier for that
    dimension; an event that has no such identifier does not match.
    """
    filters = rule.filters
    if filters.is_empty:
        return True

    if filters.device_ids and not (
        event.resource_type == ResourceType.DEVICE
        and event.resource_id in filters.device_ids
    ):
        return False

    if filters.agent_ids and not (
        event.resource_type == ResourceType.AGENT
        and event.resource_id in filters.agent_ids
    ):
        return False

    if filters.category_ids:
        category_id = event.data.get("category_id")
        if category_id is None or str(category_id) not in filters.category_ids:
            return False

    if filters.segment_ids:
        segment_id = _segment_id(event)
        if segment_id is None or segment_id not in filters.segment_ids:
            return False

    return True


class RuleMatcher:
    """Finds the enabled rules an event should be delivered for."""

    def __init__(self, store: NotificationStore) -> None:
        self.store = store

    def match(self, event: NotificationEvent) -> List[NotificationRule]:
        """Matching rules ordered by rule id. Never raises on store errors."""
        try:
            candidates = self.store.get_enabled_rules(
                event.organization_id, event.type.value
            )
        except NotificationStoreError as e:
            logger.error(
                "notification_rules_lookup_failed",
                organization_id=event.organization_id,
                event_type=event.type.value,
                error=e.message,
                error_code=e.error_code,
            )
            return []

        matched = sorted(
            (rule for rule in candidates if rule_matches(rule, event)),
            key=lambda rule: rule.id,
        )
        logger.debug(
            "notification_rules_matched",
            organization_id=event.organization_id,
            event_type=event.type.value,
            candidates=len(candidates),
            matched=len(matched),
        )
        return matched
