"""Per-(rule, resource) cooldown tracking."""

from datetime import datetime, timedelta
from typing import Callable, Dict, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry.models import utc_now
from modules.notifications.models import NotificationEvent, NotificationRule
from modules.notifications.store.base import NotificationStore, NotificationStoreError

logger = get_module_logger()

DEFAULT_CLAIM_SECONDS = 60


class CooldownTracker:
    """Suppresses repeat notifications for the same rule and resource.

    in_cooldown() is the gate: one conditional store write that either
    reserves the key (writing claimed_at) or reports the key as cooling down.
    Two concurrent triggers for the same key cannot both pass. The reservation
    is settled by update_cooldown() after a successful delivery or by
    release() when every channel failed; an unsettled reservation expires
    after claim_seconds.

    Attributes:
        store: NotificationStore holding cooldown records
        claim_seconds: Lifetime of an unsettled reservation
    """

    def __init__(
        self,
        store: NotificationStore,
        claim_seconds: int = DEFAULT_CLAIM_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.claim_seconds = claim_seconds
        self._clock = clock
        # Reservation timestamps written by this tracker, so release() only
        # clears its own claim
        self._claims: Dict[Tuple[str, str, str], datetime] = {}

    @staticmethod
    def _key(rule: NotificationRule, event: NotificationEvent) -> Tuple[str, str, str]:
        return (rule.id, event.resource_type.value, event.resource_id)

    def in_cooldown(self, rule: NotificationRule, event: NotificationEvent) -> bool:
        """True when the rule notified this resource within its cooldown.

        A False result reserves the key for the caller. Store errors fail
        open and return False.
        """
        now = self._clock()
        rule_id, resource_type, resource_id = self._key(rule, event)
        try:
            claimed = self.store.claim_cooldown(
                organization_id=event.organization_id,
                rule_id=rule_id,
                resource_type=resource_type,
                resource_id=resource_id,
                now=now,
                notified_before=now - timedelta(minutes=rule.cooldown_minutes),
                claimed_before=now - timedelta(seconds=self.claim_seconds),
            )
        except NotificationStoreError as e:
            logger.error(
                "cooldown_check_failed",
                rule_id=rule_id,
                resource_id=resource_id,
                error=e.message,
            )
            return False

        if claimed:
            self._claims[(rule_id, resource_type, resource_id)] = now
            return False

        logger.info(
            "notification_in_cooldown",
            rule_id=rule_id,
            resource_type=resource_type,
            resource_id=resource_id,
            cooldown_minutes=rule.cooldown_minutes,
        )
        return True

    def update_cooldown(self, rule: NotificationRule, event: NotificationEvent) -> None:
        """Record a successful notification at the current time."""
        rule_id, resource_type, resource_id = self._key(rule, event)
        self._claims.pop((rule_id, resource_type, resource_id), None)
        try:
            self.store.upsert_cooldown(
                organization_id=event.organization_id,
                rule_id=rule_id,
                resource_type=resource_type,
                resource_id=resource_id,
                notified_at=self._clock(),
            )
        except NotificationStoreError as e:
            logger.error(
                "cooldown_update_failed",
                rule_id=rule_id,
                resource_id=resource_id,
                error=e.message,
            )

    def release(self, rule: NotificationRule, event: NotificationEvent) -> None:
        """Drop this tracker's reservation without advancing the cooldown."""
        key = self._key(rule, event)
        claimed_at = self._claims.pop(key, None)
        if claimed_at is None:
            return
        try:
            self.store.release_cooldown(*key, claimed_at=claimed_at)
        except NotificationStoreError as e:
            logger.error(
                "cooldown_release_failed",
                rule_id=key[0],
                resource_id=key[2],
                error=e.message,
            )
