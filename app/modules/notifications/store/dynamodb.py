"""DynamoDB-backed notification store for multi-instance deployments.

Table Schema (one table per collection, names from NotificationsSettings):
    rules:      PK id; GSI organization_id-index (organization_id)
    channels:   PK id
    cooldowns:  PK cooldown_key ("rule_id#resource_type#resource_id")
    retry queue: PK id; GSI status-next_attempt_at-index (status + next_attempt_at)
    history:    PK id

Timestamps are stored as epoch seconds (N) so conditions can compare them;
nested maps (filters, config, event_data) are stored as JSON strings.

Every conditional transition (cooldown gate, queue claim, terminal
transitions) is a single update_item with a ConditionExpression. A lost race
comes back from dynamodb_next with error_code CONDITION_FAILED and is
reported as False.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from infrastructure.resilience.retry.models import RetryStatus, utc_now
from integrations.aws import dynamodb_next
from modules.notifications.models import (
    CooldownRecord,
    HistoryStatus,
    NotificationChannel,
    NotificationHistoryRecord,
    NotificationRule,
    RetryQueueEntry,
    cooldown_key,
)
from modules.notifications.store.base import NotificationStoreError

logger = get_module_logger()

RULES_ORGANIZATION_INDEX = "organization_id-index"
RETRY_STATUS_INDEX = "status-next_attempt_at-index"
CONDITION_FAILED = "CONDITION_FAILED"

# Raised by a stored row that no longer parses into its model
MALFORMED_ROW_ERRORS = (ValueError, TypeError, KeyError)

T = TypeVar("T")


def _ts(value: datetime) -> Dict[str, str]:
    return {"N": f"{value.timestamp():.6f}"}


def _from_ts(item: Dict[str, Any], name: str) -> Optional[datetime]:
    attr = item.get(name)
    if not attr or "N" not in attr:
        return None
    return datetime.fromtimestamp(float(attr["N"]), tz=timezone.utc)


def _str(item: Dict[str, Any], name: str, default: Optional[str] = None) -> Optional[str]:
    attr = item.get(name)
    if not attr or "S" not in attr:
        return default
    return attr["S"]


def _int(item: Dict[str, Any], name: str, default: int = 0) -> int:
    attr = item.get(name)
    if not attr or "N" not in attr:
        return default
    return int(float(attr["N"]))


def _json(value: Any) -> Dict[str, str]:
    return {"S": json.dumps(value, default=str)}


def _from_json(item: Dict[str, Any], name: str) -> Dict[str, Any]:
    raw = _str(item, name)
    if not raw:
        return {}
    return json.loads(raw)


class DynamoDBNotificationStore:
    """NotificationStore backed by five DynamoDB tables."""

    def __init__(
        self,
        rules_table: str,
        channels_table: str,
        cooldowns_table: str,
        retry_queue_table: str,
        history_table: str,
    ) -> None:
        self.rules_table = rules_table
        self.channels_table = channels_table
        self.cooldowns_table = cooldowns_table
        self.retry_queue_table = retry_queue_table
        self.history_table = history_table

        logger.info(
            "dynamodb_notification_store_initialized",
            rules_table=rules_table,
            retry_queue_table=retry_queue_table,
        )

    # Helpers

    @staticmethod
    def _check(result: OperationResult, operation: str) -> OperationResult:
        if not result.is_success:
            logger.error(
                "dynamodb_operation_failed",
                operation=operation,
                error=result.message,
                error_code=result.error_code,
            )
            raise NotificationStoreError(
                f"{operation} failed: {result.message}", error_code=result.error_code
            )
        return result

    def _conditional_update(self, operation: str, table: str, **kwargs) -> bool:
        result = dynamodb_next.update_item(table_name=table, **kwargs)
        if result.is_success:
            return True
        if result.error_code == CONDITION_FAILED:
            logger.debug("dynamodb_condition_not_met", operation=operation)
            return False
        self._check(result, operation)
        return False

    @staticmethod
    def _items(result: OperationResult) -> List[Dict[str, Any]]:
        return (result.data or {}).get("Items", [])

    @staticmethod
    def _parse(
        parser: Callable[[Dict[str, Any]], T], item: Dict[str, Any], table: str
    ) -> Optional[T]:
        """Parse one row; a malformed row is logged and comes back as None."""
        try:
            return parser(item)
        except MALFORMED_ROW_ERRORS as e:
            logger.error(
                "dynamodb_malformed_row",
                table=table,
                record_id=_str(item, "id"),
                error=str(e),
            )
            return None

    def _parse_all(
        self,
        parser: Callable[[Dict[str, Any]], T],
        items: List[Dict[str, Any]],
        table: str,
    ) -> List[T]:
        parsed = (self._parse(parser, item, table) for item in items)
        return [value for value in parsed if value is not None]

    # Rules

    @staticmethod
    def _rule_from_item(item: Dict[str, Any]) -> NotificationRule:
        return NotificationRule(
            id=_str(item, "id"),
            organization_id=_str(item, "organization_id"),
            name=_str(item, "name", ""),
            description=_str(item, "description"),
            event_type=_str(item, "event_type"),
            channel_ids=[v["S"] for v in item.get("channel_ids", {}).get("L", [])],
            filters=_from_json(item, "filters"),
            cooldown_minutes=_int(item, "cooldown_minutes", 5),
            is_enabled=item.get("is_enabled", {}).get("BOOL", True),
        )

    def get_enabled_rules(
        self, organization_id: str, event_type: str
    ) -> List[NotificationRule]:
        result = self._check(
            dynamodb_next.query(
                table_name=self.rules_table,
                IndexName=RULES_ORGANIZATION_INDEX,
                KeyConditionExpression="organization_id = :org",
                FilterExpression="event_type = :event_type AND is_enabled = :enabled",
                ExpressionAttributeValues={
                    ":org": {"S": organization_id},
                    ":event_type": {"S": event_type},
                    ":enabled": {"BOOL": True},
                },
            ),
            "get_enabled_rules",
        )
        return self._parse_all(self._rule_from_item, self._items(result), self.rules_table)

    def get_rule(self, rule_id: str) -> Optional[NotificationRule]:
        result = self._check(
            dynamodb_next.get_item(
                table_name=self.rules_table,
                Key={"id": {"S": rule_id}},
                ConsistentRead=True,
            ),
            "get_rule",
        )
        item = (result.data or {}).get("Item")
        if not item:
            return None
        return self._parse(self._rule_from_item, item, self.rules_table)

    def save_rule(self, rule: NotificationRule) -> None:
        item: Dict[str, Any] = {
            "id": {"S": rule.id},
            "organization_id": {"S": rule.organization_id},
            "name": {"S": rule.name},
            "event_type": {"S": rule.event_type.value},
            "channel_ids": {"L": [{"S": channel_id} for channel_id in rule.channel_ids]},
            "filters": _json(rule.filters.model_dump()),
            "cooldown_minutes": {"N": str(rule.cooldown_minutes)},
            "is_enabled": {"BOOL": rule.is_enabled},
        }
        if rule.description:
            item["description"] = {"S": rule.description}
        self._check(
            dynamodb_next.put_item(table_name=self.rules_table, Item=item), "save_rule"
        )

    # Channels

    @staticmethod
    def _channel_from_item(item: Dict[str, Any]) -> NotificationChannel:
        return NotificationChannel(
            id=_str(item, "id"),
            organization_id=_str(item, "organization_id"),
            name=_str(item, "name", ""),
            channel_type=_str(item, "channel_type", ""),
            config=_from_json(item, "config"),
            is_enabled=item.get("is_enabled", {}).get("BOOL", True),
        )

    def get_channel(self, channel_id: str) -> Optional[NotificationChannel]:
        result = self._check(
            dynamodb_next.get_item(
                table_name=self.channels_table,
                Key={"id": {"S": channel_id}},
                ConsistentRead=True,
            ),
            "get_channel",
        )
        item = (result.data or {}).get("Item")
        if not item:
            return None
        return self._parse(self._channel_from_item, item, self.channels_table)

    def get_channels(self, channel_ids: Sequence[str]) -> List[NotificationChannel]:
        unique_ids = list(dict.fromkeys(channel_ids))
        if not unique_ids:
            return []
        result = self._check(
            dynamodb_next.batch_get_items(
                table_name=self.channels_table,
                keys=[{"id": {"S": channel_id}} for channel_id in unique_ids],
            ),
            "get_channels",
        )
        return self._parse_all(
            self._channel_from_item, self._items(result), self.channels_table
        )

    def save_channel(self, channel: NotificationChannel) -> None:
        item: Dict[str, Any] = {
            "id": {"S": channel.id},
            "name": {"S": channel.name},
            "channel_type": {"S": channel.channel_type},
            "config": _json(channel.config),
            "is_enabled": {"BOOL": channel.is_enabled},
        }
        if channel.organization_id:
            item["organization_id"] = {"S": channel.organization_id}
        self._check(
            dynamodb_next.put_item(table_name=self.channels_table, Item=item),
            "save_channel",
        )

    # Cooldowns

    def get_cooldown(
        self, rule_id: str, resource_type: str, resource_id: str
    ) -> Optional[CooldownRecord]:
        result = self._check(
            dynamodb_next.get_item(
                table_name=self.cooldowns_table,
                Key={"cooldown_key": {"S": cooldown_key(rule_id, resource_type, resource_id)}},
                ConsistentRead=True,
            ),
            "get_cooldown",
        )
        item = (result.data or {}).get("Item")
        if not item:
            return None
        return CooldownRecord(
            organization_id=_str(item, "organization_id", ""),
            rule_id=rule_id,
            resource_type=resource_type,
            resource_id=resource_id,
            last_notified_at=_from_ts(item, "last_notified_at"),
            claimed_at=_from_ts(item, "claimed_at"),
        )

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
        return self._conditional_update(
            "claim_cooldown",
            self.cooldowns_table,
            Key={"cooldown_key": {"S": cooldown_key(rule_id, resource_type, resource_id)}},
            UpdateExpression=(
                "SET organization_id = :org, rule_id = :rule, resource_type = :rtype, "
                "resource_id = :rid, claimed_at = :now"
            ),
            ConditionExpression=(
                "(attribute_not_exists(last_notified_at) OR last_notified_at <= :notified_before) "
                "AND (attribute_not_exists(claimed_at) OR claimed_at <= :claimed_before)"
            ),
            ExpressionAttributeValues={
                ":org": {"S": organization_id},
                ":rule": {"S": rule_id},
                ":rtype": {"S": resource_type},
                ":rid": {"S": resource_id},
                ":now": _ts(now),
                ":notified_before": _ts(notified_before),
                ":claimed_before": _ts(claimed_before),
            },
        )

    def upsert_cooldown(
        self,
        organization_id: str,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        notified_at: datetime,
    ) -> None:
        self._conditional_update(
            "upsert_cooldown",
            self.cooldowns_table,
            Key={"cooldown_key": {"S": cooldown_key(rule_id, resource_type, resource_id)}},
            UpdateExpression=(
                "SET organization_id = :org, rule_id = :rule, resource_type = :rtype, "
                "resource_id = :rid, last_notified_at = :at REMOVE claimed_at"
            ),
            ConditionExpression=(
                "attribute_not_exists(last_notified_at) OR last_notified_at <= :at"
            ),
            ExpressionAttributeValues={
                ":org": {"S": organization_id},
                ":rule": {"S": rule_id},
                ":rtype": {"S": resource_type},
                ":rid": {"S": resource_id},
                ":at": _ts(notified_at),
            },
        )

    def release_cooldown(
        self,
        rule_id: str,
        resource_type: str,
        resource_id: str,
        claimed_at: datetime,
    ) -> bool:
        return self._conditional_update(
            "release_cooldown",
            self.cooldowns_table,
            Key={"cooldown_key": {"S": cooldown_key(rule_id, resource_type, resource_id)}},
            UpdateExpression="REMOVE claimed_at",
            ConditionExpression="claimed_at = :claimed",
            ExpressionAttributeValues={":claimed": _ts(claimed_at)},
        )

    # Retry queue

    @staticmethod
    def _entry_to_item(entry: RetryQueueEntry) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "id": {"S": entry.id},
            "organization_id": {"S": entry.organization_id},
            "rule_id": {"S": entry.rule_id},
            "channel_id": {"S": entry.channel_id},
            "event_type": {"S": entry.event_type},
            "event_data": _json(entry.event_data),
            "attempt_count": {"N": str(entry.attempt_count)},
            "max_attempts": {"N": str(entry.max_attempts)},
            "next_attempt_at": _ts(entry.next_attempt_at),
            "status": {"S": entry.status.value},
            "created_at": _ts(entry.created_at),
        }
        if entry.last_error:
            item["last_error"] = {"S": entry.last_error}
        if entry.locked_at:
            item["locked_at"] = _ts(entry.locked_at)
        if entry.processed_at:
            item["processed_at"] = _ts(entry.processed_at)
        return item

    @staticmethod
    def _entry_from_item(item: Dict[str, Any]) -> RetryQueueEntry:
        return RetryQueueEntry(
            id=_str(item, "id"),
            organization_id=_str(item, "organization_id", ""),
            rule_id=_str(item, "rule_id", ""),
            channel_id=_str(item, "channel_id", ""),
            event_type=_str(item, "event_type", ""),
            event_data=_from_json(item, "event_data"),
            attempt_count=_int(item, "attempt_count"),
            max_attempts=_int(item, "max_attempts", 5),
            next_attempt_at=_from_ts(item, "next_attempt_at") or utc_now(),
            status=RetryStatus(_str(item, "status", RetryStatus.QUEUED.value)),
            last_error=_str(item, "last_error"),
            locked_at=_from_ts(item, "locked_at"),
            processed_at=_from_ts(item, "processed_at"),
            created_at=_from_ts(item, "created_at") or utc_now(),
        )

    def enqueue_retry(self, entry: RetryQueueEntry) -> str:
        entry_id = entry.id or str(uuid.uuid4())
        item = self._entry_to_item(entry)
        item["id"] = {"S": entry_id}
        self._check(
            dynamodb_next.put_item(
                table_name=self.retry_queue_table,
                Item=item,
                ConditionExpression="attribute_not_exists(id)",
            ),
            "enqueue_retry",
        )
        return entry_id

    def get_retry_entry(self, entry_id: str) -> Optional[RetryQueueEntry]:
        result = self._check(
            dynamodb_next.get_item(
                table_name=self.retry_queue_table,
                Key={"id": {"S": entry_id}},
                ConsistentRead=True,
            ),
            "get_retry_entry",
        )
        item = (result.data or {}).get("Item")
        return (
            self._parse(self._entry_from_item, item, self.retry_queue_table) if item else None
        )

    def list_retry_entries(
        self,
        status: Optional[str] = None,
        organization_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[RetryQueueEntry]:
        kwargs: Dict[str, Any] = {}
        if organization_id:
            kwargs["FilterExpression"] = "organization_id = :org"
            kwargs["ExpressionAttributeValues"] = {":org": {"S": organization_id}}

        if status:
            values = kwargs.setdefault("ExpressionAttributeValues", {})
            values[":status"] = {"S": status}
            result = dynamodb_next.query(
                table_name=self.retry_queue_table,
                IndexName=RETRY_STATUS_INDEX,
                KeyConditionExpression="#status = :status",
                ExpressionAttributeNames={"#status": "status"},
                **kwargs,
            )
        else:
            result = dynamodb_next.scan(table_name=self.retry_queue_table, **kwargs)

        self._check(result, "list_retry_entries")
        entries = self._parse_all(
            self._entry_from_item, self._items(result), self.retry_queue_table
        )
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    def fetch_due(self, now: datetime, limit: int) -> List[RetryQueueEntry]:
        result = self._check(
            dynamodb_next.query(
                table_name=self.retry_queue_table,
                IndexName=RETRY_STATUS_INDEX,
                KeyConditionExpression="#status = :queued AND next_attempt_at <= :now",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":queued": {"S": RetryStatus.QUEUED.value},
                    ":now": _ts(now),
                },
                ScanIndexForward=True,
                Limit=limit,
                paginate=False,
            ),
            "fetch_due",
        )
        entries = []
        for item in self._items(result):
            entry = self._parse(self._entry_from_item, item, self.retry_queue_table)
            if entry is None:
                self._dead_letter_malformed(item, now)
            else:
                entries.append(entry)
        return entries[:limit]

    def _dead_letter_malformed(self, item: Dict[str, Any], now: datetime) -> None:
        """Move a queued row that cannot be parsed straight to dead_letter."""
        record_id = _str(item, "id")
        if not record_id:
            return
        if self._conditional_update(
            "dead_letter_malformed",
            self.retry_queue_table,
            Key={"id": {"S": record_id}},
            UpdateExpression=(
                "SET #status = :dead, processed_at = :now, last_error = :error "
                "REMOVE locked_at"
            ),
            ConditionExpression="#status = :queued",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":dead": {"S": RetryStatus.DEAD_LETTER.value},
                ":queued": {"S": RetryStatus.QUEUED.value},
                ":now": _ts(now),
                ":error": {"S": "Malformed retry queue entry"},
            },
        ):
            logger.warning("retry_entry_malformed_dead_lettered", record_id=record_id)

    def claim_record(self, record_id: str, now: datetime) -> bool:
        return self._conditional_update(
            "claim_record",
            self.retry_queue_table,
            Key={"id": {"S": record_id}},
            UpdateExpression="SET #status = :processing, locked_at = :now",
            ConditionExpression="#status = :queued AND next_attempt_at <= :now",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":processing": {"S": RetryStatus.PROCESSING.value},
                ":queued": {"S": RetryStatus.QUEUED.value},
                ":now": _ts(now),
            },
        )

    def _finish(
        self,
        operation: str,
        record_id: str,
        status: RetryStatus,
        set_clause: str,
        values: Dict[str, Any],
    ) -> bool:
        values = {
            **values,
            ":target": {"S": status.value},
            ":processing": {"S": RetryStatus.PROCESSING.value},
        }
        return self._conditional_update(
            operation,
            self.retry_queue_table,
            Key={"id": {"S": record_id}},
            UpdateExpression=f"SET #status = :target, {set_clause} REMOVE locked_at",
            ConditionExpression="#status = :processing",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=values,
        )

    def mark_sent(
        self, record_id: str, attempt_count: int, processed_at: datetime
    ) -> bool:
        return self._finish(
            "mark_sent",
            record_id,
            RetryStatus.SENT,
            "attempt_count = :attempts, processed_at = :processed",
            {":attempts": {"N": str(attempt_count)}, ":processed": _ts(processed_at)},
        )

    def mark_dead_letter(
        self,
        record_id: str,
        attempt_count: int,
        last_error: str,
        processed_at: datetime,
    ) -> bool:
        return self._finish(
            "mark_dead_letter",
            record_id,
            RetryStatus.DEAD_LETTER,
            "attempt_count = :attempts, processed_at = :processed, last_error = :error",
            {
                ":attempts": {"N": str(attempt_count)},
                ":processed": _ts(processed_at),
                ":error": {"S": last_error or "unknown error"},
            },
        )

    def reschedule(
        self,
        record_id: str,
        attempt_count: int,
        next_attempt_at: datetime,
        last_error: str,
    ) -> bool:
        return self._finish(
            "reschedule",
            record_id,
            RetryStatus.QUEUED,
            "attempt_count = :attempts, next_attempt_at = :next, last_error = :error",
            {
                ":attempts": {"N": str(attempt_count)},
                ":next": _ts(next_attempt_at),
                ":error": {"S": last_error or "unknown error"},
            },
        )

    def release_expired_claims(self, claimed_before: datetime) -> List[str]:
        result = self._check(
            dynamodb_next.query(
                table_name=self.retry_queue_table,
                IndexName=RETRY_STATUS_INDEX,
                KeyConditionExpression="#status = :processing",
                FilterExpression="locked_at <= :cutoff",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":processing": {"S": RetryStatus.PROCESSING.value},
                    ":cutoff": _ts(claimed_before),
                },
            ),
            "release_expired_claims",
        )

        released = []
        for item in self._items(result):
            record_id = _str(item, "id")
            locked_at = item.get("locked_at")
            if not record_id or not locked_at:
                continue
            if self._conditional_update(
                "release_expired_claim",
                self.retry_queue_table,
                Key={"id": {"S": record_id}},
                UpdateExpression="SET #status = :queued REMOVE locked_at",
                ConditionExpression="#status = :processing AND locked_at = :locked",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":queued": {"S": RetryStatus.QUEUED.value},
                    ":processing": {"S": RetryStatus.PROCESSING.value},
                    ":locked": locked_at,
                },
            ):
                released.append(record_id)
        return released

    # History

    def add_history(self, record: NotificationHistoryRecord) -> None:
        item: Dict[str, Any] = {
            "id": {"S": record.id},
            "organization_id": {"S": record.organization_id},
            "rule_id": {"S": record.rule_id},
            "channel_id": {"S": record.channel_id},
            "event_type": {"S": record.event_type},
            "event_data": _json(record.event_data),
            "status": {"S": record.status.value},
            "created_at": _ts(record.created_at),
        }
        if record.error:
            item["error"] = {"S": record.error}
        if record.sent_at:
            item["sent_at"] = _ts(record.sent_at)
        self._check(
            dynamodb_next.put_item(table_name=self.history_table, Item=item),
            "add_history",
        )

    def list_history(
        self, organization_id: Optional[str] = None, limit: int = 50
    ) -> List[NotificationHistoryRecord]:
        kwargs: Dict[str, Any] = {}
        if organization_id:
            kwargs["FilterExpression"] = "organization_id = :org"
            kwargs["ExpressionAttributeValues"] = {":org": {"S": organization_id}}
        result = self._check(
            dynamodb_next.scan(table_name=self.history_table, **kwargs), "list_history"
        )
        records = [
            NotificationHistoryRecord(
                id=_str(item, "id"),
                organization_id=_str(item, "organization_id", ""),
                rule_id=_str(item, "rule_id", ""),
                channel_id=_str(item, "channel_id", ""),
                event_type=_str(item, "event_type", ""),
                event_data=_from_json(item, "event_data"),
                status=HistoryStatus(_str(item, "status", HistoryStatus.FAILED.value)),
                error=_str(item, "error"),
                sent_at=_from_ts(item, "sent_at"),
                created_at=_from_ts(item, "created_at") or utc_now(),
            )
            for item in self._items(result)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]
