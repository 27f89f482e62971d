"""Notification domain models.

Pydantic models for the inbound event, the operator-managed rules and
channels, and the records the engine persists (cooldowns, history). The retry
queue entry is a dataclass extending the generic retry record so the retry
worker can drive it.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from infrastructure.resilience.retry.models import RetryRecord, utc_now

# Keys written next to the event data in retry entries and history snapshots
RESERVED_EVENT_DATA_KEYS = frozenset(
    {"resource_type", "resource_id", "resource_name", "timestamp", "rule_id", "channel_id"}
)


class EventType(str, Enum):
    """Notification-worthy state changes."""

    DEVICE_OFFLINE = "device.offline"
    DEVICE_ONLINE = "device.online"
    DEVICE_DEGRADED = "device.degraded"
    AGENT_OFFLINE = "agent.offline"
    AGENT_ONLINE = "agent.online"
    SCAN_COMPLETE = "scan.complete"

    @property
    def status(self) -> str:
        """Trailing status word, e.g. "offline" for device.offline."""
        return self.value.split(".", 1)[1]


class ResourceType(str, Enum):
    DEVICE = "device"
    AGENT = "agent"
    SEGMENT = "segment"


class ChannelType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    TEAMS = "teams"
    WEBHOOK = "webhook"


class HistoryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NotificationEvent(BaseModel):
    """A state change worth alerting on.

    Accepts snake_case or camelCase keys so producers can send either
    ``resource_id`` or ``resourceId``. Never persisted directly.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: EventType
    organization_id: str = Field(alias="organizationId", min_length=1)
    resource_type: ResourceType = Field(alias="resourceType")
    resource_id: str = Field(alias="resourceId", min_length=1)
    resource_name: str = Field(alias="resourceName")
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Store timestamps as timezone-aware UTC."""
        return _as_utc(v)

    def snapshot(self) -> Dict[str, Any]:
        """Flatten the event into the event_data shape stored with history
        records and retry entries."""
        snapshot = dict(self.data)
        snapshot.update(
            {
                "resource_type": self.resource_type.value,
                "resource_id": self.resource_id,
                "resource_name": self.resource_name,
                "timestamp": self.timestamp.isoformat(),
            }
        )
        return snapshot


class RuleFilters(BaseModel):
    """Optional id allow-lists narrowing which events a rule matches."""

    device_ids: List[str] = Field(default_factory=list)
    agent_ids: List[str] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list)
    segment_ids: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.device_ids or self.agent_ids or self.category_ids or self.segment_ids
        )


class NotificationRule(BaseModel):
    """Operator-defined policy binding an event type to channels."""

    id: str
    organization_id: str
    name: str = ""
    description: Optional[str] = None
    event_type: EventType
    channel_ids: List[str] = Field(min_length=1)
    filters: RuleFilters = Field(default_factory=RuleFilters)
    cooldown_minutes: int = Field(default=5, ge=1)
    is_enabled: bool = True


class NotificationChannel(BaseModel):
    """A configured delivery destination.

    channel_type is kept as a plain string so rows with an unsupported type
    still load and fail delivery as a configuration error.
    """

    id: str
    organization_id: Optional[str] = None
    name: str = ""
    channel_type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    is_enabled: bool = True


def cooldown_key(rule_id: str, resource_type: str, resource_id: str) -> str:
    return f"{rule_id}#{resource_type}#{resource_id}"


class CooldownRecord(BaseModel):
    """Last successful notification for a (rule, resource) pair.

    claimed_at marks a delivery in progress that has passed the cooldown gate
    but not yet succeeded.
    """

    organization_id: str
    rule_id: str
    resource_type: str
    resource_id: str
    last_notified_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return cooldown_key(self.rule_id, self.resource_type, self.resource_id)


@dataclass(kw_only=True)
class RetryQueueEntry(RetryRecord):
    """A delivery that failed immediately and waits in the retry queue.

    event_data holds the flattened event (see NotificationEvent.snapshot)
    together with rule_id and channel_id.
    """

    organization_id: str
    rule_id: str
    channel_id: str
    event_type: str
    event_data: Dict[str, Any] = field(default_factory=dict)


class NotificationHistoryRecord(BaseModel):
    """Append-only audit record of one delivery outcome."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    rule_id: str
    channel_id: str
    event_type: str
    event_data: Dict[str, Any] = Field(default_factory=dict)
    status: HistoryStatus
    error: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class DeliveryResult(BaseModel):
    """Outcome of delivering one event through one channel of one rule."""

    rule_id: str
    channel_id: str
    channel_type: str
    success: bool
    error: Optional[str] = None
    attempts: int = 0
    queued_for_retry: bool = False
    retry_entry_id: Optional[str] = None
