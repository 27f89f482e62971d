"""Unit tests for NotificationRetryProcessor and rebuild_event."""

from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult, OperationStatus
from infrastructure.resilience.retry import RetryRecord
from modules.notifications.cooldown import CooldownTracker
from modules.notifications.models import EventType, HistoryStatus, ResourceType
from modules.notifications.retry import (
    MalformedRetryEntry,
    NotificationRetryProcessor,
    rebuild_event,
)
from modules.notifications.store.base import NotificationStoreError
from tests.factories.notifications import (
    FIXED_NOW,
    ScriptedSender,
    make_channel,
    make_event,
    make_retry_entry,
    make_rule,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def cooldowns(store, clock):
    return CooldownTracker(store, clock=clock)


@pytest.fixture
def processor(store, registry, cooldowns, clock):
    return NotificationRetryProcessor(store, registry, cooldowns=cooldowns, clock=clock)


@pytest.fixture
def seeded(store):
    store.save_rule(make_rule())
    store.save_channel(make_channel())
    return store


class TestRebuildEvent:
    def test_rebuilds_original_event(self):
        event = make_event(data={"ip_address": "10.0.0.1", "segment_id": "s1"})

        rebuilt = rebuild_event(make_retry_entry(event=event))

        assert rebuilt == event

    def test_target_ids_are_not_leaked_into_data(self):
        rebuilt = rebuild_event(make_retry_entry())

        assert "rule_id" not in rebuilt.data
        assert "channel_id" not in rebuilt.data

    def test_missing_fields(self):
        entry = make_retry_entry(event_data={"resource_type": "device"})

        with pytest.raises(MalformedRetryEntry) as exc_info:
            rebuild_event(entry)

        assert "resource_id" in str(exc_info.value)
        assert "resource_name" in str(exc_info.value)

    def test_unknown_event_type(self):
        with pytest.raises(MalformedRetryEntry):
            rebuild_event(make_retry_entry(event_type="device.exploded"))

    def test_unknown_resource_type(self):
        entry = make_retry_entry(
            event_data={
                "resource_type": "printer",
                "resource_id": "p1",
                "resource_name": "lobby",
            }
        )

        with pytest.raises(MalformedRetryEntry):
            rebuild_event(entry)

    def test_bad_timestamp(self):
        event_data = make_event().snapshot()
        event_data["timestamp"] = "yesterday-ish"

        with pytest.raises(MalformedRetryEntry):
            rebuild_event(make_retry_entry(event_data=event_data))

    def test_missing_timestamp_defaults(self):
        event_data = make_event().snapshot()
        del event_data["timestamp"]

        rebuilt = rebuild_event(make_retry_entry(event_data=event_data))

        assert rebuilt.timestamp.tzinfo is not None

    def test_scan_event(self):
        event = make_event(
            event_type=EventType.SCAN_COMPLETE,
            resource_type=ResourceType.SEGMENT,
            resource_id="s1",
            resource_name="lab",
            data={"devices_found": 12},
        )

        rebuilt = rebuild_event(make_retry_entry(event=event))

        assert rebuilt.resource_type == ResourceType.SEGMENT
        assert rebuilt.data == {"devices_found": 12}


class TestProcessRecord:
    def test_success_writes_history_and_advances_cooldown(
        self, processor, seeded, email_sender
    ):
        result = processor.process_record(make_retry_entry())

        assert result.is_success
        assert len(email_sender.calls) == 1
        [history] = seeded.list_history()
        assert history.status == HistoryStatus.SENT
        assert history.sent_at == FIXED_NOW
        assert seeded.get_cooldown("rule-1", "device", "d1").last_notified_at == FIXED_NOW

    def test_transient_failure_writes_failed_history(
        self, processor, seeded, registry
    ):
        registry.register(
            "email",
            ScriptedSender("email", [OperationResult.transient_error("x" * 500)]),
        )

        result = processor.process_record(make_retry_entry())

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.message == "x" * 200
        [history] = seeded.list_history()
        assert history.status == HistoryStatus.FAILED
        assert history.error == "x" * 200
        assert seeded.get_cooldown("rule-1", "device", "d1") is None

    def test_sender_exception_is_transient(self, processor, seeded, registry):
        registry.register("email", ScriptedSender("email", [ConnectionError("reset")]))

        result = processor.process_record(make_retry_entry())

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "SENDER_EXCEPTION"

    def test_malformed_entry_is_permanent(self, processor, seeded):
        result = processor.process_record(make_retry_entry(event_data={}))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "MALFORMED_ENTRY"
        assert seeded.list_history() == []

    def test_deleted_rule_is_permanent(self, processor, store):
        store.save_channel(make_channel())

        result = processor.process_record(make_retry_entry())

        assert result.error_code == "RULE_NOT_FOUND"
        assert result.message == "Rule rule-1 no longer exists"

    def test_deleted_channel_is_permanent(self, processor, store):
        store.save_rule(make_rule())

        result = processor.process_record(make_retry_entry())

        assert result.error_code == "CHANNEL_NOT_FOUND"

    def test_disabled_channel_is_permanent(self, processor, store, email_sender):
        store.save_rule(make_rule())
        store.save_channel(make_channel(is_enabled=False))

        result = processor.process_record(make_retry_entry())

        assert result.error_code == "CHANNEL_DISABLED"
        assert email_sender.calls == []

    def test_unknown_channel_type_is_permanent(self, processor, store):
        store.save_rule(make_rule())
        store.save_channel(make_channel(channel_type="pager", config={}))

        result = processor.process_record(make_retry_entry())

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "INVALID_CONFIG"
        assert store.list_history()[0].error == "Unsupported channel type: pager"

    def test_store_error_is_transient(self, registry, clock):
        store = MagicMock()
        store.get_rule.side_effect = NotificationStoreError("throttled", error_code="RATE_LIMITED")
        processor = NotificationRetryProcessor(store, registry, clock=clock)

        result = processor.process_record(make_retry_entry())

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"

    def test_foreign_record_type_is_rejected(self, processor):
        result = processor.process_record(RetryRecord(id="generic"))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "INVALID_RECORD"

    def test_without_cooldown_tracker(self, seeded, registry, clock):
        processor = NotificationRetryProcessor(seeded, registry, clock=clock)

        assert processor.process_record(make_retry_entry()).is_success
        assert seeded.get_cooldown("rule-1", "device", "d1") is None
