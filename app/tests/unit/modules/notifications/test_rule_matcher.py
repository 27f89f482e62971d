"""Unit tests for rule filters and the RuleMatcher."""

from unittest.mock import MagicMock

import pytest

from modules.notifications.matcher import RuleMatcher, rule_matches
from modules.notifications.models import EventType, ResourceType
from modules.notifications.store.base import NotificationStoreError
from tests.factories.notifications import make_event, make_rule

pytestmark = pytest.mark.unit


class TestRuleMatches:
    def test_empty_filters_match_everything(self):
        assert rule_matches(make_rule(), make_event())

    def test_device_filter(self):
        rule = make_rule(filters={"device_ids": ["d1", "d2"]})

        assert rule_matches(rule, make_event(resource_id="d2"))
        assert not rule_matches(rule, make_event(resource_id="d3"))

    def test_device_filter_rejects_other_resource_types(self):
        rule = make_rule(
            event_type=EventType.AGENT_OFFLINE, filters={"device_ids": ["a1"]}
        )
        event = make_event(
            event_type=EventType.AGENT_OFFLINE,
            resource_type=ResourceType.AGENT,
            resource_id="a1",
        )

        assert not rule_matches(rule, event)

    def test_agent_filter(self):
        rule = make_rule(
            event_type=EventType.AGENT_OFFLINE, filters={"agent_ids": ["a1"]}
        )
        event = make_event(
            event_type=EventType.AGENT_OFFLINE,
            resource_type=ResourceType.AGENT,
            resource_id="a1",
        )

        assert rule_matches(rule, event)

    def test_category_filter_reads_event_data(self):
        rule = make_rule(filters={"category_ids": ["7"]})

        assert rule_matches(rule, make_event(data={"category_id": 7}))
        assert not rule_matches(rule, make_event(data={"category_id": 8}))
        assert not rule_matches(rule, make_event(data={}))

    def test_segment_filter_uses_resource_id_for_segments(self):
        rule = make_rule(
            event_type=EventType.SCAN_COMPLETE, filters={"segment_ids": ["s1"]}
        )
        event = make_event(
            event_type=EventType.SCAN_COMPLETE,
            resource_type=ResourceType.SEGMENT,
            resource_id="s1",
        )

        assert rule_matches(rule, event)

    def test_segment_filter_uses_data_for_devices(self):
        rule = make_rule(filters={"segment_ids": ["s1"]})

        assert rule_matches(rule, make_event(data={"segment_id": "s1"}))
        assert not rule_matches(rule, make_event(data={}))

    def test_every_filter_must_pass(self):
        rule = make_rule(filters={"device_ids": ["d1"], "category_ids": ["7"]})

        assert rule_matches(rule, make_event(data={"category_id": "7"}))
        assert not rule_matches(rule, make_event(data={"category_id": "9"}))


class TestRuleMatcher:
    def test_returns_matching_rules_sorted_by_id(self, store):
        store.save_rule(make_rule(id="rule-b"))
        store.save_rule(make_rule(id="rule-a"))
        store.save_rule(make_rule(id="rule-c", filters={"device_ids": ["other"]}))
        store.save_rule(make_rule(id="rule-d", is_enabled=False))

        rules = RuleMatcher(store).match(make_event())

        assert [rule.id for rule in rules] == ["rule-a", "rule-b"]

    def test_no_rules(self, store):
        assert RuleMatcher(store).match(make_event()) == []

    def test_store_error_yields_no_rules(self):
        store = MagicMock()
        store.get_enabled_rules.side_effect = NotificationStoreError("query failed")

        assert RuleMatcher(store).match(make_event()) == []
