"""Test data factories for deterministic test data generation."""

from tests.factories.notifications import (
    FIXED_NOW,
    FakeClock,
    ScriptedSender,
    make_channel,
    make_event,
    make_retry_entry,
    make_rule,
)

__all__ = [
    "FIXED_NOW",
    "FakeClock",
    "ScriptedSender",
    "make_channel",
    "make_event",
    "make_retry_entry",
    "make_rule",
]
