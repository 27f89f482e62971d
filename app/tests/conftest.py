"""Shared fixtures for the notification engine test suite."""

import pytest

from infrastructure.configuration import NotificationsSettings, RetrySettings, Settings
from modules.notifications.channels.registry import SenderRegistry
from modules.notifications.store.memory import InMemoryNotificationStore
from tests.factories.notifications import FakeClock, ScriptedSender


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: multi-component tests")


@pytest.fixture
def settings_factory():
    """Build Settings without reading the environment for notification knobs.

    Keyword arguments use the environment variable names, e.g.
    settings_factory(NOTIFICATIONS_IMMEDIATE_ATTEMPTS=2, RETRY_MAX_ATTEMPTS=3).
    """

    def _factory(**overrides) -> Settings:
        notification_values = {
            "NOTIFICATIONS_STORE_BACKEND": "memory",
            "NOTIFICATIONS_IMMEDIATE_BACKOFF_SECONDS": 0.2,
            "CRON_SECRET": None,
        }
        retry_values = {}
        for key, value in overrides.items():
            if key.startswith("RETRY_"):
                retry_values[key] = value
            else:
                notification_values[key] = value
        return Settings(
            PREFIX="test-",
            notifications=NotificationsSettings(**notification_values),
            retry=RetrySettings(**retry_values),
        )

    return _factory


@pytest.fixture
def settings(settings_factory):
    return settings_factory()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def store():
    return InMemoryNotificationStore()


@pytest.fixture
def email_sender():
    return ScriptedSender("email")


@pytest.fixture
def registry(email_sender):
    registry = SenderRegistry()
    registry.register("email", email_sender)
    return registry
