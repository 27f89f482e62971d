"""Shared fixtures for retry worker tests."""

from typing import List

import pytest

from infrastructure.operations import OperationResult
from infrastructure.resilience.retry import RetryConfig, RetryRecord, RetryWorker
from modules.notifications.store.memory import InMemoryNotificationStore
from tests.factories.notifications import FakeClock, make_retry_entry


class ScriptedProcessor:
    """RetryProcessor returning a fixed result (or raising) and recording calls."""

    def __init__(self, result=None):
        self.result = result or OperationResult.success()
        self.processed: List[RetryRecord] = []

    def process_record(self, record: RetryRecord) -> OperationResult:
        self.processed.append(record)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def retry_clock():
    return FakeClock()


@pytest.fixture
def retry_store():
    return InMemoryNotificationStore()


@pytest.fixture
def processor():
    return ScriptedProcessor()


@pytest.fixture
def worker_factory(retry_store, processor, retry_clock):
    def _factory(**config_overrides) -> RetryWorker:
        return RetryWorker(
            retry_store,
            processor,
            config=RetryConfig(**config_overrides),
            clock=retry_clock,
        )

    return _factory


@pytest.fixture
def queued_entry(retry_store, retry_clock):
    """Store a due entry and return its id."""

    def _factory(**kwargs) -> str:
        kwargs.setdefault("next_attempt_at", retry_clock())
        return retry_store.enqueue_retry(make_retry_entry(**kwargs))

    return _factory
