"""Unit tests for NotificationSubmitter."""

import threading
import time
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from modules.notifications.submission import NotificationSubmitter
from tests.factories.notifications import make_event

pytestmark = pytest.mark.unit


@pytest.fixture
def service():
    return MagicMock()


class TestSubmit:
    def test_accepted_event_is_triggered(self, service):
        submitter = NotificationSubmitter(service, max_workers=1)
        event = make_event()

        assert submitter.submit(event) is True
        submitter.shutdown(wait=True)

        service.trigger.assert_called_once_with(event)

    def test_mappings_are_parsed_before_queueing(self, service):
        submitter = NotificationSubmitter(service, max_workers=1)

        submitter.submit(
            {
                "type": "device.online",
                "organizationId": "org-1",
                "resourceType": "device",
                "resourceId": "d1",
                "resourceName": "core-switch",
            }
        )
        submitter.shutdown(wait=True)

        triggered = service.trigger.call_args.args[0]
        assert triggered.resource_id == "d1"

    def test_malformed_event_raises_in_caller(self, service):
        submitter = NotificationSubmitter(service)

        with pytest.raises(ValidationError):
            submitter.submit({"type": "device.offline"})

        submitter.shutdown()
        service.trigger.assert_not_called()

    def test_rejects_when_queue_is_full(self, service):
        started = threading.Event()
        release = threading.Event()

        def _block(_event):
            started.set()
            release.wait(timeout=5)

        service.trigger.side_effect = _block
        submitter = NotificationSubmitter(service, max_workers=1, max_pending=1)

        assert submitter.submit(make_event()) is True
        assert started.wait(timeout=5)
        assert submitter.submit(make_event()) is False

        release.set()
        submitter.shutdown(wait=True)
        assert service.trigger.call_count == 1

    def test_slot_is_freed_after_completion(self, service):
        submitter = NotificationSubmitter(service, max_workers=1, max_pending=1)
        done = threading.Event()
        service.trigger.side_effect = lambda _event: done.set()

        assert submitter.submit(make_event()) is True
        assert done.wait(timeout=5)
        # the done callback runs right after trigger returns
        for _ in range(100):
            if submitter.submit(make_event()):
                break
            time.sleep(0.01)
        else:
            pytest.fail("slot was never released")

        submitter.shutdown(wait=True)

    def test_rejects_after_shutdown(self, service):
        submitter = NotificationSubmitter(service)
        submitter.shutdown()

        assert submitter.submit(make_event()) is False
        service.trigger.assert_not_called()

    def test_service_errors_are_logged_not_raised(self, service):
        service.trigger.side_effect = RuntimeError("boom")
        submitter = NotificationSubmitter(service, max_workers=1)

        assert submitter.submit(make_event()) is True
        submitter.shutdown(wait=True)

        service.trigger.assert_called_once()

    def test_failed_trigger_frees_slot(self, service):
        service.trigger.side_effect = RuntimeError("boom")
        submitter = NotificationSubmitter(service, max_workers=1, max_pending=1)

        submitter.submit(make_event())
        submitter.shutdown(wait=True)

        assert submitter._slots.acquire(blocking=False) is True


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"max_pending": 0}])
    def test_rejects_non_positive_limits(self, service, kwargs):
        with pytest.raises(ValueError):
            NotificationSubmitter(service, **kwargs)
