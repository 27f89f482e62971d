"""Unit tests for the notification HTTP routes."""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies.rate_limits import setup_rate_limiter
from infrastructure.resilience.retry import RetryStatus
from infrastructure.services.providers import get_settings
from modules.notifications.api import router
from modules.notifications.service import build_notification_service
from tests.factories.notifications import FIXED_NOW, make_channel, make_retry_entry, make_rule

pytestmark = pytest.mark.unit

TRIGGER_PAYLOAD = {
    "type": "device.offline",
    "organizationId": "org-1",
    "resourceType": "device",
    "resourceId": "d1",
    "resourceName": "core-switch",
    "data": {"ip_address": "10.0.0.1"},
}

EMPTY_STATS = {
    "success": True,
    "processed": 0,
    "sent": 0,
    "retried": 0,
    "dead_lettered": 0,
    "skipped": 0,
}


@pytest.fixture
def service(settings, store, registry, clock, fake_sleep):
    store.save_channel(make_channel())
    store.save_rule(make_rule())
    return build_notification_service(
        settings, store=store, senders=registry, clock=clock, sleep=fake_sleep
    )


@pytest.fixture
def submitter():
    submitter = MagicMock()
    submitter.submit.return_value = True
    return submitter


@pytest.fixture
def app(settings, service, submitter):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    setup_rate_limiter(app)
    app.state.notification_service = service
    app.state.notification_submitter = submitter
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _with_secret(app, settings_factory, secret="s3cret"):
    app.dependency_overrides[get_settings] = lambda: settings_factory(CRON_SECRET=secret)


class TestTrigger:
    def test_wait_returns_delivery_results(self, client, email_sender):
        response = client.post("/api/v1/notifications/trigger?wait=true", json=TRIGGER_PAYLOAD)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["results"] == [
            {
                "rule_id": "rule-1",
                "channel_id": "channel-1",
                "channel_type": "email",
                "success": True,
                "error": None,
                "attempts": 1,
                "queued_for_retry": False,
                "retry_entry_id": None,
            }
        ]
        assert len(email_sender.calls) == 1

    def test_wait_without_matches_reports_failure(self, client):
        payload = {**TRIGGER_PAYLOAD, "organizationId": "org-2"}

        response = client.post("/api/v1/notifications/trigger?wait=true", json=payload)

        assert response.json() == {"success": False, "results": []}

    def test_default_is_fire_and_forget(self, client, submitter, email_sender):
        response = client.post("/api/v1/notifications/trigger", json=TRIGGER_PAYLOAD)

        assert response.status_code == 202
        assert response.json() == {"accepted": True}
        submitted = submitter.submit.call_args.args[0]
        assert submitted.resource_id == "d1"
        assert email_sender.calls == []

    def test_full_submitter_returns_503(self, client, submitter):
        submitter.submit.return_value = False

        response = client.post("/api/v1/notifications/trigger", json=TRIGGER_PAYLOAD)

        assert response.status_code == 503
        assert response.json()["accepted"] is False

    def test_malformed_event_returns_422(self, client, submitter):
        response = client.post(
            "/api/v1/notifications/trigger", json={"type": "device.offline"}
        )

        assert response.status_code == 422
        submitter.submit.assert_not_called()

    def test_service_not_ready_returns_503(self, app, client):
        del app.state.notification_service

        response = client.post("/api/v1/notifications/trigger", json=TRIGGER_PAYLOAD)

        assert response.status_code == 503
        assert response.json()["detail"] == "Notification service not ready"


class TestRetryQueueProcessing:
    def test_processes_due_entries(self, client, store):
        store.enqueue_retry(make_retry_entry(next_attempt_at=FIXED_NOW))

        response = client.post("/api/v1/notifications/retry-queue/process")

        assert response.status_code == 200
        assert response.json() == {**EMPTY_STATS, "processed": 1, "sent": 1}

    def test_get_variant(self, client):
        response = client.get("/api/v1/notifications/retry-queue/process")

        assert response.status_code == 200
        assert response.json() == EMPTY_STATS

    @pytest.mark.parametrize(
        "query, expected_limit",
        [("", 50), ("?limit=10", 10), ("?limit=1000", 200), ("?limit=0", 1)],
    )
    def test_limit_is_clamped(self, app, client, query, expected_limit):
        service = MagicMock()
        service.process_retry_queue.return_value = EMPTY_STATS
        app.state.notification_service = service

        client.post(f"/api/v1/notifications/retry-queue/process{query}")

        service.process_retry_queue.assert_called_once_with(limit=expected_limit)

    def test_missing_secret_is_rejected(self, app, client, settings_factory):
        _with_secret(app, settings_factory)

        response = client.post("/api/v1/notifications/retry-queue/process")

        assert response.status_code == 401

    def test_wrong_secret_is_rejected(self, app, client, settings_factory):
        _with_secret(app, settings_factory)

        response = client.get(
            "/api/v1/notifications/retry-queue/process",
            headers={"Authorization": "Bearer nope"},
        )

        assert response.status_code == 401

    def test_correct_secret_is_accepted(self, app, client, settings_factory):
        _with_secret(app, settings_factory)

        response = client.post(
            "/api/v1/notifications/retry-queue/process",
            headers={"Authorization": "Bearer s3cret"},
        )

        assert response.status_code == 200


class TestDeadLetters:
    def test_lists_dead_letters(self, client, store):
        store.enqueue_retry(
            make_retry_entry(id="dead-1", status=RetryStatus.DEAD_LETTER, attempt_count=5)
        )
        store.enqueue_retry(make_retry_entry(id="queued"))

        response = client.get("/api/v1/notifications/retry-queue/dead-letters")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        [entry] = body["entries"]
        assert entry["id"] == "dead-1"
        assert entry["attempt_count"] == 5
        assert entry["processed_at"] is None

    def test_filters_by_organization(self, client, store):
        store.enqueue_retry(make_retry_entry(id="dead-1", status=RetryStatus.DEAD_LETTER))

        response = client.get(
            "/api/v1/notifications/retry-queue/dead-letters?organization_id=org-2"
        )

        assert response.json() == {"count": 0, "entries": []}

    def test_limit_above_maximum_is_rejected(self, client):
        response = client.get("/api/v1/notifications/retry-queue/dead-letters?limit=500")

        assert response.status_code == 422

    def test_requires_secret_when_configured(self, app, client, settings_factory):
        _with_secret(app, settings_factory)

        response = client.get("/api/v1/notifications/retry-queue/dead-letters")

        assert response.status_code == 401
