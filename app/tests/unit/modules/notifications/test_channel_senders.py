"""Unit tests for the channel senders.

The shared requests.Session is a MagicMock; each test checks the single
outbound request and how its outcome is classified.
"""

from unittest.mock import MagicMock

import pytest
import requests

from infrastructure.operations import OperationStatus
from modules.notifications.channels import (
    EmailSender,
    SenderRegistry,
    SlackSender,
    TeamsSender,
    WebhookSender,
    build_default_registry,
)
from modules.notifications.models import EventType
from tests.factories.notifications import make_channel, make_event, make_rule

pytestmark = pytest.mark.unit


def _response(status_code=200, text="ok", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    return response


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.request.return_value = _response()
    return session


@pytest.fixture
def email(session):
    return EmailSender(
        session,
        api_key="re_test",
        from_email="Pulse <alerts@example.com>",
        app_url="https://pulse.example.com",
    )


class TestEmailSender:
    def test_posts_to_resend(self, email, session):
        channel = make_channel(config={"recipients": ["a@example.com", "b@example.com"]})

        result = email.send(make_event(), make_rule(), channel)

        assert result.is_success
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert (method, url) == ("POST", "https://api.resend.com/emails")
        assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
        assert kwargs["timeout"] == 10.0
        payload = kwargs["json"]
        assert payload["from"] == "Pulse <alerts@example.com>"
        assert payload["to"] == ["a@example.com", "b@example.com"]
        assert payload["subject"] == "[Alert] Device Offline: core-switch"
        assert "core-switch" in payload["html"]

    def test_missing_api_key_is_permanent(self, session):
        sender = EmailSender(session, api_key=None, from_email="alerts@example.com")

        result = sender.send(make_event(), make_rule(), make_channel())

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.message == "Email service not configured"
        session.request.assert_not_called()

    def test_invalid_recipients_is_permanent(self, email, session):
        result = email.send(make_event(), make_rule(), make_channel(config={"recipients": []}))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "INVALID_CONFIG"
        assert result.message.startswith("Invalid email channel config: recipients")
        session.request.assert_not_called()

    def test_provider_error_is_transient(self, email, session):
        session.request.return_value = _response(422, '{"message": "invalid from"}')

        result = email.send(make_event(), make_rule(), make_channel())

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.message == 'Resend API error (422): {"message": "invalid from"}'

    def test_html_escapes_values(self, email):
        event = make_event(resource_name="<script>alert(1)</script>")

        html = email.render_html(event)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert 'href="https://pulse.example.com"' in html


class TestSlackSender:
    def test_posts_block_message(self, session):
        sender = SlackSender(session)
        channel = make_channel(channel_type="slack")

        result = sender.send(make_event(), make_rule(name="Core"), channel)

        assert result.is_success
        assert session.request.call_args.args == (
            "POST",
            "https://hooks.slack.com/services/T000/B000/XXX",
        )
        attachment = session.request.call_args.kwargs["json"]["attachments"][0]
        assert attachment["color"] == "#dc2626"
        header, section, context = attachment["blocks"]
        assert header["text"]["text"] == ":red_circle: Device Offline: core-switch"
        assert {"type": "mrkdwn", "text": "*IP Address:*\n10.0.0.1"} in section["fields"]
        assert context["elements"][0]["text"] == "Rule: Core | Sent by Pulse"

    def test_scan_complete_uses_default_color(self):
        event = make_event(event_type=EventType.SCAN_COMPLETE)

        message = SlackSender.build_message(event, make_rule())

        assert message["attachments"][0]["color"] == "#2563eb"

    def test_timeout_is_transient(self, session):
        session.request.side_effect = requests.Timeout("read timed out")
        sender = SlackSender(session)

        result = sender.send(make_event(), make_rule(), make_channel(channel_type="slack"))

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "TIMEOUT"

    def test_missing_webhook_url_is_permanent(self, session):
        sender = SlackSender(session)

        result = sender.send(
            make_event(), make_rule(), make_channel(channel_type="slack", config={})
        )

        assert result.error_code == "INVALID_CONFIG"
        session.request.assert_not_called()


class TestTeamsSender:
    def test_posts_adaptive_card(self, session):
        sender = TeamsSender(session)

        result = sender.send(
            make_event(event_type=EventType.DEVICE_ONLINE),
            make_rule(),
            make_channel(channel_type="teams"),
        )

        assert result.is_success
        message = session.request.call_args.kwargs["json"]
        assert message["type"] == "message"
        attachment = message["attachments"][0]
        assert attachment["contentType"] == "application/vnd.microsoft.card.adaptive"
        card = attachment["content"]
        assert card["version"] == "1.4"
        container, facts, _footer = card["body"]
        assert container["style"] == "good"
        assert {"title": "Status", "value": "Online"} in facts["facts"]

    def test_error_body_is_truncated(self, session):
        session.request.return_value = _response(500, "x" * 1000)
        sender = TeamsSender(session, error_max_length=50)

        result = sender.send(make_event(), make_rule(), make_channel(channel_type="teams"))

        assert result.message == "Teams webhook error (500): " + "x" * 50


class TestWebhookSender:
    def test_posts_envelope_with_merged_headers(self, session):
        sender = WebhookSender(session)
        channel = make_channel(
            channel_type="webhook",
            name="SIEM",
            config={
                "url": "https://hooks.example.com/pulse",
                "headers": {"Authorization": "Token abc", "User-Agent": "custom"},
            },
        )

        result = sender.send(make_event(), make_rule(), channel)

        assert result.is_success
        assert session.request.call_args.args == ("POST", "https://hooks.example.com/pulse")
        kwargs = session.request.call_args.kwargs
        assert kwargs["headers"] == {
            "Content-Type": "application/json",
            "User-Agent": "custom",
            "Authorization": "Token abc",
        }
        assert kwargs["json"] == {
            "event_type": "device.offline",
            "timestamp": "2025-01-15T12:00:00+00:00",
            "resource": {"type": "device", "id": "d1", "name": "core-switch"},
            "data": {"ip_address": "10.0.0.1"},
            "metadata": {
                "rule_id": "rule-1",
                "rule_name": "Core devices offline",
                "channel_id": "channel-1",
                "channel_name": "SIEM",
            },
        }

    def test_get_sends_no_body(self, session):
        sender = WebhookSender(session)
        channel = make_channel(
            channel_type="webhook",
            config={"url": "https://hooks.example.com/ping", "method": "get"},
        )

        sender.send(make_event(), make_rule(), channel)

        assert session.request.call_args.args[0] == "GET"
        assert session.request.call_args.kwargs["json"] is None

    def test_server_error_is_transient(self, session):
        session.request.return_value = _response(503, "unavailable")
        sender = WebhookSender(session)

        result = sender.send(make_event(), make_rule(), make_channel(channel_type="webhook"))

        assert result.is_retryable
        assert result.message == "Webhook error (503): unavailable"

    def test_connection_error_is_transient(self, session):
        session.request.side_effect = requests.ConnectionError("refused")
        sender = WebhookSender(session)

        result = sender.send(make_event(), make_rule(), make_channel(channel_type="webhook"))

        assert result.error_code == "CONNECTION_ERROR"


class TestSenderRegistry:
    def test_register_and_get(self, session):
        registry = SenderRegistry()
        sender = WebhookSender(session)

        registry.register("webhook", sender)

        assert registry.get("webhook") is sender
        assert "webhook" in registry
        assert registry.get("pager") is None
        assert "pager" not in registry

    def test_register_replaces(self, session):
        registry = SenderRegistry()
        replacement = WebhookSender(session)
        registry.register("webhook", WebhookSender(session))

        registry.register("webhook", replacement)

        assert registry.get("webhook") is replacement

    def test_default_registry(self, settings, session):
        registry = build_default_registry(settings, session=session)

        assert registry.channel_types == ["email", "slack", "teams", "webhook"]
        assert registry.get("slack").session is session
        assert registry.get("email").timeout == settings.notifications.http_timeout_seconds
