"""Unit tests for channel config validation."""

import pytest
from pydantic import ValidationError

from modules.notifications.validation import (
    WebhookChannelConfig,
    parse_channel_config,
    validate_channel_config,
)

pytestmark = pytest.mark.unit


class TestValidateChannelConfig:
    @pytest.mark.parametrize(
        "channel_type,config",
        [
            ("email", {"recipients": ["oncall@example.com", "noc@example.org"]}),
            ("slack", {"webhook_url": "https://hooks.slack.com/services/T/B/X"}),
            (
                "teams",
                {
                    "webhook_url": "https://example.webhook.office.com/x",
                    "channel_name": "ops",
                },
            ),
            ("webhook", {"url": "http://10.0.0.5:8080/hook", "method": "get"}),
        ],
    )
    def test_valid_configs(self, channel_type, config):
        assert validate_channel_config(channel_type, config) == []

    def test_empty_recipients(self):
        errors = validate_channel_config("email", {"recipients": []})

        assert len(errors) == 1
        assert errors[0].startswith("recipients: ")

    def test_malformed_recipient(self):
        errors = validate_channel_config("email", {"recipients": ["not-an-address"]})

        assert errors and errors[0].startswith("recipients.0: ")

    def test_missing_webhook_url(self):
        errors = validate_channel_config("slack", {})

        assert errors == ["webhook_url: Field required"]

    def test_chat_webhook_accepts_plain_http(self):
        assert validate_channel_config("teams", {"webhook_url": "http://10.0.0.5/hook"}) == []

    def test_chat_webhook_rejects_non_url(self):
        errors = validate_channel_config("slack", {"webhook_url": "hooks.slack.com"})

        assert len(errors) == 1
        assert errors[0].startswith("webhook_url: ")

    def test_webhook_rejects_unsupported_method(self):
        errors = validate_channel_config(
            "webhook", {"url": "https://hooks.example.com", "method": "DELETE"}
        )

        assert errors and errors[0].startswith("method: ")

    def test_webhook_rejects_non_string_headers(self):
        errors = validate_channel_config(
            "webhook", {"url": "https://hooks.example.com", "headers": {"X-Count": ["1"]}}
        )

        assert errors

    def test_unsupported_type(self):
        assert validate_channel_config("pager", {}) == ["Unsupported channel type: pager"]

    def test_config_must_be_a_mapping(self):
        assert validate_channel_config("webhook", "https://hooks.example.com") == [
            "config: must be an object"
        ]


class TestParseChannelConfig:
    def test_returns_typed_model(self):
        config = parse_channel_config(
            "webhook", {"url": "https://hooks.example.com", "method": "post"}
        )

        assert isinstance(config, WebhookChannelConfig)
        assert config.method == "POST"
        assert config.headers == {}

    def test_invalid_config_raises(self):
        with pytest.raises(ValidationError):
            parse_channel_config("webhook", {})

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            parse_channel_config("pager", {})
