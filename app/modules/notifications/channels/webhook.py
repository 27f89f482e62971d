"""Generic HTTP webhook sender."""

from typing import Any, Dict

from infrastructure.operations import OperationResult
from modules.notifications.channels.base import ChannelSender
from modules.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationRule,
)
from modules.notifications.validation import parse_channel_config

USER_AGENT = "Pulse-Webhook/1.0"


class WebhookSender(ChannelSender):
    """Sends the normalized event envelope to config.url.

    config.headers are merged over the default headers; a GET request carries
    no body.
    """

    channel_type = "webhook"
    label = "Webhook"

    def send(
        self,
        event: NotificationEvent,
        rule: NotificationRule,
        channel: NotificationChannel,
    ) -> OperationResult:
        invalid = self.check_config(channel)
        if invalid:
            return invalid

        config = parse_channel_config(self.channel_type, channel.config)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **config.headers,
        }
        payload = None
        if config.method != "GET":
            payload = self.build_envelope(event, rule, channel)
        return self.request(config.method, channel.config["url"], payload=payload, headers=headers)

    @staticmethod
    def build_envelope(
        event: NotificationEvent,
        rule: NotificationRule,
        channel: NotificationChannel,
    ) -> Dict[str, Any]:
        return {
            "event_type": event.type.value,
            "timestamp": event.timestamp.isoformat(),
            "resource": {
                "type": event.resource_type.value,
                "id": event.resource_id,
                "name": event.resource_name,
            },
            "data": event.data,
            "metadata": {
                "rule_id": rule.id,
                "rule_name": rule.name,
                "channel_id": channel.id,
                "channel_name": channel.name,
            },
        }
