"""Slack incoming-webhook sender."""

from infrastructure.operations import OperationResult
from modules.notifications.channels.base import ChannelSender
from modules.notifications.channels.formatting import (
    BRAND_NAME,
    event_facts,
    event_title,
    status_color,
)
from modules.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationRule,
)

EMOJI = {
    "offline": ":red_circle:",
    "online": ":large_green_circle:",
    "degraded": ":large_yellow_circle:",
    "complete": ":mag:",
}


class SlackSender(ChannelSender):
    channel_type = "slack"
    label = "Slack webhook"

    def send(
        self,
        event: NotificationEvent,
        rule: NotificationRule,
        channel: NotificationChannel,
    ) -> OperationResult:
        invalid = self.check_config(channel)
        if invalid:
            return invalid
        return self.post_json(channel.config["webhook_url"], self.build_message(event, rule))

    @staticmethod
    def build_message(event: NotificationEvent, rule: NotificationRule) -> dict:
        emoji = EMOJI.get(event.type.status, ":bell:")
        fields = [
            {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
            for label, value in event_facts(event)
        ]
        return {
            "attachments": [
                {
                    "color": status_color(event),
                    "blocks": [
                        {
                            "type": "header",
                            "text": {
                                "type": "plain_text",
                                "text": f"{emoji} {event_title(event)}",
                                "emoji": True,
                            },
                        },
                        {"type": "section", "fields": fields},
                        {
                            "type": "context",
                            "elements": [
                                {
                                    "type": "mrkdwn",
                                    "text": f"Rule: {rule.name or rule.id} | Sent by {BRAND_NAME}",
                                }
                            ],
                        },
                    ],
                }
            ]
        }
