"""Microsoft Teams incoming-webhook sender (Adaptive Cards)."""

from infrastructure.operations import OperationResult
from modules.notifications.channels.base import ChannelSender
from modules.notifications.channels.formatting import (
    BRAND_NAME,
    event_facts,
    event_title,
)
from modules.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationRule,
)

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"

CONTAINER_STYLES = {
    "offline": "attention",
    "online": "good",
    "degraded": "warning",
}


class TeamsSender(ChannelSender):
    channel_type = "teams"
    label = "Teams webhook"

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
        card = {
            "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
            "type": "AdaptiveCard",
            "version": "1.4",
            "body": [
                {
                    "type": "Container",
                    "style": CONTAINER_STYLES.get(event.type.status, "emphasis"),
                    "items": [
                        {
                            "type": "TextBlock",
                            "text": event_title(event),
                            "weight": "Bolder",
                            "size": "Medium",
                            "wrap": True,
                        }
                    ],
                },
                {
                    "type": "FactSet",
                    "facts": [
                        {"title": label, "value": value}
                        for label, value in event_facts(event)
                    ],
                },
                {
                    "type": "TextBlock",
                    "text": f"Rule: {rule.name or rule.id} | Sent by {BRAND_NAME}",
                    "size": "Small",
                    "isSubtle": True,
                    "wrap": True,
                },
            ],
        }
        return {
            "type": "message",
            "attachments": [
                {
                    "contentType": ADAPTIVE_CARD_CONTENT_TYPE,
                    "contentUrl": None,
                    "content": card,
                }
            ],
        }
