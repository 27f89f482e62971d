"""Sender registry keyed by channel type."""

from typing import TYPE_CHECKING, Dict, List, Optional

import requests

from infrastructure.logging import get_module_logger
from modules.notifications.channels.base import ChannelSender
from modules.notifications.channels.email import EmailSender
from modules.notifications.channels.slack import SlackSender
from modules.notifications.channels.teams import TeamsSender
from modules.notifications.channels.webhook import WebhookSender

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()


class SenderRegistry:
    """Maps channel type strings to sender instances.

    register() is the extension point for new channel types; the orchestrator
    and retry processor only ever call get().
    """

    def __init__(self) -> None:
        self._senders: Dict[str, ChannelSender] = {}

    def register(self, channel_type: str, sender: ChannelSender) -> None:
        if channel_type in self._senders:
            logger.warning("channel_sender_replaced", channel_type=channel_type)
        self._senders[channel_type] = sender

    def get(self, channel_type: str) -> Optional[ChannelSender]:
        return self._senders.get(channel_type)

    def __contains__(self, channel_type: str) -> bool:
        return channel_type in self._senders

    @property
    def channel_types(self) -> List[str]:
        return sorted(self._senders)


def build_default_registry(
    settings: "Settings", session: Optional[requests.Session] = None
) -> SenderRegistry:
    """Wire the built-in email, Slack, Teams and webhook senders.

    All senders share one requests.Session so connections are pooled.
    """
    session = session or requests.Session()
    config = settings.notifications
    common = {
        "timeout": config.http_timeout_seconds,
        "error_max_length": config.error_max_length,
    }

    registry = SenderRegistry()
    registry.register(
        "email",
        EmailSender(
            session,
            api_key=settings.email.RESEND_API_KEY,
            from_email=settings.email.RESEND_FROM_EMAIL,
            api_url=settings.email.RESEND_API_URL,
            app_url=config.app_url,
            **common,
        ),
    )
    registry.register("slack", SlackSender(session, **common))
    registry.register("teams", TeamsSender(session, **common))
    registry.register("webhook", WebhookSender(session, **common))

    logger.info("channel_senders_registered", channel_types=registry.channel_types)
    return registry
