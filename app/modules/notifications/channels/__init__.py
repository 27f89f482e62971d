"""Channel senders and their registry."""

from modules.notifications.channels.base import ChannelSender
from modules.notifications.channels.email import EmailSender
from modules.notifications.channels.registry import SenderRegistry, build_default_registry
from modules.notifications.channels.slack import SlackSender
from modules.notifications.channels.teams import TeamsSender
from modules.notifications.channels.webhook import WebhookSender

__all__ = [
    "ChannelSender",
    "EmailSender",
    "SlackSender",
    "TeamsSender",
    "WebhookSender",
    "SenderRegistry",
    "build_default_registry",
]
