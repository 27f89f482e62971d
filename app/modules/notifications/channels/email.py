"""Email sender using the Resend HTTP API."""

from html import escape

import requests

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from modules.notifications.channels.base import ChannelSender
from modules.notifications.channels.formatting import (
    BRAND_NAME,
    email_subject,
    event_facts,
    event_headline,
    status_color,
)
from modules.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationRule,
)

logger = get_module_logger()


class EmailSender(ChannelSender):
    """Sends an HTML email to every address in config.recipients.

    A missing API key is a configuration failure, not a transient one: no
    amount of retrying will make the provider accept the request.
    """

    channel_type = "email"
    label = "Resend API"

    def __init__(
        self,
        session: requests.Session,
        api_key: str | None,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        app_url: str | None = None,
        timeout: float = 10.0,
        error_max_length: int = 200,
    ) -> None:
        super().__init__(session, timeout=timeout, error_max_length=error_max_length)
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.app_url = app_url

    def send(
        self,
        event: NotificationEvent,
        rule: NotificationRule,
        channel: NotificationChannel,
    ) -> OperationResult:
        invalid = self.check_config(channel)
        if invalid:
            return invalid

        if not self.api_key:
            logger.warning("email_api_key_missing", channel_id=channel.id)
            return OperationResult.permanent_error(
                "Email service not configured", error_code="INVALID_CONFIG"
            )

        payload = {
            "from": self.from_email,
            "to": list(channel.config["recipients"]),
            "subject": email_subject(event),
            "html": self.render_html(event),
        }
        return self.post_json(
            self.api_url,
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    def render_html(self, event: NotificationEvent) -> str:
        rows = "".join(
            '<tr><td style="padding: 8px 0; color: #666;">'
            f"{escape(label)}:</td>"
            f'<td style="padding: 8px 0;">{escape(value)}</td></tr>'
            for label, value in event_facts(event)
        )
        footer = f"Sent by {BRAND_NAME}"
        if self.app_url:
            footer = (
                f'Sent by <a href="{escape(self.app_url, quote=True)}" '
                f'style="color: #2563eb;">{BRAND_NAME}</a>'
            )
        return (
            "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
            '<body style="font-family: sans-serif; margin: 0; padding: 20px; '
            'background-color: #f5f5f5;">'
            '<div style="max-width: 600px; margin: 0 auto; background-color: white;">'
            f'<div style="background-color: {status_color(event)}; padding: 20px; color: white;">'
            f'<h1 style="margin: 0; font-size: 20px;">{escape(event_headline(event))}</h1>'
            "</div>"
            '<div style="padding: 20px;"><table style="width: 100%;">'
            f"{rows}"
            "</table></div>"
            '<div style="padding: 15px 20px; font-size: 12px; color: #666;">'
            f"{footer}</div>"
            "</div></body></html>"
        )
