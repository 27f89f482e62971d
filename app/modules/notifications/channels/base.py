"""Channel sender abstract base class.

Every delivery channel (email, Slack, Teams, generic webhook) implements this
interface and is registered in a SenderRegistry under its channel type.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

import requests

from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_http_response,
)
from modules.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationRule,
)
from modules.notifications.validation import validate_channel_config

logger = get_module_logger()


class ChannelSender(ABC):
    """Abstract base class for channel senders.

    Senders make exactly one outbound request per call and never retry;
    retrying belongs to the orchestrator and the retry queue. They never
    raise for delivery problems either:

    - configuration problems: PERMANENT_ERROR with error_code INVALID_CONFIG
    - network errors and non-2xx responses: TRANSIENT_ERROR

    Example Implementation:
        class PagerSender(ChannelSender):
            channel_type = "pager"
            label = "Pager"

            def send(self, event, rule, channel):
                invalid = self.check_config(channel)
                if invalid:
                    return invalid
                return self.post_json(channel.config["url"], {...})
    """

    channel_type: str = ""
    label: str = ""

    def __init__(
        self,
        session: requests.Session,
        timeout: float = 10.0,
        error_max_length: int = 200,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.error_max_length = error_max_length

    @abstractmethod
    def send(
        self,
        event: NotificationEvent,
        rule: NotificationRule,
        channel: NotificationChannel,
    ) -> OperationResult:
        """Deliver the event through the channel.

        Args:
            event: Event being delivered
            rule: Rule that matched the event
            channel: Destination channel

        Returns:
            OperationResult; message holds the error text on failure
        """

    def check_config(self, channel: NotificationChannel) -> OperationResult | None:
        """Return a permanent error when the channel config is unusable."""
        errors = validate_channel_config(self.channel_type, channel.config)
        if not errors:
            return None
        message = f"Invalid {self.channel_type} channel config: {'; '.join(errors)}"
        logger.error(
            "channel_config_invalid",
            channel_id=channel.id,
            channel_type=self.channel_type,
            errors=errors,
        )
        return OperationResult.permanent_error(
            message[: self.error_max_length], error_code="INVALID_CONFIG"
        )

    def request(
        self,
        method: str,
        url: str,
        payload: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> OperationResult:
        """Make one HTTP request and classify the outcome."""
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return classify_http_error(e, self.error_max_length)
        return classify_http_response(response, self.label, self.error_max_length)

    def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str] | None = None,
    ) -> OperationResult:
        return self.request("POST", url, payload=payload, headers=headers)
