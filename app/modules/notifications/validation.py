"""Channel configuration validation.

Each channel type has a pydantic model describing its config. Validation
returns human-readable error strings instead of raising, so senders can turn
them into configuration failures.
"""

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
)


class EmailChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recipients: List[EmailStr] = Field(min_length=1)


class ChatWebhookChannelConfig(BaseModel):
    """Slack and Teams incoming webhooks."""

    model_config = ConfigDict(extra="ignore")

    webhook_url: HttpUrl
    channel_name: Optional[str] = Field(default=None, min_length=1, max_length=120)


class WebhookChannelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: HttpUrl
    method: Literal["POST", "GET"] = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


CHANNEL_CONFIG_MODELS: Dict[str, Type[BaseModel]] = {
    "email": EmailChannelConfig,
    "slack": ChatWebhookChannelConfig,
    "teams": ChatWebhookChannelConfig,
    "webhook": WebhookChannelConfig,
}


def validate_channel_config(channel_type: str, config: Any) -> List[str]:
    """Validate a channel config for its type.

    Args:
        channel_type: Channel type string ("email", "slack", ...)
        config: Raw config mapping as stored with the channel

    Returns:
        List of "field: message" errors; empty when the config is valid

    Example:
        validate_channel_config("email", {"recipients": []})
        # ["recipients: List should have at least 1 item after validation, not 0"]
    """
    model = CHANNEL_CONFIG_MODELS.get(channel_type)
    if model is None:
        return [f"Unsupported channel type: {channel_type}"]
    if not isinstance(config, dict):
        return ["config: must be an object"]

    try:
        model.model_validate(config)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in e.errors()
        ]
    return []


def parse_channel_config(channel_type: str, config: Dict[str, Any]) -> BaseModel:
    """Validate and return the typed config model.

    Raises:
        ValueError: For unsupported channel types
        ValidationError: When the config is invalid
    """
    model = CHANNEL_CONFIG_MODELS.get(channel_type)
    if model is None:
        raise ValueError(f"Unsupported channel type: {channel_type}")
    return model.model_validate(config)
