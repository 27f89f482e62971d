"""Transactional email provider settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class EmailSettings(IntegrationSettings):
    """Resend email API configuration.

    Environment Variables:
        RESEND_API_KEY: API key used as bearer token (email disabled when unset)
        RESEND_FROM_EMAIL: Sender address for notification emails
        RESEND_API_URL: Email send endpoint

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.email.RESEND_API_KEY:
            sender = settings.email.RESEND_FROM_EMAIL
        ```
    """

    RESEND_API_KEY: str | None = Field(default=None, alias="RESEND_API_KEY")
    RESEND_FROM_EMAIL: str = Field(
        default="Pulse <notifications@pulse.local>", alias="RESEND_FROM_EMAIL"
    )
    RESEND_API_URL: str = Field(
        default="https://api.resend.com/emails", alias="RESEND_API_URL"
    )
