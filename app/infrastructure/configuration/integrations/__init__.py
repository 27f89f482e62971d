"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.email import EmailSettings

__all__ = [
    "AwsSettings",
    "EmailSettings",
]
