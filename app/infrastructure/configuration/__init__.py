"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the
notification engine using Pydantic BaseSettings with domain-based
organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    NotificationsSettings: Notification dispatch settings class
    RetrySettings: Retry queue settings class

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    backend = settings.notifications.store_backend
    max_attempts = settings.retry.max_attempts

    if settings.is_production:
        # Production-specific logic...
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.notifications import NotificationsSettings
from infrastructure.configuration.infrastructure.retry import RetrySettings

__all__ = ["Settings", "NotificationsSettings", "RetrySettings"]
