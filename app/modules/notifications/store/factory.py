"""Notification store factory."""

from typing import TYPE_CHECKING

from infrastructure.logging import get_module_logger
from modules.notifications.store.base import NotificationStore
from modules.notifications.store.dynamodb import DynamoDBNotificationStore
from modules.notifications.store.memory import InMemoryNotificationStore

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()


def create_notification_store(settings: "Settings") -> NotificationStore:
    """Create the store selected by NOTIFICATIONS_STORE_BACKEND.

    Args:
        settings: Application settings

    Returns:
        InMemoryNotificationStore for "memory", DynamoDBNotificationStore for
        "dynamodb"
    """
    config = settings.notifications
    if config.store_backend == "dynamodb":
        logger.info("notification_store_selected", backend="dynamodb")
        return DynamoDBNotificationStore(
            rules_table=config.rules_table,
            channels_table=config.channels_table,
            cooldowns_table=config.cooldowns_table,
            retry_queue_table=config.retry_queue_table,
            history_table=config.history_table,
        )

    logger.info("notification_store_selected", backend="memory")
    return InMemoryNotificationStore()
