"""Notification persistence backends."""

from modules.notifications.store.base import NotificationStore, NotificationStoreError
from modules.notifications.store.dynamodb import DynamoDBNotificationStore
from modules.notifications.store.factory import create_notification_store
from modules.notifications.store.memory import InMemoryNotificationStore

__all__ = [
    "NotificationStore",
    "NotificationStoreError",
    "DynamoDBNotificationStore",
    "InMemoryNotificationStore",
    "create_notification_store",
]
