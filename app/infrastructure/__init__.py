"""Infrastructure modules for the notification engine.

Centralized infrastructure components:
- configuration: Settings management (Settings, NotificationsSettings, RetrySettings)
- logging: Structured logging (get_module_logger, bind_request_context)
- operations: Operation results and error classification
- resilience: Durable retry queue (RetryWorker, RetryStore)
- services: Dependency injection services (SettingsDep, get_settings)
"""

# Configuration
from infrastructure.configuration import Settings

# Logging
from infrastructure.logging import get_module_logger

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Dependency Injection Services
from infrastructure.services import SettingsDep, get_settings

__all__ = [
    # Configuration
    "Settings",
    # Logging
    "get_module_logger",
    # Operations
    "OperationResult",
    "OperationStatus",
    # Dependency Injection Services
    "SettingsDep",
    "get_settings",
]
