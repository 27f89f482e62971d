from contextlib import asynccontextmanager
import threading
from typing import AsyncIterator, Optional, TYPE_CHECKING

from fastapi import FastAPI
from structlog.stdlib import BoundLogger

from infrastructure.logging.setup import configure_logging
from infrastructure.services import get_settings
from jobs import scheduled_tasks
from modules.notifications.service import (
    NotificationService,
    build_notification_service,
)
from modules.notifications.submission import NotificationSubmitter

if TYPE_CHECKING:
    from infrastructure.configuration import Settings


def _get_logger(settings: "Settings") -> BoundLogger:
    return configure_logging(
        log_level=settings.LOG_LEVEL, is_production=settings.is_production
    )


def _list_configs(settings: "Settings", logger: BoundLogger) -> None:
    config_settings: dict[str, list[object]] = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


def _start_scheduled_tasks(
    service: NotificationService,
    settings: "Settings",
    logger: BoundLogger,
) -> Optional[threading.Event]:
    if not settings.retry.enabled:
        logger.info("scheduled_tasks_skipped", reason="retry_disabled")
        return None
    if settings.PREFIX != "":
        logger.info("scheduled_tasks_skipped", reason="prefix_not_empty")
        return None

    scheduled_tasks.init(service, settings)
    stop_event = scheduled_tasks.run_continuously()
    logger.info("scheduled_tasks_started")
    return stop_event


def _stop_scheduled_tasks(stop_event: Optional[threading.Event]) -> None:
    if stop_event is None:
        return
    stop_event.set()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger = _get_logger(settings)

    app.state.settings = settings
    app.state.logger = logger

    logger.info("application_startup")
    _list_configs(settings, logger)

    service = build_notification_service(settings)
    submitter = NotificationSubmitter(
        service,
        max_workers=settings.notifications.submit_max_workers,
        max_pending=settings.notifications.submit_max_pending,
    )
    app.state.notification_service = service
    app.state.notification_submitter = submitter
    app.state.scheduled_stop_event = _start_scheduled_tasks(service, settings, logger)

    yield

    logger.info("application_shutdown")

    _stop_scheduled_tasks(app.state.scheduled_stop_event)
    if not service.worker.stop(timeout=30):
        logger.warning("retry_worker_stop_timeout")
    submitter.shutdown(wait=True)
