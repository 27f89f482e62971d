"""Bounded fire-and-forget submission of notification events."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING

from infrastructure.logging import get_module_logger
from modules.notifications.service import EventInput, parse_event

if TYPE_CHECKING:
    from modules.notifications.models import NotificationEvent
    from modules.notifications.service import NotificationService

logger = get_module_logger()


class NotificationSubmitter:
    """Runs NotificationService.trigger() on a small thread pool.

    Producers call submit() and move on. Input is validated synchronously so
    malformed events still raise in the caller; everything after that is
    logged only. At most max_pending submissions may be waiting or running;
    beyond that submit() returns False instead of growing without bound.
    """

    def __init__(
        self,
        service: "NotificationService",
        max_workers: int = 4,
        max_pending: int = 1000,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.service = service
        self.max_pending = max_pending
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notification-submit"
        )
        self._closed = False

    def submit(self, event: EventInput) -> bool:
        """Queue an event for background delivery.

        Returns:
            True if accepted, False when the queue is full or shut down

        Raises:
            pydantic.ValidationError: When the input is malformed
        """
        parsed = parse_event(event)

        if self._closed:
            logger.warning(
                "notification_submission_rejected",
                reason="shutdown",
                event_type=parsed.type.value,
            )
            return False

        if not self._slots.acquire(blocking=False):
            logger.warning(
                "notification_submission_rejected",
                reason="queue_full",
                max_pending=self.max_pending,
                event_type=parsed.type.value,
                organization_id=parsed.organization_id,
            )
            return False

        try:
            future = self._executor.submit(self._run, parsed)
        except RuntimeError:
            self._slots.release()
            logger.warning(
                "notification_submission_rejected",
                reason="shutdown",
                event_type=parsed.type.value,
            )
            return False

        future.add_done_callback(self._release)
        return True

    def _run(self, event: "NotificationEvent") -> None:
        try:
            self.service.trigger(event)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "notification_submission_failed",
                organization_id=event.organization_id,
                event_type=event.type.value,
                resource_id=event.resource_id,
                error=str(e),
                exc_info=True,
            )

    def _release(self, _future: Future) -> None:
        self._slots.release()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; with wait=True, drain what is pending."""
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("notification_submitter_stopped", drained=wait)
