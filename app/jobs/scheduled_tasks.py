import threading
import time
from typing import TYPE_CHECKING

import schedule

from infrastructure.logging import bind_request_context, get_module_logger

if TYPE_CHECKING:
    from infrastructure.configuration import Settings
    from modules.notifications.service import NotificationService

logger = get_module_logger()


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("scheduled_job_failed", job=job.__name__, error=str(e))

    wrapper.__name__ = job.__name__
    return wrapper


def init(service: "NotificationService", settings: "Settings"):
    """Register the retry queue poller and the heartbeat."""
    interval = settings.retry.poll_interval_seconds
    logger.info("scheduled_tasks_initialized", retry_poll_interval_seconds=interval)

    schedule.every(interval).seconds.do(safe_run(process_retry_queue), service=service)
    schedule.every(5).minutes.do(safe_run(scheduler_heartbeat))


def process_retry_queue(service: "NotificationService"):
    with bind_request_context(job="retry_queue"):
        stats = service.process_retry_queue()
    if stats.get("processed") or stats.get("skipped") or not stats.get("success", True):
        logger.info("scheduled_retry_batch_finished", **stats)


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", time=time.ctime())


def run_continuously(interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Please note that it is
    *intended behavior that run_continuously() does not run
    missed jobs*. For example, if you've registered a job that
    should run every minute and you set a continuous run
    interval of one hour then your job won't be run 60 times
    at each interval but only once.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        @classmethod
        def run(cls):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                cease_continuous_run.wait(interval)

    continuous_thread = ScheduleThread(daemon=True, name="scheduled-tasks")
    continuous_thread.start()
    return cease_continuous_run
