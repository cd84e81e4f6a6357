import threading
import time
from typing import TYPE_CHECKING

import schedule

from infrastructure.logging import get_module_logger

if TYPE_CHECKING:
    from infrastructure.configuration import Settings
    from infrastructure.notifications import NotificationService

logger = get_module_logger()

JOB_TAG = "notifications"


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:
            logger.error(
                "safe_run_error",
                error=str(e),
                function=job.__name__,
                module=job.__module__,
                job_args=args,
                job_kwargs=kwargs,
            )

    wrapper.__name__ = job.__name__
    return wrapper


def init(service: "NotificationService", settings: "Settings"):
    logger.info("scheduled_tasks_initialized")

    schedule.every(settings.retry.interval_minutes).minutes.do(
        safe_run(retry_failed_notifications), service=service
    ).tag(JOB_TAG)
    schedule.every().day.at(settings.notifications.cleanup_at).do(
        safe_run(cleanup_notifications), service=service
    ).tag(JOB_TAG)
    schedule.every(5).minutes.do(safe_run(scheduler_heartbeat)).tag(JOB_TAG)


def clear():
    schedule.clear(JOB_TAG)


def retry_failed_notifications(service: "NotificationService"):
    stats = service.retry_failed()
    logger.info("retry_job_completed", **stats)


def cleanup_notifications(service: "NotificationService"):
    removed = service.cleanup()
    logger.info("cleanup_job_completed", removed=removed)


def scheduler_heartbeat():
    logger.info(
        "running_scheduler_heartbeat", module="scheduled_tasks", time=time.ctime()
    )


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
                time.sleep(interval)

    continuous_thread = ScheduleThread(daemon=True)
    continuous_thread.start()
    return cease_continuous_run
