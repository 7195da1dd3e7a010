import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core.config import AppConfig, load_config
from app.notifications.delivery import NotificationDispatcher
from app.scheduler.base import PeriodicJob
from app.scheduler.recurrence import RecurrenceGenerator
from app.scheduler.reminders import ReminderScheduler
from app.scheduler.retention import RetentionSweeper

logger = logging.getLogger(__name__)

DEFAULT_RECURRENCE_CRON = "0 1 * * 0"
DEFAULT_RETENTION_CRON = "0 2 * * *"


class UnknownJobError(KeyError):
    pass


class SchedulerService:
    """
    Owns the periodic maintenance jobs: reminders, recurrence and retention.

    Created and started by the application on startup and stopped on
    shutdown. Assumes a single running instance; there is no cross-process
    lock around the jobs.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.config = config or load_config()
        self._stop_event = threading.Event()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._running = False
        self._last_runs: Dict[str, Dict[str, Any]] = {}

        common = {"config": self.config, "session_factory": session_factory, "stop_event": self._stop_event}
        self.jobs: Dict[str, PeriodicJob] = {
            "reminders": ReminderScheduler(dispatcher=dispatcher, **common),
            "recurrence": RecurrenceGenerator(**common),
            "retention": RetentionSweeper(**common),
        }

    def _cron_trigger(self, expression: str, default: str) -> CronTrigger:
        try:
            return CronTrigger.from_crontab(expression, timezone=self.config.scheduler_timezone)
        except ValueError:
            logger.warning(f"Invalid cron expression: {expression}, using default {default}")
            return CronTrigger.from_crontab(default, timezone=self.config.scheduler_timezone)

    def _triggers(self) -> Dict[str, Any]:
        return {
            "reminders": IntervalTrigger(
                seconds=self.config.reminder_interval_seconds,
                timezone=self.config.scheduler_timezone,
            ),
            "recurrence": self._cron_trigger(self.config.recurrence_cron, DEFAULT_RECURRENCE_CRON),
            "retention": self._cron_trigger(self.config.retention_cron, DEFAULT_RETENTION_CRON),
        }

    def _execute(self, name: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        summary = self.jobs[name].run(now)
        self._last_runs[name] = summary
        return summary

    def run_job(self, name: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run one job immediately in the calling thread."""
        if name not in self.jobs:
            raise UnknownJobError(name)
        return self._execute(name, now)

    def start(self) -> None:
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self._stop_event.clear()
        self._scheduler = BackgroundScheduler(timezone=self.config.scheduler_timezone)
        for name, trigger in self._triggers().items():
            self._scheduler.add_job(
                self._execute,
                trigger,
                args=[name],
                id=name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self, wait: bool = True) -> None:
        """Stop taking new work; in-flight records finish before this returns when ``wait``."""
        if not self._running:
            logger.warning("Scheduler is not running")
            return

        self._stop_event.set()
        try:
            self._scheduler.shutdown(wait=wait)
        finally:
            self._scheduler = None
            self._running = False
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def _next_run(self, name: str) -> Optional[str]:
        if not self._scheduler:
            return None
        job = self._scheduler.get_job(name)
        if job is None or job.next_run_time is None:
            return None
        return job.next_run_time.isoformat()

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status."""
        return {
            "running": self._running,
            "enabled": self.config.run_scheduler,
            "timezone": self.config.scheduler_timezone,
            "jobs": {
                name: {
                    "next_run": self._next_run(name),
                    "last_run": self._last_runs.get(name),
                }
                for name in self.jobs
            },
        }
