from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.events.store import EventStore
from app.notifications.delivery import NotificationDispatcher, build_dispatcher
from app.observability.logger import log_error, log_event
from app.scheduler.base import PeriodicJob
from app.storage.models import EventReminder
from app.users.directory import UserDirectory


def is_due(reminder: EventReminder, start: datetime, now: datetime, period: timedelta) -> bool:
    """True when ``now`` falls in the one-period window opening at the reminder time."""
    due_at = reminder.due_at(start)
    return due_at <= now < due_at + period


class ReminderScheduler(PeriodicJob):
    """Sends reminders whose window is open and records each success once."""

    name = "reminders"

    def __init__(self, *args, dispatcher: Optional[NotificationDispatcher] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = build_dispatcher(self.config)
        return self._dispatcher

    @property
    def period(self) -> timedelta:
        return timedelta(seconds=self.config.reminder_interval_seconds)

    def _run(self, session: Session, now: datetime) -> Dict[str, Any]:
        store = EventStore(session)
        users = UserDirectory(session)
        counts = {"checked": 0, "sent": 0, "failed": 0}

        for event in store.reminder_candidates(now):
            if self.should_stop():
                break
            counts["checked"] += 1
            try:
                user = users.get(event.user_id)
                if user is None:
                    continue
                for reminder in list(event.reminders):
                    if reminder.sent or not is_due(reminder, event.start, now, self.period):
                        continue
                    if not user.channel_enabled(reminder.type) or not self.dispatcher.is_wired(reminder.type):
                        continue
                    if not self.dispatcher.deliver(reminder.type, user, event, reminder):
                        counts["failed"] += 1
                        continue
                    if store.mark_reminder_sent(reminder.id):
                        counts["sent"] += 1
                        log_event(action="reminder_sent", job=self.name, event_id=event.id, reminder_id=reminder.id, channel=reminder.type)
            except Exception as exc:
                store.rollback()
                counts["failed"] += 1
                log_error(exc, {"action": "reminder_failed", "job": self.name, "event_id": event.id})
        return counts
