from datetime import datetime, timedelta
from typing import Any, Dict

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.events.store import EventStore
from app.observability.logger import log_error, log_event, sanitize_title
from app.scheduler.base import PeriodicJob
from app.storage.models import Event


def next_occurrence(reference: datetime, pattern: str, interval: int) -> datetime:
    """
    Advance ``reference`` by one recurrence step.

    Month and year steps use calendar arithmetic; a day-of-month that does
    not exist in the target month clamps to that month's last day.
    """
    if pattern == "daily":
        return reference + timedelta(days=interval)
    if pattern == "weekly":
        return reference + timedelta(days=7 * interval)
    if pattern == "monthly":
        return reference + relativedelta(months=interval)
    if pattern == "yearly":
        return reference + relativedelta(years=interval)
    raise ValueError(f"Unknown recurrence pattern: {pattern}")


def reference_point(template: Event) -> datetime:
    return template.recurrence_last_generated or template.recurrence_end_date or template.end


def build_occurrence(template: Event, start: datetime) -> Dict[str, Any]:
    """Column values for an occurrence; the caller attaches attendees and reminders."""
    return {
        "user_id": template.user_id,
        "title": template.title,
        "description": template.description,
        "location": template.location,
        "notes": template.notes,
        "start": start,
        "end": start + template.duration,
        "all_day": template.all_day,
        "category": template.category,
        "color": template.color,
        "status": template.status,
        "is_public": template.is_public,
        "tags": list(template.tags or []),
        "attachments": [dict(a) for a in (template.attachments or [])],
        "is_recurring": False,
        "recurrence_pattern": template.recurrence_pattern,
        "recurrence_interval": template.recurrence_interval,
        "source_event_id": template.id,
    }


class RecurrenceGenerator(PeriodicJob):
    """Materializes the next occurrence of each active recurring template."""

    name = "recurrence"

    def _run(self, session: Session, now: datetime) -> Dict[str, Any]:
        store = EventStore(session)
        horizon = now + timedelta(days=self.config.lookahead_days)
        counts = {"processed": 0, "generated": 0, "skipped": 0, "failed": 0}

        for template in store.recurring_templates():
            if self.should_stop():
                break
            counts["processed"] += 1
            try:
                outcome = self.process_template(store, template, now, horizon)
            except Exception as exc:
                store.rollback()
                counts["failed"] += 1
                log_error(exc, {"action": "occurrence_failed", "job": self.name, "event_id": template.id})
                continue
            if outcome in counts:
                counts[outcome] += 1
        return counts

    def process_template(self, store: EventStore, template: Event, now: datetime, horizon: datetime) -> str:
        pattern, interval = template.recurrence_pattern, template.recurrence_interval
        nxt = next_occurrence(reference_point(template), pattern, interval)
        # Occurrences that have already elapsed are passed over, not materialized.
        while nxt < now:
            nxt = next_occurrence(nxt, pattern, interval)
        if nxt > horizon:
            return "not_due"

        template.recurrence_last_generated = nxt
        if nxt.date().isoformat() in (template.recurrence_exceptions or []):
            store.commit()
            log_event(action="occurrence_skipped", job=self.name, event_id=template.id, date=nxt.date().isoformat())
            return "skipped"

        occurrence = store.create(
            build_occurrence(template, nxt),
            attendees=[{"email": a.email, "name": a.name, "response": a.response} for a in template.attendees],
            reminders=[{"type": r.type, "time": r.time, "sent": False} for r in template.reminders],
        )
        log_event(
            action="occurrence_generated",
            job=self.name,
            event_id=occurrence.id,
            template_id=template.id,
            title=sanitize_title(template.title),
            start=nxt.isoformat(),
        )
        return "generated"
