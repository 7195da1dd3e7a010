import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.errors import NotFoundError, ValidationError
from app.events.schemas import EventCreate, EventUpdate
from app.events.store import EventStore, attendee_rows, reminder_rows
from app.observability.logger import log_event, sanitize_title
from app.storage.models import Event

logger = logging.getLogger(__name__)

_SCALAR_FIELDS = (
    "title", "description", "location", "notes", "start", "end", "all_day",
    "category", "color", "status", "is_public", "tags",
)


def _time_order_error() -> ValidationError:
    return ValidationError(
        "End time must be after start time",
        [{"field": "end", "message": "End time must be after start time"}],
    )


def check_time_order(event: Event) -> None:
    if not event.end > event.start:
        raise _time_order_error()


def _split_fields(fields: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[List[dict]], Optional[List[dict]]]:
    """
    Map schema fields onto store columns.

    Returns (column values, attendee dicts or None, reminder dicts or None).
    """
    values: Dict[str, Any] = {name: fields[name] for name in _SCALAR_FIELDS if name in fields}

    if "attachments" in fields:
        values["attachments"] = [a.model_dump() for a in fields["attachments"]]

    if "recurring" in fields:
        rec = fields["recurring"]
        values.update(
            is_recurring=rec.is_recurring,
            recurrence_pattern=rec.pattern,
            recurrence_interval=rec.interval,
            recurrence_end_date=rec.end_date,
            recurrence_exceptions=sorted({d.isoformat() for d in rec.exceptions}),
        )

    attendees = [a.model_dump() for a in fields["attendees"]] if "attendees" in fields else None
    reminders = [r.model_dump() for r in fields["reminders"]] if "reminders" in fields else None
    return values, attendees, reminders


def _snapshot(event: Event) -> tuple:
    return (
        tuple(getattr(event, name) for name in _SCALAR_FIELDS),
        repr(event.attachments),
        (event.is_recurring, event.recurrence_pattern, event.recurrence_interval,
         event.recurrence_end_date, tuple(event.recurrence_exceptions or ())),
        tuple((a.email, a.name, a.response) for a in event.attendees),
        tuple((r.type, r.time, r.sent) for r in event.reminders),
    )


class EventCommandService:
    """Create, read, update and delete events on behalf of their owner."""

    def __init__(self, store: EventStore):
        self.store = store

    def create_event(self, owner_id: str, data: EventCreate) -> Event:
        if not data.end > data.start:
            raise _time_order_error()
        fields = {name: getattr(data, name) for name in EventCreate.model_fields}
        values, attendees, reminders = _split_fields(fields)
        values["user_id"] = owner_id
        event = self.store.create(values, attendees or [], reminders or [])
        log_event(action="event_created", event_id=event.id, owner_id=owner_id, title=sanitize_title(event.title))
        return event

    def get_event(self, owner_id: str, event_id: str) -> Event:
        event = self.store.get_owned(owner_id, event_id)
        if event is None:
            raise NotFoundError()
        return event

    def update_event(self, owner_id: str, event_id: str, data: EventUpdate) -> Event:
        values, attendees, reminders = _split_fields(data.supplied())
        event = self.store.update_owned(
            owner_id,
            event_id,
            values,
            attendees=attendees,
            reminders=reminders,
            check=check_time_order,
        )
        if event is None:
            raise NotFoundError()
        log_event(action="event_updated", event_id=event_id, owner_id=owner_id, fields=sorted(data.model_fields_set))
        return event

    def delete_event(self, owner_id: str, event_id: str) -> None:
        if not self.store.delete_owned(owner_id, event_id):
            raise NotFoundError()
        log_event(action="event_deleted", event_id=event_id, owner_id=owner_id)

    def bulk_update(self, owner_id: str, event_ids: Optional[Sequence[str]], data: EventUpdate) -> int:
        """
        Apply one partial update to every listed event the caller owns.

        Ids that are unknown or owned by someone else are skipped. Returns the
        number of events whose stored values changed.
        """
        if not event_ids:
            raise ValidationError(
                "Event IDs array is required",
                [{"field": "event_ids", "message": "Provide at least one event id"}],
            )
        values, attendees, reminders = _split_fields(data.supplied())
        events = self.store.list_owned_by_ids(owner_id, list(dict.fromkeys(event_ids)))

        modified = 0
        try:
            for event in events:
                before = _snapshot(event)
                for name, value in values.items():
                    setattr(event, name, value)
                if attendees is not None:
                    event.attendees = attendee_rows(attendees)
                if reminders is not None:
                    event.reminders = reminder_rows(reminders)
                check_time_order(event)
                if _snapshot(event) != before:
                    modified += 1
        except Exception:
            self.store.rollback()
            raise
        self.store.commit()

        log_event(
            action="events_bulk_updated",
            owner_id=owner_id,
            requested=len(event_ids),
            matched=len(events),
            modified_count=modified,
        )
        return modified
