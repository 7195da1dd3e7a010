"""
Event store: the only module that talks to the database for events.

Every method that writes commits its own transaction. Driver failures are
raised as TransientStoreError.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, delete, exists, func, select, update
from sqlalchemy.orm import Session

from app.storage.database import store_errors
from app.storage.models import Event, EventAttendee, EventReminder, utcnow


def attendee_rows(attendees: Iterable[Dict[str, Any]]) -> List[EventAttendee]:
    return [
        EventAttendee(position=i, email=a["email"], name=a.get("name"), response=a.get("response", "pending"))
        for i, a in enumerate(attendees)
    ]


def reminder_rows(reminders: Iterable[Dict[str, Any]]) -> List[EventReminder]:
    return [
        EventReminder(position=i, type=r.get("type", "email"), time=r.get("time", 15), sent=bool(r.get("sent", False)))
        for i, r in enumerate(reminders)
    ]


class EventStore:
    def __init__(self, session: Session):
        self.session = session

    # --- writes -------------------------------------------------------------

    def create(
        self,
        values: Dict[str, Any],
        attendees: Sequence[Dict[str, Any]] = (),
        reminders: Sequence[Dict[str, Any]] = (),
    ) -> Event:
        with store_errors("create"):
            event = Event(**values)
            event.attendees = attendee_rows(attendees)
            event.reminders = reminder_rows(reminders)
            self.session.add(event)
            self.session.commit()
            return event

    def update_owned(
        self,
        owner_id: str,
        event_id: str,
        values: Dict[str, Any],
        attendees: Optional[Sequence[Dict[str, Any]]] = None,
        reminders: Optional[Sequence[Dict[str, Any]]] = None,
        check: Optional[Callable[[Event], None]] = None,
    ) -> Optional[Event]:
        """
        Apply a partial update where id and owner both match.

        Returns None when no row matched. ``check`` runs against the updated
        row before commit; if it raises, the transaction is rolled back.
        """
        with store_errors("update"):
            stmt = (
                update(Event)
                .where(Event.id == event_id, Event.user_id == owner_id)
                .values(**values, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                self.session.rollback()
                return None

            event = self.session.get(Event, event_id, populate_existing=True)
            if attendees is not None:
                event.attendees = attendee_rows(attendees)
            if reminders is not None:
                event.reminders = reminder_rows(reminders)
            try:
                if check is not None:
                    check(event)
            except Exception:
                self.session.rollback()
                raise
            self.session.commit()
            return event

    def delete_owned(self, owner_id: str, event_id: str) -> bool:
        with store_errors("delete"):
            result = self.session.execute(
                delete(Event)
                .where(Event.id == event_id, Event.user_id == owner_id)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return result.rowcount > 0

    def mark_reminder_sent(self, reminder_id: str) -> bool:
        """Flip ``sent`` false->true; returns False if it was already sent."""
        with store_errors("mark_reminder_sent"):
            result = self.session.execute(
                update(EventReminder)
                .where(EventReminder.id == reminder_id, EventReminder.sent.is_(False))
                .values(sent=True)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return result.rowcount > 0

    def purge_terminal_before(self, cutoff: datetime, statuses: Sequence[str]) -> int:
        with store_errors("purge"):
            result = self.session.execute(
                delete(Event)
                .where(Event.end < cutoff, Event.status.in_(list(statuses)))
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return result.rowcount

    def commit(self) -> None:
        with store_errors("commit"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- reads --------------------------------------------------------------

    def get_owned(self, owner_id: str, event_id: str) -> Optional[Event]:
        with store_errors("get"):
            return self.session.scalars(
                select(Event).where(Event.id == event_id, Event.user_id == owner_id)
            ).first()

    def list_owned_by_ids(self, owner_id: str, event_ids: Sequence[str]) -> List[Event]:
        with store_errors("list_by_ids"):
            return list(
                self.session.scalars(
                    select(Event)
                    .where(Event.id.in_(list(event_ids)), Event.user_id == owner_id)
                    .order_by(Event.start.asc())
                )
            )

    def find(self, conditions: Sequence[Any], offset: int = 0, limit: Optional[int] = None) -> List[Event]:
        with store_errors("find"):
            stmt = select(Event).where(and_(*conditions)).order_by(Event.start.asc(), Event.id.asc())
            if offset:
                stmt = stmt.offset(offset)
            if limit is not None:
                stmt = stmt.limit(limit)
            return list(self.session.scalars(stmt))

    def count(self, conditions: Sequence[Any]) -> int:
        with store_errors("count"):
            return self.session.scalar(select(func.count(Event.id)).where(and_(*conditions))) or 0

    def recurring_templates(self) -> List[Event]:
        with store_errors("recurring_templates"):
            return list(
                self.session.scalars(
                    select(Event)
                    .where(Event.is_recurring.is_(True), Event.status == "active")
                    .order_by(Event.start.asc())
                )
            )

    def reminder_candidates(self, now: datetime) -> List[Event]:
        """Active future events that still have at least one unsent reminder."""
        unsent = exists().where(EventReminder.event_id == Event.id, EventReminder.sent.is_(False))
        with store_errors("reminder_candidates"):
            return list(
                self.session.scalars(
                    select(Event)
                    .where(Event.status == "active", Event.start > now, unsent)
                    .order_by(Event.start.asc())
                )
            )
