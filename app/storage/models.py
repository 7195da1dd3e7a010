import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from app.storage.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and always hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class User(Base):
    """Owner record. The event core only reads it."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(120), unique=True, nullable=False)
    name = Column(String(100), nullable=True)
    email_notifications = Column(Boolean, default=True, nullable=False)
    push_notifications = Column(Boolean, default=False, nullable=False)
    sms_notifications = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    start = Column("start_at", UTCDateTime, nullable=False)
    end = Column("end_at", UTCDateTime, nullable=False)
    all_day = Column(Boolean, default=False, nullable=False)

    category = Column(String(20), default="other", nullable=False)  # work | personal | meeting | birthday | holiday | other
    color = Column(String(7), default="#3788d8", nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active | cancelled | completed
    is_public = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    attachments = Column(JSON, default=list, nullable=False)

    # Recurrence template settings
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String(10), default="weekly", nullable=False)  # daily | weekly | monthly | yearly
    recurrence_interval = Column(Integer, default=1, nullable=False)
    recurrence_end_date = Column(UTCDateTime, nullable=True)
    recurrence_exceptions = Column(JSON, default=list, nullable=False)  # ISO dates
    recurrence_last_generated = Column(UTCDateTime, nullable=True)

    # Set on occurrences materialized from a template
    source_event_id = Column(String(36), ForeignKey("events.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    attendees = relationship(
        "EventAttendee",
        backref="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EventAttendee.position",
        lazy="selectin",
    )
    reminders = relationship(
        "EventReminder",
        backref="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EventReminder.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_events_user_start_end", "user_id", "start_at", "end_at"),
        Index("ix_events_start_end", "start_at", "end_at"),
        Index("ix_events_category", "category"),
        Index("ix_events_status", "status"),
    )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def is_happening_now(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now) if now else utcnow()
        return self.start <= now <= self.end

    def __repr__(self):
        return f"<Event(id={self.id}, title={self.title}, start={self.start})>"


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    email = Column(String(254), nullable=False)
    name = Column(String(100), nullable=True)
    response = Column(String(10), default="pending", nullable=False)  # pending | accepted | declined


class EventReminder(Base):
    __tablename__ = "event_reminders"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    type = Column(String(10), default="email", nullable=False)  # email | push | sms
    time = Column(Integer, default=15, nullable=False)  # minutes before start
    sent = Column(Boolean, default=False, nullable=False, index=True)

    def due_at(self, start: datetime) -> datetime:
        return start - timedelta(minutes=self.time)
