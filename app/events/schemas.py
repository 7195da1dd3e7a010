from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator

from app.storage.models import Event, as_utc, utcnow


CATEGORIES = ("work", "personal", "meeting", "birthday", "holiday", "other")
STATUSES = ("active", "cancelled", "completed")
TERMINAL_STATUSES = ("cancelled", "completed")
REMINDER_TYPES = ("email", "push", "sms")
PATTERNS = ("daily", "weekly", "monthly", "yearly")

Category = Literal["work", "personal", "meeting", "birthday", "holiday", "other"]
Status = Literal["active", "cancelled", "completed"]
AttendeeResponse = Literal["pending", "accepted", "declined"]
ReminderType = Literal["email", "push", "sms"]
Pattern = Literal["daily", "weekly", "monthly", "yearly"]

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
Location = Annotated[str, StringConstraints(strip_whitespace=True, max_length=200)]
Notes = Annotated[str, StringConstraints(strip_whitespace=True)]
Color = Annotated[str, StringConstraints(pattern=r"^#[0-9A-Fa-f]{6}$")]

DEFAULT_COLOR = "#3788d8"


class Attendee(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    response: AttendeeResponse = "pending"


class Reminder(BaseModel):
    type: ReminderType = "email"
    time: int = Field(15, ge=0)  # minutes before start
    sent: bool = False


class Recurrence(BaseModel):
    is_recurring: bool = False
    pattern: Pattern = "weekly"
    interval: int = Field(1, ge=1)
    end_date: Optional[datetime] = None
    exceptions: List[date] = []

    @field_validator("end_date")
    @classmethod
    def _end_date_utc(cls, value):
        return as_utc(value)


class Attachment(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    type: Optional[str] = None


def _normalize_tags(tags: List[str]) -> List[str]:
    seen = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class EventCreate(BaseModel):
    title: Title
    description: Optional[Description] = None
    location: Optional[Location] = None
    notes: Optional[Notes] = None
    start: datetime
    end: datetime
    all_day: bool = False
    category: Category = "other"
    color: Color = DEFAULT_COLOR
    status: Status = "active"
    is_public: bool = False
    tags: List[str] = []
    attendees: List[Attendee] = []
    reminders: List[Reminder] = []
    recurring: Recurrence = Recurrence()
    attachments: List[Attachment] = []

    @field_validator("start", "end")
    @classmethod
    def _instant_utc(cls, value):
        return as_utc(value)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value):
        return _normalize_tags(value)


# Fields that may be omitted from an update but never set to null.
_REQUIRED_ON_UPDATE = (
    "title", "start", "end", "all_day", "category", "color", "status", "is_public",
    "tags", "attendees", "reminders", "recurring", "attachments",
)


class EventUpdate(BaseModel):
    """Partial update: only fields present in the payload are applied."""

    title: Optional[Title] = None
    description: Optional[Description] = None
    location: Optional[Location] = None
    notes: Optional[Notes] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: Optional[bool] = None
    category: Optional[Category] = None
    color: Optional[Color] = None
    status: Optional[Status] = None
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    attendees: Optional[List[Attendee]] = None
    reminders: Optional[List[Reminder]] = None
    recurring: Optional[Recurrence] = None
    attachments: Optional[List[Attachment]] = None

    @field_validator(*_REQUIRED_ON_UPDATE, mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("start", "end")
    @classmethod
    def _instant_utc(cls, value):
        return as_utc(value)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value):
        return _normalize_tags(value)

    def supplied(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class AttendeeOut(Attendee):
    email: str


class ReminderOut(Reminder):
    id: str


class RecurrenceOut(Recurrence):
    last_generated: Optional[datetime] = None


class EventOut(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool
    category: str
    color: str
    status: str
    is_public: bool
    tags: List[str]
    attendees: List[AttendeeOut]
    reminders: List[ReminderOut]
    recurring: RecurrenceOut
    attachments: List[Attachment]
    source_event_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    duration_seconds: float
    is_happening_now: bool

    @classmethod
    def from_record(cls, event: Event, now: Optional[datetime] = None) -> "EventOut":
        now = now or utcnow()
        return cls(
            id=event.id,
            user_id=event.user_id,
            title=event.title,
            description=event.description,
            location=event.location,
            notes=event.notes,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
            category=event.category,
            color=event.color,
            status=event.status,
            is_public=event.is_public,
            tags=list(event.tags or []),
            attendees=[
                AttendeeOut(email=a.email, name=a.name, response=a.response) for a in event.attendees
            ],
            reminders=[
                ReminderOut(id=r.id, type=r.type, time=r.time, sent=r.sent) for r in event.reminders
            ],
            recurring=RecurrenceOut(
                is_recurring=event.is_recurring,
                pattern=event.recurrence_pattern,
                interval=event.recurrence_interval,
                end_date=event.recurrence_end_date,
                exceptions=[date.fromisoformat(d) for d in (event.recurrence_exceptions or [])],
                last_generated=event.recurrence_last_generated,
            ),
            attachments=[Attachment(**a) for a in (event.attachments or [])],
            source_event_id=event.source_event_id,
            created_at=event.created_at,
            updated_at=event.updated_at,
            duration_seconds=event.duration.total_seconds(),
            is_happening_now=event.is_happening_now(now),
        )


class EventFilter(BaseModel):
    """Raw list filter as received from the caller; coerced by the query engine."""

    start: Optional[str] = None
    end: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    status: Optional[str] = "active"
    page: Optional[str] = None
    limit: Optional[str] = None

    @field_validator("page", "limit", "start", "end", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)


class Pagination(BaseModel):
    current_page: int
    page_size: int
    total_pages: int
    total_events: int
    has_next_page: bool
    has_prev_page: bool


class EventPage(BaseModel):
    events: List[EventOut]
    pagination: Pagination


class BulkUpdateRequest(BaseModel):
    event_ids: Optional[List[str]] = None
    updates: EventUpdate = EventUpdate()


class BulkUpdateResult(BaseModel):
    modified_count: int
