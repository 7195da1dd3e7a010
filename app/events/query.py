import math
from datetime import datetime
from typing import Any, List, Optional, Tuple

from dateutil import parser as date_parser
from sqlalchemy import and_, or_

from app.core.config import AppConfig, load_config
from app.core.errors import ValidationError
from app.events.schemas import STATUSES, EventFilter, EventOut, EventPage, Pagination
from app.events.store import EventStore
from app.storage.models import Event, as_utc, utcnow


def parse_instant(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 instant; returns None when absent or malformed."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    text = str(raw).strip()
    if not text:
        return None
    try:
        return as_utc(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        return None


def _parse_int(raw: Any) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def overlap_condition(range_start: datetime, range_end: datetime):
    """
    Event overlaps [range_start, range_end] if it starts inside, ends inside,
    or spans the whole range.
    """
    return or_(
        and_(Event.start >= range_start, Event.start <= range_end),
        and_(Event.end >= range_start, Event.end <= range_end),
        and_(Event.start <= range_start, Event.end >= range_end),
    )


def build_pagination(page: int, page_size: int, total: int) -> Pagination:
    return Pagination(
        current_page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
        total_events=total,
        has_next_page=page * page_size < total,
        has_prev_page=page > 1,
    )


class EventQueryEngine:
    def __init__(self, store: EventStore, config: Optional[AppConfig] = None):
        self.store = store
        self.config = config or load_config()

    def coerce_paging(self, page: Any, limit: Any) -> Tuple[int, int]:
        page_num = _parse_int(page)
        if page_num is None or page_num < 1:
            page_num = 1
        size = _parse_int(limit)
        if size is None or size <= 0:
            size = self.config.default_page_size
        return page_num, size

    def _category_condition(self, category: Optional[str]):
        if category is None or category == "":
            return None
        return Event.category == category

    def _status_condition(self, status: Optional[str]):
        if status is None:
            status = "active"
        if status in ("", "all"):
            return None
        if status not in STATUSES:
            raise ValidationError(
                "Invalid status",
                [{"field": "status", "message": f"Must be one of: {', '.join(STATUSES)} or 'all'"}],
            )
        return Event.status == status

    def build_conditions(self, owner_id: str, flt: EventFilter) -> List[Any]:
        conditions: List[Any] = [Event.user_id == owner_id]

        status_cond = self._status_condition(flt.status)
        if status_cond is not None:
            conditions.append(status_cond)

        range_start = parse_instant(flt.start)
        range_end = parse_instant(flt.end)
        if range_start is not None and range_end is not None:
            conditions.append(overlap_condition(range_start, range_end))

        category_cond = self._category_condition(flt.category)
        if category_cond is not None:
            conditions.append(category_cond)

        search = (flt.search or "").strip()
        if search:
            conditions.append(
                or_(
                    Event.title.icontains(search, autoescape=True),
                    Event.description.icontains(search, autoescape=True),
                )
            )
        return conditions

    def _page(self, conditions: List[Any], page: Any, limit: Any, now: datetime) -> EventPage:
        page_num, size = self.coerce_paging(page, limit)
        total = self.store.count(conditions)
        events = self.store.find(conditions, offset=(page_num - 1) * size, limit=size)
        return EventPage(
            events=[EventOut.from_record(e, now) for e in events],
            pagination=build_pagination(page_num, size, total),
        )

    def list_events(self, owner_id: str, flt: Optional[EventFilter] = None, now: Optional[datetime] = None) -> EventPage:
        flt = flt or EventFilter()
        conditions = self.build_conditions(owner_id, flt)
        return self._page(conditions, flt.page, flt.limit, now or utcnow())

    def list_upcoming(self, owner_id: str, limit: Any = None, now: Optional[datetime] = None) -> List[EventOut]:
        now = now or utcnow()
        size = _parse_int(limit)
        if size is None or size <= 0:
            size = self.config.upcoming_limit
        events = self.store.find(
            [Event.user_id == owner_id, Event.status == "active", Event.start >= now],
            limit=size,
        )
        return [EventOut.from_record(e, now) for e in events]

    def list_by_date_range(self, owner_id: str, start: Any, end: Any, now: Optional[datetime] = None) -> List[EventOut]:
        range_start = parse_instant(start)
        range_end = parse_instant(end)
        if range_start is None or range_end is None:
            raise ValidationError(
                "Start and end dates are required",
                [
                    {"field": name, "message": "Must be a valid ISO-8601 date"}
                    for name, value in (("start", range_start), ("end", range_end))
                    if value is None
                ],
            )
        events = self.store.find(
            [Event.user_id == owner_id, Event.status == "active", overlap_condition(range_start, range_end)]
        )
        now = now or utcnow()
        return [EventOut.from_record(e, now) for e in events]

    def list_by_category(
        self, owner_id: str, category: str, page: Any = 1, limit: Any = None, now: Optional[datetime] = None
    ) -> EventPage:
        if not category:
            raise ValidationError("Category is required", [{"field": "category", "message": "Required"}])
        conditions = [
            Event.user_id == owner_id,
            Event.status == "active",
            self._category_condition(category),
        ]
        return self._page(conditions, page, limit, now or utcnow())
