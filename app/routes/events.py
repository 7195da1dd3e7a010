from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.events.commands import EventCommandService
from app.events.query import EventQueryEngine
from app.events.schemas import BulkUpdateRequest, EventCreate, EventFilter, EventOut, EventUpdate
from app.routes.deps import current_owner, get_command_service, get_query_engine, success
from app.users.directory import UserProfile

router = APIRouter()


@router.get("")
def list_events(
    start: Optional[str] = None,
    end: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    owner: UserProfile = Depends(current_owner),
    engine: EventQueryEngine = Depends(get_query_engine),
) -> JSONResponse:
    raw = {"start": start, "end": end, "category": category, "search": search, "status": status, "page": page, "limit": limit}
    flt = EventFilter(**{k: v for k, v in raw.items() if v is not None})
    result = engine.list_events(owner.id, flt)
    return success(result.model_dump())


@router.post("")
def create_event(
    body: EventCreate,
    owner: UserProfile = Depends(current_owner),
    commands: EventCommandService = Depends(get_command_service),
) -> JSONResponse:
    event = commands.create_event(owner.id, body)
    return success({"event": EventOut.from_record(event)}, message="Event created successfully", status_code=201)


@router.get("/upcoming")
def upcoming_events(
    limit: Optional[str] = None,
    owner: UserProfile = Depends(current_owner),
    engine: EventQueryEngine = Depends(get_query_engine),
) -> JSONResponse:
    return success({"events": engine.list_upcoming(owner.id, limit)})


@router.get("/range")
def events_by_date_range(
    start: Optional[str] = None,
    end: Optional[str] = None,
    owner: UserProfile = Depends(current_owner),
    engine: EventQueryEngine = Depends(get_query_engine),
) -> JSONResponse:
    return success({"events": engine.list_by_date_range(owner.id, start, end)})


@router.get("/category/{category}")
def events_by_category(
    category: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    owner: UserProfile = Depends(current_owner),
    engine: EventQueryEngine = Depends(get_query_engine),
) -> JSONResponse:
    result = engine.list_by_category(owner.id, category, page, limit)
    return success(result.model_dump())


@router.put("/bulk")
def bulk_update_events(
    body: BulkUpdateRequest,
    owner: UserProfile = Depends(current_owner),
    commands: EventCommandService = Depends(get_command_service),
) -> JSONResponse:
    modified = commands.bulk_update(owner.id, body.event_ids, body.updates)
    return success({"modified_count": modified}, message=f"{modified} events updated successfully")


@router.get("/{event_id}")
def get_event(
    event_id: str,
    owner: UserProfile = Depends(current_owner),
    commands: EventCommandService = Depends(get_command_service),
) -> JSONResponse:
    event = commands.get_event(owner.id, event_id)
    return success({"event": EventOut.from_record(event)})


@router.put("/{event_id}")
def update_event(
    event_id: str,
    body: EventUpdate,
    owner: UserProfile = Depends(current_owner),
    commands: EventCommandService = Depends(get_command_service),
) -> JSONResponse:
    event = commands.update_event(owner.id, event_id, body)
    return success({"event": EventOut.from_record(event)}, message="Event updated successfully")


@router.delete("/{event_id}")
def delete_event(
    event_id: str,
    owner: UserProfile = Depends(current_owner),
    commands: EventCommandService = Depends(get_command_service),
) -> JSONResponse:
    commands.delete_event(owner.id, event_id)
    return success(message="Event deleted successfully")
