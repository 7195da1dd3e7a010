from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import AppConfig, load_config
from app.core.errors import AuthenticationError
from app.events.commands import EventCommandService
from app.events.query import EventQueryEngine
from app.events.store import EventStore
from app.storage.database import get_session
from app.users.directory import UserDirectory, UserProfile


def get_config() -> AppConfig:
    return load_config()


def require_api_key_if_configured(request: Request, cfg: AppConfig) -> None:
    if not cfg.api_key:
        return
    provided = request.headers.get("x-api-key")
    if provided != cfg.api_key:
        raise AuthenticationError("Invalid or missing API key")


def current_owner(
    request: Request,
    session: Session = Depends(get_session),
    cfg: AppConfig = Depends(get_config),
) -> UserProfile:
    """Resolve the calling user from the X-User-Id header."""
    require_api_key_if_configured(request, cfg)
    user = UserDirectory(session).get(request.headers.get("x-user-id"))
    if user is None:
        raise AuthenticationError("No user selected")
    return user


def get_query_engine(session: Session = Depends(get_session), cfg: AppConfig = Depends(get_config)) -> EventQueryEngine:
    return EventQueryEngine(EventStore(session), cfg)


def get_command_service(session: Session = Depends(get_session)) -> EventCommandService:
    return EventCommandService(EventStore(session))


def success(data: Optional[Dict[str, Any]] = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    content: Dict[str, Any] = {"status": "success"}
    if message:
        content["message"] = message
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content)
