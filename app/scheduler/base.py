import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import AppConfig, load_config
from app.observability.logger import log_error, log_event, timing
from app.storage.database import get_session_factory
from app.storage.models import as_utc, utcnow

logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    One unit of background maintenance against the event store.

    Subclasses implement ``_run``. ``run`` never raises: failures are logged
    and reported in the returned summary so the scheduler keeps going.
    A job checks ``should_stop()`` between records and stops taking new ones
    once shutdown has been requested.
    """

    name: str = "job"

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = config or load_config()
        self._session_factory = session_factory
        self.stop_event = stop_event or threading.Event()

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    def _run(self, session: Session, now: datetime) -> Dict[str, Any]:
        raise NotImplementedError

    def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = as_utc(now) if now else utcnow()
        try:
            with timing(self.name) as timer:
                with self.session_factory() as session:
                    summary = self._run(session, now)
        except Exception as exc:
            log_error(exc, {"action": "job_failed", "job": self.name})
            return {"job": self.name, "success": False, "error": str(exc), "ran_at": now.isoformat()}

        summary = {"job": self.name, "success": True, "ran_at": now.isoformat(), **summary}
        log_event(action="job_completed", duration_ms=timer.get_duration_ms(), **summary)
        return summary
