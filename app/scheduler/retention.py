from datetime import datetime, timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.events.schemas import TERMINAL_STATUSES
from app.events.store import EventStore
from app.scheduler.base import PeriodicJob


class RetentionSweeper(PeriodicJob):
    """Permanently deletes cancelled/completed events that ended before the retention window."""

    name = "retention"

    def _run(self, session: Session, now: datetime) -> Dict[str, Any]:
        cutoff = now - timedelta(days=self.config.retention_days)
        deleted = EventStore(session).purge_terminal_before(cutoff, TERMINAL_STATUSES)
        return {"deleted": deleted, "cutoff": cutoff.isoformat()}
