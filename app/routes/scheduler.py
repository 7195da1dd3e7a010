from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.config import load_config
from app.routes.deps import require_api_key_if_configured
from app.scheduler.service import SchedulerService, UnknownJobError

router = APIRouter()


def _get_scheduler(request: Request) -> SchedulerService:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler = SchedulerService()
        request.app.state.scheduler = scheduler
    return scheduler


@router.get("/scheduler/status")
async def get_scheduler_status(request: Request) -> JSONResponse:
    """
    Get scheduler status and configuration.

    Returns:
        JSON response with running state, timezone and per-job run times
    """
    scheduler = _get_scheduler(request)
    return JSONResponse(status_code=200, content={"ok": True, "scheduler": scheduler.get_status()})


@router.post("/scheduler/run/{job}")
def run_scheduler_job(job: str, request: Request) -> JSONResponse:
    """
    Run one maintenance job (reminders, recurrence or retention) right now.

    Returns:
        JSON response with the job's run summary
    """
    require_api_key_if_configured(request, load_config())
    scheduler = _get_scheduler(request)
    try:
        summary = scheduler.run_job(job)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job}")
    return JSONResponse(status_code=200, content={"ok": summary.get("success", False), "result": summary})
