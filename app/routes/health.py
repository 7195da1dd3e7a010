import os
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.storage.database import ping

router = APIRouter()


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@router.get("/healthz")
async def health_check(request: Request) -> JSONResponse:
    """
    Health check endpoint with the last run of each maintenance job.

    Returns:
        JSON response with status, scheduler state and observability flags
    """
    response = {
        "status": "ok",
        "timestamp": _stamp(),
    }

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        status = scheduler.get_status()
        response["scheduler"] = {
            "running": status["running"],
            "last_runs": {name: job["last_run"] for name, job in status["jobs"].items() if job["last_run"]},
        }

    obs_enabled = os.getenv("OBS_ENABLED", "false").lower() == "true"
    response["observability"] = {
        "enabled": obs_enabled,
        "sentry_configured": bool(os.getenv("SENTRY_DSN")),
    }

    return JSONResponse(status_code=200, content=response)


@router.get("/healthz/ready")
def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check: the event store must answer.

    Returns:
        JSON response indicating if the service is ready to accept traffic
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    checks = {
        "database": "ok" if ping() else "unavailable",
        "scheduler": "ok" if scheduler is None or scheduler.running else "stopped",
    }

    all_healthy = checks["database"] == "ok"

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "timestamp": _stamp(),
        "checks": checks,
    }

    status_code = 200 if all_healthy else 503
    return JSONResponse(status_code=status_code, content=response)


@router.get("/healthz/live")
async def liveness_check() -> JSONResponse:
    response = {
        "status": "alive",
        "timestamp": _stamp(),
    }

    return JSONResponse(status_code=200, content=response)
