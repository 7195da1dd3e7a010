import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

load_dotenv()

from app.core.config import load_config
from app.core.errors import CalendarError, field_errors_from_pydantic
from app.observability.logger import init_sentry
from app.routes.events import router as events_router
from app.routes.health import router as health_router
from app.routes.scheduler import router as scheduler_router
from app.routes.users import router as users_router
from app.scheduler.service import SchedulerService
from app.storage.database import get_engine

logger = logging.getLogger("calendar")
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Calendar.io events API")
app.state.scheduler = None


@app.exception_handler(CalendarError)
async def _calendar_error(request: Request, exc: CalendarError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"status": "error", "message": "Validation failed", "errors": field_errors_from_pydantic(exc)},
    )


@app.on_event("startup")
def _startup():
    init_sentry()
    get_engine()
    cfg = load_config()
    if cfg.run_scheduler:
        scheduler = SchedulerService(cfg)
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Scheduler started (RUN_SCHEDULER=1)")
    else:
        logger.info("Scheduler disabled (RUN_SCHEDULER=0)")


@app.on_event("shutdown")
def _shutdown():
    scheduler = app.state.scheduler
    if scheduler is not None and scheduler.running:
        scheduler.stop(wait=True)
        logger.info("Scheduler stopped")


# Routes
app.include_router(events_router, prefix="/api/events", tags=["events"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(scheduler_router, tags=["scheduler"])
app.include_router(health_router, tags=["health"])


@app.get("/")
def health():
    return {"status": "ok"}
