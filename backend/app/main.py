import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import classes, groups, health, schedules
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.core.logging import setup_logging
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.services.class_status_job import ClassStatusUpdateJob, run_periodically
from app.services.events import event_bus

settings = get_settings()
setup_logging(environment=settings.environment, level=settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_runtime_schema_compatibility()
    app.state.event_bus = event_bus

    stop_event = asyncio.Event()
    job_task: asyncio.Task | None = None
    if settings.class_status_job_enabled:
        job = ClassStatusUpdateJob(events=event_bus)
        job_task = asyncio.create_task(
            run_periodically(job, settings.class_status_job_interval_seconds, stop_event)
        )
    else:
        logger.info("Class status job disabled")

    yield

    stop_event.set()
    if job_task is not None:
        await job_task


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(schedules.router, prefix=settings.api_prefix, tags=["schedules"])
app.include_router(classes.router, prefix=settings.api_prefix, tags=["classes"])
app.include_router(groups.router, prefix=settings.api_prefix, tags=["groups"])
