"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from podhub import __version__
from podhub.app.api.v1 import pod_session_router
from podhub.app.config import get_settings
from podhub.app.dependencies import close_controller, get_controller, init_controller
from podhub.app.logging import setup_logging
from podhub.app.metrics import get_metrics_response
from podhub.app.middleware import LoggingMiddleware
from podhub.core.errors import PodHubError
from podhub.core.logging_schema import LogEvent

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if not settings.runpod.api_key:
        logger.error(
            "RUNPOD_API_KEY is not set; every provider call will be aborted",
            extra={"event": LogEvent.CONFIGURATION_MISSING},
        )

    controller = init_controller(settings)
    logger.info("Starting application", extra={"event": LogEvent.APP_STARTED})

    reaper_task: asyncio.Task[None] | None = None
    if settings.reaper.enabled:
        reaper_task = asyncio.create_task(controller.reaper.run(), name="idle-reaper")

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    if reaper_task is not None:
        reaper_task.cancel()
        try:
            await reaper_task
        except asyncio.CancelledError:
            pass

    await close_controller()


app = FastAPI(title="podhub", version=__version__, lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(PodHubError)
async def podhub_error_handler(request: Request, exc: PodHubError) -> JSONResponse:
    """Handle PodHubError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


app.include_router(pod_session_router, prefix="/api/v1")


@app.get("/health")
async def health():
    try:
        controller = get_controller()
    except RuntimeError:
        return {"status": "starting", "version": __version__}

    snap = controller.snapshot()
    return {
        "status": "ok",
        "version": __version__,
        "active_pod": snap.pod_id,
        "connections": snap.connections,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    if not get_settings().metrics.enabled:
        return JSONResponse(status_code=404, content={"detail": "Not Found"})
    return get_metrics_response()


def run() -> None:
    """Console entry point. One worker: the active slot is per process."""
    uvicorn.run("podhub.app.main:app", host="0.0.0.0", port=8080, workers=1)
