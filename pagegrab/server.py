"""Local HTTP control surface: start a job, stream its events, fetch results."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from . import APP_NAME, __version__
from .config import DownloadConfig, load_config
from .errors import JobAlreadyActive, ValidationError
from .events import EventType, ServerEvent
from .models import CaptureMode
from .services import Services

logger = logging.getLogger("pagegrab.server")

router = APIRouter(prefix="/api")


class StartRequest(BaseModel):
    url: str = ""
    mode: str = CaptureMode.DEFAULT.value


def get_services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/health")
async def health():
    return {"status": "ok", "service": APP_NAME}


@router.get("/config")
async def read_config(services: Services = Depends(get_services)):
    return {
        "output": str(services.config.output_root),
        "version": __version__,
        "appName": APP_NAME,
    }


@router.post("/start")
async def start_job(body: StartRequest, services: Services = Depends(get_services)):
    """Start a download. Returns immediately with the job id."""
    try:
        job = services.orchestrator.start(body.url.strip(), CaptureMode.parse(body.mode))
    except JobAlreadyActive as exc:
        return _error(409, str(exc))
    except ValidationError as exc:
        return _error(400, str(exc))
    return JSONResponse(status_code=202, content={"jobId": job.id})


async def event_stream(services: Services) -> AsyncIterator[Dict[str, str]]:
    """Status snapshot first, then every published event until the client leaves."""
    subscription = services.broadcaster.subscribe()
    try:
        yield ServerEvent(EventType.STATUS, services.orchestrator.snapshot()).to_sse()
        while True:
            event = await subscription.get()
            yield event.to_sse()
    finally:
        services.broadcaster.unsubscribe(subscription)


@router.get("/stream")
async def stream_events(services: Services = Depends(get_services)):
    """SSE endpoint; the first event is a snapshot of the current status."""
    return EventSourceResponse(event_stream(services))


def _resolve_download(output_root: Path, filename: str) -> Optional[Path]:
    """Map a requested name onto a path inside ``output_root``; None if it escapes."""
    if not filename or "\\" in filename or "\x00" in filename:
        return None
    relative = PurePosixPath(filename)
    if relative.is_absolute() or any(part in ("", ".", "..") for part in relative.parts):
        return None
    root = output_root.resolve()
    target = (root / Path(*relative.parts)).resolve()
    if root not in target.parents:
        return None
    return target


@router.get("/download/{filename:path}")
async def download(filename: str, services: Services = Depends(get_services)):
    target = _resolve_download(services.config.output_root, filename)
    if target is None:
        logger.warning("Rejected download request for %r", filename)
        return _error(403, "Forbidden")
    if not target.is_file():
        return _error(404, "Not found")
    return FileResponse(target, filename=target.name)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, "Invalid request body.")


def create_app(config: Optional[DownloadConfig] = None, services: Optional[Services] = None) -> FastAPI:
    """Build the FastAPI application around explicitly constructed services."""
    if services is None:
        services = Services.create(config or load_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.close()

    app = FastAPI(
        title=APP_NAME,
        description="Capture paginated documents, slide decks and podcasts",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app
