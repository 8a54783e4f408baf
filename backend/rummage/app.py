"""FastAPI application setup for Rummage."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rummage.api.dependencies import (
    get_app_settings,
    get_command_service,
    get_event_broker,
    shutdown_services,
)
from rummage.api.routes_admin import router as admin_router
from rummage.api.routes_events import router as events_router
from rummage.api.routes_files import router as files_router
from rummage.api.routes_scan import router as scan_router
from rummage.core.errors import (
    ConfigurationError,
    InvalidTransitionError,
    NotInitializedError,
    PathError,
    RecordNotFoundError,
    RummageError,
)
from rummage.core.logging import configure_logging, get_logger
from rummage.scanning.orchestrator import sanitize_error

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Rummage",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5174",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(scan_router, prefix="", tags=["scan"])
app.include_router(files_router, prefix="", tags=["files"])
app.include_router(admin_router, prefix="", tags=["admin"])
app.include_router(events_router, prefix="", tags=["events"])

_ERROR_STATUS: list[tuple[type[RummageError], int]] = [
    (RecordNotFoundError, 404),
    (InvalidTransitionError, 409),
    (PathError, 400),
    (NotInitializedError, 503),
    (ConfigurationError, 500),
]


@app.exception_handler(RummageError)
async def handle_domain_error(request: Request, exc: RummageError) -> JSONResponse:
    status = next((code for kind, code in _ERROR_STATUS if isinstance(exc, kind)), 500)
    return _report(request, sanitize_error(exc), status)


@app.exception_handler(ValueError)
async def handle_invalid_argument(request: Request, exc: ValueError) -> JSONResponse:
    return _report(request, str(exc), 400)


def _report(request: Request, message: str, status: int) -> JSONResponse:
    logger.warning("Command %s failed: %s", request.url.path, message)
    get_event_broker().report_error(request.url.path, message)
    return JSONResponse(status_code=status, content={"detail": message})


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_event_broker()
    get_command_service()


@app.on_event("shutdown")
async def shutdown() -> None:
    shutdown_services()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
