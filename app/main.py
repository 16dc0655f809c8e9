"""Semester Planner API.

Serves course events, repeating series and their archive. Series-wide edits
and deletes go through ``app.series.scoped``; engine errors surface as
``{"code", "message"}`` bodies so clients can branch on the code.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.config import settings
from app.core.database import create_db_and_tables
from app.core.errors import PlannerError
from app.core.scheduler import shutdown_scheduler, start_scheduler
from app.routes import events, templates


def configure_logging() -> Path:
    """Send application logs to ``<log_dir>/latest.log``."""
    log_dir = Path(settings.log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "latest.log"
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=str(log_file),
    )
    return log_file


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    start_scheduler()
    logger.info(
        f"{settings.app_name} started "
        f"(heuristic matching={'on' if settings.enable_heuristic_matching else 'off'}, "
        f"backfill on startup={'on' if settings.backfill_on_startup else 'off'})"
    )
    yield
    shutdown_scheduler()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    description="Course calendar backend with recurring events, series edits and an event archive",
    version="0.1.0",
    lifespan=lifespan,
)

if settings.allowed_origins == "*":
    origins = ["*"]
else:
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError):
    """Render engine errors with their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(events.router)
app.include_router(templates.router)


@app.get("/")
async def root(request: Request):
    """Redirect to the event list."""
    return RedirectResponse(f"{request.scope.get('root_path', '')}/events")


@app.get("/health")
async def health():
    return {"status": "healthy", "app": settings.app_name}
