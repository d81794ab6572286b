"""
QuestSheet - Main Application.

FastAPI application factory. Builds the process-scoped state objects (task
cache, completion log queue, player registry) once and hands them to request
handlers through `app.state`.

Lifecycle:
- startup: validate store configuration, warm the task cache, start the
  log queue ticker
- shutdown: stop the queue (final flush), cancel a pending cache refresh,
  close store clients
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from questsheet import __version__
from questsheet.config import Settings, get_settings
from questsheet.core.sheets import GoogleSheetsStore, ServiceAccountAuth
from questsheet.core.store import InMemoryTabularStore, InstrumentedStore, TabularStore
from questsheet.deps import get_metrics
from questsheet.exceptions import QuestSheetException
from questsheet.modules.logs import CompletionLogQueue
from questsheet.modules.logs import router as logs_router
from questsheet.modules.players import PlayerRegistry, PlayerRepository
from questsheet.modules.players import router as players_router
from questsheet.modules.players.repository import PLAYER_HEADERS
from questsheet.modules.players.service import MISSION_COLUMNS
from questsheet.modules.tasks import TaskCache
from questsheet.modules.tasks import router as tasks_router
from questsheet.observability import MetricsStore, get_metrics_store
from questsheet.schemas import CacheQueueHealth, ErrorResponse, HealthResponse

# Configure standard logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("questsheet")


# =============================================================================
# Store wiring
# =============================================================================


def build_stores(settings: Settings) -> tuple[TabularStore, TabularStore]:
    """Return (workbook store, player store) for the configured backend."""
    if settings.store.backend == "memory":
        store = InMemoryTabularStore({settings.sheets.player_tab: [list(PLAYER_HEADERS)]})
        return store, store

    auth = ServiceAccountAuth(settings.sheets.keyfile)
    store = GoogleSheetsStore(
        settings.sheets.sheet_id,
        auth,
        base_url=settings.sheets.api_base_url,
        timeout_seconds=settings.store.timeout_seconds,
    )
    player_sheet_id = settings.sheets.effective_player_sheet_id
    if player_sheet_id == settings.sheets.sheet_id:
        return store, store
    player_store = GoogleSheetsStore(
        player_sheet_id,
        auth,
        base_url=settings.sheets.api_base_url,
        timeout_seconds=settings.store.timeout_seconds,
    )
    return store, player_store


def _check_store_config(settings: Settings) -> None:
    if settings.store.backend != "sheets":
        return
    if not settings.sheets.sheet_id:
        raise RuntimeError("SHEET_ID is required when STORE_BACKEND=sheets")
    if not Path(settings.sheets.keyfile).exists():
        logger.warning(f"Service account keyfile not found yet: {settings.sheets.keyfile}")


# =============================================================================
# Application factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    store: TabularStore | None = None,
    player_store: TabularStore | None = None,
    metrics: MetricsStore | None = None,
) -> FastAPI:
    """
    Build the QuestSheet application.

    `store` serves the task and completion log tabs, `player_store` the player
    tab (defaults to `store`). Passing stores skips backend configuration
    checks, which is how tests and embedders plug in their own.
    """
    settings = settings or get_settings()
    metrics = metrics or get_metrics_store()
    injected = store is not None

    if store is None:
        store, default_player_store = build_stores(settings)
        player_store = player_store or default_player_store
    player_store = player_store or store

    timeout = settings.store.timeout_seconds
    workbook = InstrumentedStore(store, timeout, metrics)
    players = workbook if player_store is store else InstrumentedStore(player_store, timeout, metrics)

    task_cache = TaskCache(
        workbook,
        settings.sheets.task_range,
        ttl_seconds=settings.task_cache.ttl_seconds,
        grace_seconds=settings.task_cache.grace_seconds,
        metrics=metrics,
    )
    log_queue = CompletionLogQueue(
        workbook,
        settings.sheets.log_range,
        batch_size=settings.log_queue.batch_size,
        flush_interval=settings.log_queue.flush_interval_seconds,
        batch_pause=settings.log_queue.batch_pause_seconds,
        retry_attempts=settings.log_queue.retry_attempts,
        retry_base_delay=settings.log_queue.retry_base_delay_seconds,
        metrics=metrics,
    )
    player_registry = PlayerRegistry(
        PlayerRepository(players, settings.sheets.player_tab, last_column=max(MISSION_COLUMNS.values()))
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(
            f"Starting QuestSheet API v{__version__} "
            f"[env={settings.app_env}] "
            f"[backend={'injected' if injected else settings.store.backend}]"
        )
        if not injected:
            _check_store_config(settings)

        # Warm the task cache without delaying startup.
        task_cache.trigger_refresh()
        log_queue.start()
        yield
        logger.info("Shutting down QuestSheet API")
        await log_queue.stop()
        await task_cache.aclose()
        await workbook.aclose()
        if players is not workbook:
            await players.aclose()

    app = FastAPI(
        title="QuestSheet API",
        description="Task lookup, completion logging and player registry in front of a Google Sheets workbook.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.task_cache = task_cache
    app.state.log_queue = log_queue
    app.state.player_registry = player_registry

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allow_origin] if settings.allow_origin else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Middleware
    # =========================================================================

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        response = await call_next(request)

        logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code}")

        return response

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    @app.exception_handler(QuestSheetException)
    async def questsheet_exception_handler(request: Request, exc: QuestSheetException):
        """Handle QuestSheet custom exceptions."""
        request_id = getattr(request.state, "request_id", None)
        metrics.record_error(exc.code)
        logger.warning(f"[{request_id}] QuestSheetException: {exc.code} - {exc.message}")

        body = ErrorResponse(error=exc.code, message=exc.message, details=exc.details, request_id=request_id)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors, reported as 400 like missing fields."""
        metrics.record_error("VALIDATION_ERROR")
        body = ErrorResponse(
            error="VALIDATION_ERROR",
            message="Malformed request body",
            details={"errors": [err.get("msg") for err in exc.errors()]},
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)
        metrics.record_error("INTERNAL_ERROR")

        # Log the full traceback
        logger.error(f"Unhandled exception on {request.url.path}")
        logger.error(f"Exception type: {type(exc).__name__}")
        logger.error(f"Traceback:\n{traceback.format_exc()}")

        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": str(exc) if settings.app_debug else "An unexpected error occurred",
                "request_id": request_id,
            },
        )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        """Liveness probe."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            app_env=settings.app_env,
            store_backend="injected" if injected else settings.store.backend,
        )

    @app.get("/healthz", response_model=CacheQueueHealth, tags=["health"])
    async def cache_queue_health():
        """Task cache age/size and completion log backlog."""
        return CacheQueueHealth(
            cache_age_ms=task_cache.age_ms(),
            cache_rows=task_cache.row_count(),
            queue_depth=log_queue.depth,
        )

    @app.get("/api/metrics", tags=["health"])
    def metrics_summary(store: MetricsStore = Depends(get_metrics)) -> dict:
        """
        Current metrics summary.

        - Store call latencies per operation (p50, p90, p99, mean, max)
        - Error counts by code
        - Queue/cache counters (log_enqueued, log_flushed, log_dropped,
          cache_refreshes, cache_refresh_failures)
        """
        return store.get_summary()

    # =========================================================================
    # Register Module Routers
    # =========================================================================

    app.include_router(tasks_router)
    app.include_router(logs_router)
    app.include_router(players_router)

    return app


app = create_app()
