"""
AgentMesh HTTP Surface
======================

Read-only observability API over a ``CoordinationSystem``.

The app never mutates coordination state: it exposes snapshots of agents,
collaborations, shared knowledge and aggregate statistics, plus a Prometheus
``/metrics`` endpoint. Provisioning, admission and messaging are driven by
in-process callers holding the system object.

Usage:
    uvicorn agentmesh.api.main:create_app --factory
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from agentmesh import __version__
from agentmesh.api.routes import router as api_router
from agentmesh.core.config import Settings, get_settings
from agentmesh.core.exceptions import AgentMeshException
from agentmesh.infra.telemetry import get_logger, setup_logging
from agentmesh.system import CoordinationSystem

logger = get_logger(__name__)


async def exception_handler(request: Request, exc: AgentMeshException) -> JSONResponse:
    """Render AgentMesh exceptions with their own status code and payload."""
    if exc.status_code >= 500:
        logger.error("request_failed", exc=exc, path=request.url.path, error_code=exc.error_code)
    else:
        logger.info("request_rejected", path=request.url.path, error_code=exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the coordination system's background tasks, stop them on shutdown."""
    system: CoordinationSystem = app.state.system
    await system.start()
    logger.info("api_started", app_name=system.settings.APP_NAME, version=__version__)

    yield  # ═══════════ Application runs here ═══════════

    await system.stop()
    logger.info("api_stopped")


def create_app(system: CoordinationSystem | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI app around ``system`` (a new one from ``settings`` if omitted)."""
    if system is None:
        system = CoordinationSystem(settings or get_settings())
    settings = system.settings
    setup_logging(
        level=settings.LOG_LEVEL,
        json_output=settings.json_logs,
        log_dir=settings.LOG_DIR,
    )

    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-agent registry and collaboration coordination",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.system = system

    app.add_exception_handler(AgentMeshException, exception_handler)  # type: ignore[arg-type]
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": __version__,
            "api_version": "v1",
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health", include_in_schema=False)
    async def health():
        status = system.get_status()
        status["status"] = "healthy" if status["running"] else "stopped"
        return status

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=system.metrics.export_prometheus(),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app
