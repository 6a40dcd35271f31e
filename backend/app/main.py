"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 8080

Or from the project root:
    python -m uvicorn backend.app.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ── Core infrastructure ──
from backend.app.core.config import Settings, settings
from backend.app.core.container import ServiceContainer
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import RequestLoggingMiddleware

# ── API routers ──
from backend.app.api.v1.incidents import router as incident_router
from backend.app.api.v1.location import router as location_router
from backend.app.api.v1.system import router as system_router

logger = get_logger(__name__)


def create_app(
    container: Optional[ServiceContainer] = None,
    cfg: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application.

    A prebuilt container is used as-is (tests inject one wired to
    SQLite and fakes); otherwise one is built from settings at startup.
    """
    cfg = container.settings if container is not None else (cfg or settings)
    setup_logging(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown events."""
        logger.info("Starting %s v%s [%s]", cfg.APP_NAME, cfg.APP_VERSION, cfg.ENVIRONMENT)
        services = container or ServiceContainer.build(cfg)
        app.state.container = services
        await services.startup()
        yield
        logger.info("Shutting down %s", cfg.APP_NAME)
        await services.shutdown()

    app = FastAPI(
        title=cfg.APP_NAME,
        description=(
            "Location alert service. Operators maintain circular incident "
            "zones; clients submit user positions and learn whether they "
            "fall inside an active zone. Matches are recorded and pushed "
            "to a webhook in the background."
        ),
        version=cfg.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── Middleware stack (order matters: outermost first) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS if not cfg.CORS_ALLOW_ALL else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # ── Error handlers ──
    register_error_handlers(app, cfg)

    # ── Register routers ──
    app.include_router(incident_router)
    app.include_router(location_router)
    app.include_router(system_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": cfg.APP_NAME,
            "version": cfg.APP_VERSION,
            "environment": cfg.ENVIRONMENT,
            "docs": "/docs",
        }

    return app


app = create_app()
