"""HR Management System: FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrms import __version__
from hrms.auth.router import router as auth_router
from hrms.common.constants import REQUEST_ID_HEADER
from hrms.common.exceptions import register_exception_handlers
from hrms.common.logging_config import setup_logging
from hrms.common.middleware import install_pipeline
from hrms.common.rate_limit import limiter
from hrms.config import Settings, get_settings
from hrms.core_hr.router import departments_router, employees_router
from hrms.database import build_engine, build_session_factory
from hrms.leave.router import router as leave_router
from hrms.performance.router import router as performance_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup, release it on shutdown."""
    settings: Settings = app.state.settings
    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    logger.info("Application started", extra={"environment": settings.ENVIRONMENT})
    yield
    await engine.dispose()
    logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="HR Management System",
        description="Employees, departments, leave and performance reviews",
        version=__version__,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Request pipeline: context → logging → auth → recovery
    install_pipeline(app, public_paths=settings.PUBLIC_PATHS)

    # CORS (outermost: preflights never reach the pipeline)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check(request: Request):
        return {
            "status": "healthy",
            "version": __version__,
            "environment": request.app.state.settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(leave_router, prefix="/api/v1/leaves", tags=["leave"])
    app.include_router(
        performance_router, prefix="/api/v1/performance-reviews", tags=["performance"],
    )

    return app


app = create_app()
