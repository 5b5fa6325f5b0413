"""Ops Portal: leave approval & entitlement FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ops_portal.common.exceptions import register_exception_handlers
from ops_portal.common.rate_limit import limiter
from ops_portal.config import settings
from ops_portal.database import engine
from ops_portal.holidays.router import router as holidays_router
from ops_portal.leave.router import router as leave_router
from ops_portal.profiles.router import router as profiles_router
from ops_portal.replace_day.router import router as replace_day_router
from ops_portal.swap.router import router as swap_router
from ops_portal.workflow.router import router as approvals_router

# Register every table on Base.metadata
import ops_portal.common.audit  # noqa: F401
import ops_portal.directory.models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Ops Portal starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Ops Portal",
        description="Leave approval & entitlement engine",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807), rate-limit and stale-version included
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(holidays_router, prefix="/api/v1/holidays", tags=["holidays"])
    app.include_router(profiles_router, prefix="/api/v1/profiles", tags=["profiles"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(swap_router, prefix="/api/v1/swaps", tags=["swaps"])
    app.include_router(replace_day_router, prefix="/api/v1/replace-days", tags=["replace-days"])
    app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["approvals"])

    return app


app = create_app()
