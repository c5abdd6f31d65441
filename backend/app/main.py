"""
CertGuard - Multi-tenant digital certificate tracker

FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.core.config import get_settings
from backend.app.core.database import async_session_maker, get_db_context
from backend.app.core.errors import register_exception_handlers
from backend.app.core.logging import setup_logging, get_logger
from backend.app.api import (
    admin,
    auth,
    certificates,
    companies,
    dashboard,
    health,
    logs,
    organizations,
    permissions,
    two_factor,
    users,
)
from backend.app.events.bus import EventBus
from backend.app.middleware.rate_limit import RateLimitMiddleware
from backend.app.middleware.trace import TracingMiddleware
from backend.app.services.rate_limiter import SlidingWindowRateLimiter

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


def install_rate_limiters(app: FastAPI) -> None:
    app.state.rate_limiter = SlidingWindowRateLimiter(
        settings.rate_limit_requests, settings.rate_limit_window_seconds
    )
    app.state.sensitive_rate_limiter = SlidingWindowRateLimiter(
        settings.sensitive_rate_limit_requests, settings.rate_limit_window_seconds
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    if settings.uses_default_encryption_key:
        logger.warning(
            "ENCRYPTION_KEY is not set; certificate passwords are encrypted with the "
            "built-in development key. Set ENCRYPTION_KEY before storing real data."
        )

    app.state.event_bus = EventBus(maxsize=settings.audit_queue_maxsize)
    install_rate_limiters(app)

    from backend.app.workers.consumer import start_event_consumer, stop_event_consumer
    consumer_task = await start_event_consumer(app.state.event_bus, async_session_maker)

    from backend.app.services.auth_service import seed_system_admin
    try:
        async with get_db_context() as db:
            await seed_system_admin(db)
    except Exception as e:
        logger.error(f"Admin seed failed: {e}", exc_info=True)

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await stop_event_consumer(app.state.event_bus, consumer_task)


app = FastAPI(
    title=settings.app_name,
    description="Digital certificate (A1/A3) tracking with per-company permissions and audit trail",
    version=settings.app_version,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Add Middleware (last added runs first)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(TracingMiddleware)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Correlation-ID"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix=settings.api_prefix, tags=["Authentication"])
app.include_router(two_factor.router, prefix=settings.api_prefix, tags=["Two-Factor"])
app.include_router(organizations.router, prefix=settings.api_prefix, tags=["Organizations"])
app.include_router(companies.router, prefix=settings.api_prefix, tags=["Companies"])
app.include_router(certificates.router, prefix=settings.api_prefix, tags=["Certificates"])
app.include_router(users.router, prefix=settings.api_prefix, tags=["Users"])
app.include_router(permissions.router, prefix=settings.api_prefix, tags=["Permissions"])
app.include_router(logs.router, prefix=settings.api_prefix, tags=["Audit Logs"])
app.include_router(dashboard.router, prefix=settings.api_prefix, tags=["Dashboard"])
app.include_router(admin.router, prefix=settings.api_prefix, tags=["Administration"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Digital certificate tracker",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=settings.port)
