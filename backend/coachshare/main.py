import logging
import warnings
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import create_async_engine

from coachshare.config import settings
from coachshare.core.errors import register_error_handlers
from coachshare.core.logging import setup_logging
from coachshare.core.middleware import AccessLogMiddleware, RequestIDMiddleware
from coachshare.routers import (
    achievements, admin, auth, notifications, pace, realtime, regimens, user,
    workout_logs,
)

# Validate session secret in production
if settings.is_production and settings.secret_key == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be set to a secure random value in production. "
        "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
    )

if not settings.is_production and settings.secret_key == "change-me-in-production":
    warnings.warn("SECRET_KEY is using default value. Set it for production.", stacklevel=1)

logger = logging.getLogger("coachshare")


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Configure logging and create database tables on startup."""
    setup_logging()
    from coachshare.models.base import Base
    # Import all models so Base.metadata is populated
    import coachshare.models  # noqa: F401

    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Database tables verified/created")
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Middleware: last added is outermost, so request IDs exist before access logging
app.add_middleware(AccessLogMiddleware)
app.add_middleware(RequestIDMiddleware)

# Error handlers
register_error_handlers(app)

# Routers
app.include_router(auth.router)
app.include_router(user.router)
app.include_router(regimens.router)
app.include_router(workout_logs.router)
app.include_router(notifications.router)
app.include_router(achievements.router)
app.include_router(pace.router)
app.include_router(admin.router)
app.include_router(realtime.router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.app_name, "version": "0.1.0"}
