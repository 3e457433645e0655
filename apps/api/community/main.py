"""
FastAPI application for the community platform
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from .config import settings
from .database.session import engine
from .errors import register_error_handlers
from .health import health_router
from .logging_config import setup_logging
from .middleware.security import setup_security_middleware
from .routers import (
    auth, courses, events, forums, gamification, messages, notifications, profiles,
    projects, recordings, resources, settings as settings_routes, subscriptions, tags,
)
from .storage.objects import close_storage

# Setup logging
logger = setup_logging(__name__)

ROUTERS = (
    auth.router,
    profiles.router,
    courses.router,
    events.router,
    forums.router,
    projects.router,
    messages.router,
    recordings.router,
    resources.router,
    tags.router,
    notifications.router,
    gamification.router,
    subscriptions.router,
    settings_routes.router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}")

    # Test database connection
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")

    yield

    # Cleanup
    logger.info(f"Shutting down {settings.APP_NAME}")
    await close_storage()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Membership community API: courses, forums, projects, messaging and more",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    setup_security_middleware(app)

    app.include_router(health_router)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/")
    async def read_root():
        return {"message": settings.APP_NAME, "status": "running", "docs": "/docs"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
