"""
# Blog Platform API

FastAPI application entry point: lifespan orchestration, middleware, exception handlers,
routers, the health endpoint and Prometheus instrumentation at `/metrics`.

**Startup:**
1.  Connect to MongoDB and ensure indexes (the unique username and subscriber-email
    indexes are required; startup fails without them).
2.  Start the trending category refresh loop.

**Shutdown:**
1.  Cancel background tasks and wait briefly for them to finish.
2.  Disconnect from MongoDB.

Every route is served under `settings.API_PREFIX` (default `/api`).
"""

import asyncio
from contextlib import asynccontextmanager
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from blog_platform import __version__
from blog_platform.config import settings
from blog_platform.database import db_manager
from blog_platform.errors import register_exception_handlers
from blog_platform.managers.logging_manager import get_logger
from blog_platform.routes.ai_chat import router as ai_chat_router
from blog_platform.routes.auth.routes import router as auth_router
from blog_platform.routes.blogger import router as blogger_router
from blog_platform.routes.messaging import router as messaging_router
from blog_platform.routes.notification import router as notification_router
from blog_platform.routes.user_post import router as user_post_router
from blog_platform.services.trending_cache import trending_cache
from blog_platform.utils.logging_utils import (
    RequestLoggingMiddleware,
    log_application_lifecycle,
    log_error_with_context,
)

logger = get_logger(prefix="[Main]")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Args:
        _app (FastAPI): The FastAPI application instance.

    Yields:
        None: Control is yielded to the application to start serving requests.
    """
    startup_start_time = time.time()
    log_application_lifecycle(
        "startup_initiated",
        {
            "app_name": "Blog Platform API",
            "version": __version__,
            "environment": "production" if settings.is_production else "development",
            "debug_mode": settings.DEBUG,
        },
    )

    try:
        db_connect_start = time.time()
        logger.info("Initiating database connection...")
        await db_manager.connect()
        log_application_lifecycle(
            "database_connected",
            {
                "connection_duration": f"{time.time() - db_connect_start:.3f}s",
                "database_name": settings.MONGODB_DATABASE,
                "connection_url": settings.MONGODB_URL.split("@")[-1],
            },
        )

        indexes_start = time.time()
        logger.info("Creating/verifying database indexes...")
        await db_manager.create_indexes()
        log_application_lifecycle("database_indexes_ready", {"indexes_duration": f"{time.time() - indexes_start:.3f}s"})
    except Exception as e:
        log_error_with_context(e, {"operation": "startup_database"})
        logger.error("Database initialization failed, aborting startup: %s", e)
        raise

    background_tasks = {"trending_refresh": asyncio.create_task(trending_cache.run_periodic_refresh())}
    log_application_lifecycle("background_tasks_started", {"tasks": list(background_tasks)})

    total_startup_duration = time.time() - startup_start_time
    log_application_lifecycle(
        "startup_completed",
        {
            "total_startup_duration": f"{total_startup_duration:.3f}s",
            "database_ready": True,
            "background_tasks_count": len(background_tasks),
        },
    )
    logger.info("FastAPI application startup completed in %.3fs", total_startup_duration)

    yield

    shutdown_start_time = time.time()
    log_application_lifecycle("shutdown_initiated", {"active_background_tasks": len(background_tasks)})

    failed_cleanups = []
    logger.info("Cancelling background tasks...")
    for task_name, task in background_tasks.items():
        task.cancel()
        logger.info("Cancelled background task: %s", task_name)

    for task_name, task in background_tasks.items():
        try:
            await asyncio.wait_for(task, timeout=5.0)
        except asyncio.CancelledError:
            logger.info("Background task %s cancelled successfully", task_name)
        except asyncio.TimeoutError:
            logger.warning("Background task %s cancellation timed out", task_name)
            failed_cleanups.append({"task": task_name, "error": "cancellation_timeout"})

    try:
        logger.info("Disconnecting from database...")
        await db_manager.disconnect()
        log_application_lifecycle("database_disconnected", {})
    except Exception as e:
        log_error_with_context(e, {"operation": "database_disconnection"})

    log_application_lifecycle(
        "shutdown_completed",
        {
            "total_shutdown_duration": f"{time.time() - shutdown_start_time:.3f}s",
            "failed_cleanups": failed_cleanups,
        },
    )


app = FastAPI(
    title="Blog Platform API",
    description="Blog publishing backend with an admin moderation workflow",
    version=__version__,
    lifespan=lifespan,
)

register_exception_handlers(app)

if settings.CORS_ENABLED:
    logger.info("Configuring CORS with origins: %s", settings.cors_origins_list)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        max_age=3600,
    )

app.add_middleware(RequestLoggingMiddleware)
log_application_lifecycle(
    "middleware_configured",
    {"middleware": ["CORSMiddleware", "RequestLoggingMiddleware"], "cors_origins": settings.cors_origins_list},
)

routers_config = [
    ("auth", auth_router, "Registration, login and profile endpoints"),
    ("blogger", blogger_router, "Post authoring, moderation and draft endpoints"),
    ("userPost", user_post_router, "Public reading, engagement and subscription endpoints"),
    ("notification", notification_router, "Admin moderation feed endpoints"),
    ("chat", ai_chat_router, "AI chat session endpoints"),
    ("messaging", messaging_router, "Message feed and file upload endpoints"),
]

logger.info("Including API routers...")
for router_name, router, description in routers_config:
    app.include_router(router, prefix=settings.API_PREFIX)
    logger.info("Successfully included %s router: %s", router_name, description)

log_application_lifecycle(
    "routers_configured",
    {"total_routers": len(routers_config), "routers": [name for name, _, _ in routers_config]},
)

logger.info("Setting up Prometheus metrics instrumentation...")
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=False,
    should_instrument_requests_inprogress=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
log_application_lifecycle(
    "prometheus_configured",
    {"metrics_endpoint": "/metrics", "group_status_codes": True, "track_requests_in_progress": True},
)


@app.get(f"{settings.API_PREFIX}/health", tags=["health"])
async def health():
    """Liveness and database connectivity. Returns 503 when the database is unreachable."""
    database_ok = await db_manager.health_check()
    body = {"status": "healthy" if database_ok else "unhealthy", "database": database_ok, "version": __version__}
    return JSONResponse(status_code=200 if database_ok else 503, content=body)


def run():
    uvicorn.run(
        "blog_platform.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info"
    )


if __name__ == "__main__":
    run()
