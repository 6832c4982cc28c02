"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Builds the service container and dispatcher on startup
- Registers the webhook (or starts long polling)
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import sys
import time

from app.core.config import Settings, settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.exceptions import TransportError
from app.core.logging import setup_logging, get_logger
from app.flow.dispatcher import build_dispatcher
from app.services.container import create_container
from app.services.polling_service import run_polling
from app.services.session_service import run_session_sweeper
from app.services.telegram_service import Transport
from app.api import webhook

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


def create_app(cfg: Settings = settings, transport: Optional[Transport] = None) -> FastAPI:
    """
    Builds the FastAPI app. transport overrides the Bot API client (tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        # Startup
        logger.info("🚀 Starting Campus Marketplace bot...")

        try:
            logger.info("Validating configuration...")
            validate_settings(cfg)
            logger.info("✅ Configuration validated")

            container = await create_container(cfg, transport)
            dispatcher = build_dispatcher(container)
            app.state.container = container
            app.state.dispatcher = dispatcher
            app.state.polling_task = None
            app.state.sweeper_task = None

            if cfg.WEBHOOK_URL:
                url = f"{cfg.WEBHOOK_URL.rstrip('/')}{cfg.API_PREFIX}/webhook"
                try:
                    await container.transport.set_webhook(url, cfg.WEBHOOK_SECRET)
                except TransportError as e:
                    logger.error(f"⚠️ Webhook registration failed: {e.message}")
            elif cfg.USE_POLLING:
                app.state.polling_task = asyncio.create_task(
                    run_polling(container.transport, dispatcher)
                )

            if cfg.SESSION_TIMEOUT_MINUTES:
                app.state.sweeper_task = asyncio.create_task(run_session_sweeper(container.sessions))

            logger.info("🎉 Campus Marketplace bot started successfully!")
            logger.info(f"Environment: {cfg.ENVIRONMENT}")
            logger.info(f"Storage: {cfg.STORAGE_BACKEND}, channel: {cfg.CHANNEL_USERNAME}")

        except Exception as e:
            logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
            raise

        yield  # Application runs here

        # Shutdown
        logger.info("🛑 Shutting down Campus Marketplace bot...")

        try:
            for task in (app.state.polling_task, app.state.sweeper_task):
                if task is None:
                    continue
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            await app.state.container.close()
            logger.info("👋 Campus Marketplace bot shut down successfully")

        except Exception as e:
            logger.error(f"Error during shutdown: {str(e)}", exc_info=True)

    app = FastAPI(
        title="Campus Marketplace Bot",
        description="Telegram marketplace bot with admin moderation",
        version=VERSION,
        lifespan=lifespan,
        debug=cfg.DEBUG,
        docs_url="/docs" if cfg.is_development else None,  # Disable docs in production
        redoc_url="/redoc" if cfg.is_development else None,
    )
    app.state.settings = cfg

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to all responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        # Log slow requests
        if process_time > 5.0:  # More than 5 seconds
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={"process_time": process_time}
            )

        return response

    add_exception_handlers(app)

    # Register API routes
    app.include_router(webhook.router, prefix=cfg.API_PREFIX, tags=["Webhook"])

    # Root endpoint
    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint - basic info."""
        return {
            "name": "Campus Marketplace Bot",
            "version": VERSION,
            "description": "Telegram marketplace bot with admin moderation",
            "status": "running",
            "environment": cfg.ENVIRONMENT,
            "mode": "webhook" if cfg.WEBHOOK_URL else ("polling" if cfg.USE_POLLING else "idle"),
        }

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Checks storage connectivity and session load.
        """
        container = request.app.state.container
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "environment": cfg.ENVIRONMENT,
            "version": VERSION,
            "checks": {
                "storage": cfg.STORAGE_BACKEND,
                "active_sessions": len(container.sessions),
            }
        }

        try:
            db_healthy = await container.storage_healthy()
            health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
            if not db_healthy:
                health_status["status"] = "unhealthy"
        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            health_status["checks"]["database"] = "unhealthy"
            health_status["status"] = "unhealthy"

        status_code = 200 if health_status["status"] == "healthy" else 503
        return JSONResponse(content=health_status, status_code=status_code)

    # Readiness probe (for Kubernetes/orchestration)
    @app.get("/ready", tags=["Health"])
    async def readiness_check(request: Request):
        """
        Readiness probe - indicates if app is ready to receive traffic.
        """
        try:
            if await request.app.state.container.storage_healthy():
                return {"status": "ready"}
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "database_unavailable"}
            )
        except Exception as e:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": str(e)}
            )

    # Liveness probe (for Kubernetes/orchestration)
    @app.get("/live", tags=["Health"])
    async def liveness_check():
        """
        Liveness probe - indicates if app is alive.
        """
        return {"status": "alive"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    try:
        validate_settings()
    except ValueError as e:
        logger.critical(str(e))
        sys.exit(1)

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development and not settings.USE_POLLING,
        log_level=settings.LOG_LEVEL.lower()
    )
