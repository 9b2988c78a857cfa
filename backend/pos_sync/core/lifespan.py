"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from pos_sync.models import Base
from pos_sync.seed import seed
from pos_sync.services.events import start_outbox_processor, stop_outbox_processor
from shared.config.logging import api_logger as logger, setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, engine
from shared.infrastructure.events import close_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    # Refuse to start in production with insecure configuration
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting POS sync API", port=settings.api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    if settings.environment != "production":
        with SessionLocal() as db:
            seed(db)

    if settings.outbox_worker_enabled:
        await start_outbox_processor()

    yield

    logger.info("Shutting down POS sync API")

    if settings.outbox_worker_enabled:
        await stop_outbox_processor()

    await close_redis_pool()
    logger.info("Redis connection pool closed")
