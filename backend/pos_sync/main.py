"""
POS sync API main application.
Entry point for the FastAPI server.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from pos_sync.core import configure_cors, lifespan, register_middlewares
from pos_sync.routers.inventory import router as inventory_router
from pos_sync.routers.public import router as health_router
from pos_sync.routers.sync import router as sync_router
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler


app = FastAPI(
    title="POS Sync API",
    description="Offline-first synchronization for point-of-sale terminals",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middlewares (last registered runs first)
register_middlewares(app)
configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)

# Routers
app.include_router(health_router)
app.include_router(sync_router)
app.include_router(inventory_router)
