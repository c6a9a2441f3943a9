import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from vendorhub.api.v1 import group_orders, invitations, orders, products, wallet, ws
from vendorhub.core.config import settings
from vendorhub.core.database import async_session_maker, engine
from vendorhub.core.exceptions import MarketplaceError
from vendorhub.core.redis import close_redis, ping_redis
from vendorhub.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from vendorhub.middleware.rate_limit import RateLimitMiddleware
from vendorhub.services.notification_service import notifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup
    logger.info("Starting application...")

    yield

    # Shutdown
    logger.info("Flushing pending notifications")
    await notifier.drain()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="VendorHub Marketplace",
    version="1.0.0",
    description="Orders, escrow wallet and group buying for street-food vendors and suppliers",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# Rate Limiting Middleware (must be before CORS)
app.add_middleware(RateLimitMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render domain errors as ``{"detail": {"code", "message"}}``."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


# Include API routers
app.include_router(products.router, prefix="/api/v1/products", tags=["products"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(wallet.router, prefix="/api/v1/wallet", tags=["wallet"])
app.include_router(group_orders.router, prefix="/api/v1/group-orders", tags=["group-orders"])
app.include_router(invitations.router, prefix="/api/v1/invitations", tags=["invitations"])

# WebSocket router (no prefix, endpoint is /ws/notifications)
app.include_router(ws.router, tags=["websocket"])


@app.get("/health")
async def health_check():
    """Health check endpoint reporting database and Redis reachability."""
    database_ok = True
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        database_ok = False

    redis_ok = await ping_redis()
    healthy = database_ok and redis_ok
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "database": "ok" if database_ok else "unavailable",
            "redis": "ok" if redis_ok else "unavailable",
        },
    )


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
