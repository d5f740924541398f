from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from starlette.responses import Response, JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from valet_quotes.api import quotes, history, analytics
from valet_quotes.core.config import settings
from valet_quotes.core.exceptions import (
    UnsupportedServiceType,
    UnsupportedVehicleCategory,
    UnsupportedDurationBand,
    ConfigurationError,
)
from valet_quotes.core.redis import init_redis, close_redis, get_redis
from valet_quotes.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
from valet_quotes.db.session import engine
from valet_quotes.models.base import Base
import time
import logging

logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            request_count.labels(
                method=request.method,
                endpoint=request.url.path,
                status=500
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(time.time() - start_time)
            raise

        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        request_duration.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(time.time() - start_time)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Application starting...")

    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        redis_connected.set(0)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        db_connected.set(1)
        app.state.db_ready = True
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        db_connected.set(0)
        app.state.db_ready = False

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(quotes.router)
app.include_router(history.router)
app.include_router(analytics.router)


@app.exception_handler(UnsupportedServiceType)
@app.exception_handler(UnsupportedVehicleCategory)
@app.exception_handler(UnsupportedDurationBand)
async def unsupported_input_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Pricing configuration error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Pricing configuration error"})


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    redis = get_redis()
    redis_healthy = redis is not None

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if redis_healthy else "disconnected",
            "database": "connected" if getattr(app.state, "db_ready", False) else "disconnected"
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    redis = get_redis()

    if redis is None:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "reason": "Redis not available"}
        )

    return {
        "ready": True,
        "service": settings.API_TITLE
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
