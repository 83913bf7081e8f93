"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes (Stripe webhook, dashboard, phone numbers)
- No business logic should be written here
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.services.vapi_client import get_vapi_client
from app.api import assistants, invoices, payment_methods, phone_numbers, profile, stats, subscription, webhook

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Opens the MongoDB pool and ensures indexes before serving traffic.
    """
    logger.info("🚀 Starting VoiceDesk API...")

    try:
        validate_settings()
        logger.info("✅ Configuration validated")

        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        await create_indexes()
        logger.info("✅ Database indexes ensured")

        if not await check_database_health():
            logger.warning("⚠️ Database health check failed during startup")

        logger.info(f"🎉 VoiceDesk API started (environment={settings.ENVIRONMENT}, debug={settings.DEBUG})")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("🛑 Shutting down VoiceDesk API...")
    try:
        await close_mongo_connection()
        logger.info("👋 MongoDB connection closed")
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="VoiceDesk API",
    description="Dashboard backend for AI voice assistants: billing, invoices, assistants and phone numbers",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


add_exception_handlers(app)

app.include_router(webhook.router, prefix="/api", tags=["Webhook"])
app.include_router(profile.router, prefix="/api/dashboard", tags=["Profile"])
app.include_router(stats.router, prefix="/api/dashboard", tags=["Stats"])
app.include_router(invoices.router, prefix="/api/dashboard", tags=["Invoices"])
app.include_router(payment_methods.router, prefix="/api/dashboard", tags=["Payment Methods"])
app.include_router(subscription.router, prefix="/api/dashboard", tags=["Subscription"])
app.include_router(assistants.router, prefix="/api/dashboard", tags=["Assistants"])
app.include_router(phone_numbers.router, prefix="/api/phone-numbers", tags=["Phone Numbers"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "VoiceDesk API",
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Checks database connectivity.
    Returns 503 when the database is not reachable.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    try:
        db_healthy = await check_database_health()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
        if not db_healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    health_status["checks"]["stripe"] = "configured" if settings.STRIPE_SECRET_KEY else "not_configured"
    health_status["checks"]["vapi"] = "configured" if get_vapi_client().is_configured() else "not_configured"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


@app.get("/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness probe - indicates if app is ready to receive traffic.
    """
    try:
        if await check_database_health():
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


@app.get("/live", tags=["Health"])
async def liveness_check():
    """Liveness probe."""
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
