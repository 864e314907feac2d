"""IT Cook API: FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import auth, community, fridge, realtime
from config import settings
from database.base import engine, init_db
from monitoring.health import get_health_status
from services.logger import setup_logging
from services.realtime import create_realtime_service
from services.scheduler import start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    await init_db()

    realtime_service = create_realtime_service(settings)
    app.state.realtime = realtime_service
    scheduler = start_scheduler(realtime_service, settings)
    logger.info("🚀 IT Cook API starting...")
    logger.info("🔌 WebSocket support enabled at /api/v1/realtime/ws")

    yield

    # Shutdown
    scheduler.shutdown(wait=False)
    await realtime_service.hub.close()
    await engine.dispose()
    logger.info("👋 IT Cook API shutting down...")


app = FastAPI(
    title="IT Cook API",
    description="API for recipes, fridge tracking, community feed and real-time notifications",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)


# Include routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(fridge.router, prefix="/api/v1/fridge", tags=["Fridge"])
app.include_router(community.router, prefix="/api/v1/community", tags=["Community"])
app.include_router(realtime.router, prefix="/api/v1/realtime", tags=["Realtime"])


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint, API health check."""
    return {
        "status": "ok",
        "service": "IT Cook API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Root"])
async def health_check():
    """Health check endpoint."""
    realtime_service = app.state.realtime
    return get_health_status(realtime_service.registry.count(), realtime_service.hub.metrics)
