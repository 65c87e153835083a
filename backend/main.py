"""
Lucid - FastAPI Application Entry Point
Local mental fatigue monitor: facial and typing signals fused into one assessment.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.services.monitor_service import get_monitor_service
from app.services.websocket_manager import ws_manager
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("lucid.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  Lucid Fatigue Monitor - Starting")
    logger.info("=" * 60)

    service = get_monitor_service()
    service.subscribe(ws_manager.publish)

    if settings.AUTO_START:
        await service.start()

    logger.info(f"Environment: {settings.LUCID_ENV}")
    logger.info(f"Face source: {settings.FACE_SOURCE}")
    logger.info("Lucid is ready!")
    logger.info("=" * 60)

    try:
        yield
    finally:
        logger.info("Lucid shutting down...")
        await service.stop()
        service.unsubscribe(ws_manager.publish)


# Create FastAPI app
app = FastAPI(
    title="Lucid - Mental Fatigue Monitor",
    description="Real-time analysis of cognitive performance from facial and typing signals",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import monitor, websocket

app.include_router(monitor.router)
app.include_router(websocket.router)


# Health check endpoint
@app.get("/health")
def health_check():
    service = get_monitor_service()
    return {
        "status": "healthy",
        "service": "Lucid",
        "version": "1.0.0",
        "monitoring": service.monitoring,
        "clients": ws_manager.total_connections,
        "face_source": settings.FACE_SOURCE,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "Lucid API",
        "version": "1.0.0",
        "description": "Mental Fatigue Monitor",
        "endpoints": {
            "assessment": "/api/monitor/assessment",
            "session": "/api/monitor/session",
            "snapshots": "/api/monitor/snapshots",
            "start": "/api/monitor/start",
            "stop": "/api/monitor/stop",
            "typing": "/api/monitor/typing",
            "typing_reset": "/api/monitor/typing/reset",
            "assess": "/api/monitor/assess",
            "websocket_monitor": "/ws/monitor",
            "health": "/health",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
