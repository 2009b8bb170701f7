"""
Signaling Relay Backend - Main Application

This is the entry point for the FastAPI application.
It handles:
- The WebSocket signaling endpoint (register, offer/answer/ICE relay)
- Read-only REST endpoints for roster and call inspection
- Transport-level keepalive and cleanup of dead connections
"""
from contextlib import asynccontextmanager
import logging
from datetime import datetime, UTC

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay.api import router as api_router
from relay.api.signaling import status_router
from relay.api.websocket import router as ws_router
from relay.config.settings import settings
from relay.services.metrics import start_metrics_server
from relay.services.signaling import LivenessMonitor, SignalingRelay

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Owns the relay: it is built here, handed to routes through app.state,
    and all of its state is dropped on shutdown.
    """
    # === STARTUP ===
    logger.info("🚀 Starting Signaling Relay...")

    relay = SignalingRelay()
    monitor = LivenessMonitor(relay, interval=settings.HEARTBEAT_INTERVAL)
    app.state.relay = relay
    app.state.liveness_monitor = monitor

    monitor.start()
    logger.info("✅ Liveness monitor started")

    if settings.METRICS_ENABLED:
        start_metrics_server(port=settings.METRICS_PORT)

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("🛑 Shutting down...")
    await monitor.stop()
    for conn in relay.connections():
        await conn.close(code=1001, reason="Server shutting down")


app = FastAPI(
    title="Signaling Relay",
    description="WebRTC offer/answer/ICE signaling relay",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST API routes
app.include_router(api_router, prefix="/api")
app.include_router(status_router)

# Include WebSocket routes
app.include_router(ws_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Signaling Relay",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    relay: SignalingRelay = app.state.relay
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "connected_users": len(relay.list_clients()),
        "active_calls": relay.get_active_call_count(),
        "total_connections": relay.get_total_connections()
    }


def server_options() -> dict:
    """
    Keyword arguments for uvicorn.run.

    The protocol layer pings every socket each HEARTBEAT_INTERVAL seconds and
    closes any that has not answered within HEARTBEAT_TIMEOUT. Browsers answer
    these control frames on their own, so idle but healthy clients stay up.
    """
    return {
        "host": settings.API_HOST,
        "port": settings.API_PORT,
        "reload": settings.DEBUG,
        "ws_ping_interval": settings.HEARTBEAT_INTERVAL,
        "ws_ping_timeout": settings.HEARTBEAT_TIMEOUT,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("relay.main:app", **server_options())
