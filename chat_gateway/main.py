"""
Chat Gateway main application.

Accepts chat clients on ``/ws/chat``, relays their messages to every
connected client and keeps the presence list current.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket

from chat_shared.config.settings import settings
from chat_shared.config.logging import setup_logging, gateway_logger as logger
from chat_gateway.connection_manager import ConnectionManager
from chat_gateway.components.endpoints import ChatEndpoint

SERVICE_NAME = "chat-gateway"
VERSION = "0.1.0"


def create_app(manager: ConnectionManager | None = None) -> FastAPI:
    """
    Build the gateway application around a connection manager.

    Args:
        manager: Manager to serve; a new one is created when omitted.
    """
    manager = manager if manager is not None else ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts the heartbeat monitor; on exit stops it and closes every
        session with GOING_AWAY.
        """
        setup_logging()
        for error in settings.validate_runtime():
            logger.warning("Configuration problem", error=error)
        logger.info(
            "Starting Chat Gateway",
            port=settings.chat_port,
            env=settings.environment,
            heartbeat_interval=manager.heartbeat.interval,
        )

        manager.start_heartbeat()

        yield

        logger.info("Shutting down Chat Gateway")
        await manager.shutdown()

    app = FastAPI(
        title="Chat Gateway",
        description="Real-time chat relay with presence",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.manager = manager

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/ws/health")
    def health_check():
        """Basic health check endpoint."""
        try:
            stats = manager.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
        return {
            "status": "shutting_down" if manager.is_shutting_down() else "healthy",
            "service": SERVICE_NAME,
            "version": app.version,
            "environment": settings.environment,
            **stats,
        }

    @app.get("/ws/health/detailed")
    async def detailed_health_check():
        """Health check with per-session details."""
        stats = await manager.get_detailed_stats()
        return {
            "status": "shutting_down" if manager.is_shutting_down() else "healthy",
            "service": SERVICE_NAME,
            "environment": settings.environment,
            "connections": stats,
        }

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/ws/chat")
    async def chat_websocket(websocket: WebSocket):
        """WebSocket endpoint for chat clients. No authentication."""
        endpoint = ChatEndpoint(
            websocket,
            manager,
            max_message_size=settings.ws_max_message_size,
        )
        await endpoint.run()

    return app


# Global connection manager and app for ``uvicorn chat_gateway.main:app``
manager = ConnectionManager()
app = create_app(manager)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chat_gateway.main:app",
        host=settings.chat_host,
        port=settings.chat_port,
        reload=settings.debug,
    )
