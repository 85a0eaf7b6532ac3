"""
Presence Gateway main application.

Clients connect to the WebSocket endpoint, register an identity and receive
presence updates and addressed messages. Read-only HTTP endpoints expose who
is online for collaborating services.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from shared.config.logging import gateway_logger as logger
from shared.config.logging import setup_logging
from shared.config.settings import Settings, settings as default_settings
from presence_gateway import __version__
from presence_gateway.components.endpoints.handlers import RelayEndpoint
from presence_gateway.connection_manager import ConnectionManager


def _server_time() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the liveness probe and sweep tasks. On exit, shuts the manager down:
    refuse new connections, stop liveness, close everything with 1001 and wait
    for teardown.
    """
    manager: ConnectionManager = app.state.manager
    config = manager.config

    setup_logging(config)
    logger.info(
        "Starting Presence Gateway",
        port=config.port,
        env=config.environment,
        ws_path=config.ws_path,
    )
    for error in config.validate_configuration():
        logger.warning("Configuration problem", error=error)

    manager.start()

    yield

    logger.info("Shutting down Presence Gateway")
    await manager.shutdown()


# =============================================================================
# FastAPI Application
# =============================================================================


def create_app(
    config: Settings | None = None,
    manager: ConnectionManager | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Each app owns its ConnectionManager (stored on app.state), so tests can
    create isolated instances.
    """
    config = config or (manager.config if manager else default_settings)
    manager = manager or ConnectionManager(config)

    app = FastAPI(
        title="Presence Gateway",
        description="Real-time presence tracking and message relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health_check(request: Request):
        """Basic health check endpoint."""
        try:
            stats = request.app.state.manager.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
        return {
            "ok": True,
            "serverTime": _server_time(),
            "status": "healthy",
            "service": "presence-gateway",
            "version": request.app.version,
            "environment": config.environment,
            **stats,
        }

    # -------------------------------------------------------------------------
    # Online users
    # -------------------------------------------------------------------------

    @app.get("/online-users")
    def online_users(request: Request):
        """Every registered identity with its last liveness reply."""
        return {
            "success": True,
            "serverTime": _server_time(),
            "users": request.app.state.manager.online_users(),
        }

    @app.get("/online-users/check")
    def check_online_users(
        request: Request,
        usernames: str = Query("", description="Comma-separated identities"),
    ):
        """Online status for each requested identity."""
        identities = [u.strip() for u in usernames.split(",") if u.strip()]
        return {
            "success": True,
            "serverTime": _server_time(),
            "statuses": request.app.state.manager.check_online(identities),
        }

    # -------------------------------------------------------------------------
    # WebSocket Endpoint
    # -------------------------------------------------------------------------

    @app.websocket(config.ws_path)
    async def relay_websocket(websocket: WebSocket):
        """Presence and relay endpoint."""
        endpoint = RelayEndpoint(
            websocket,
            websocket.app.state.manager,
            endpoint_name=config.ws_path,
            max_message_size=config.ws_max_message_size,
        )
        await endpoint.run()

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "presence_gateway.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=True,
        ws_ping_interval=default_settings.ws_transport_ping_interval,
        ws_ping_timeout=default_settings.ws_transport_ping_timeout,
    )
