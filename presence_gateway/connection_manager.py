"""
WebSocket Connection Manager.

Thin orchestrator that composes the gateway components:
- ConnectionRegistry: who is online
- ConnectionLifecycle: accept, register, teardown
- PresenceBroadcaster: presence fan-out
- MessageRouter: addressed delivery
- LivenessMonitor: probe and sweep tasks
- ConnectionStats: statistics aggregation

The FastAPI app and the endpoints talk to this class only.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from shared.config.settings import Settings, settings as default_settings
from presence_gateway.components.connection.registry import ConnectionRecord, ConnectionRegistry
from presence_gateway.components.events.router import MessageRouter, RoutingResult
from presence_gateway.components.metrics.collector import MetricsCollector
from shared.config.logging import get_logger
from presence_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionStats,
    DisconnectReason,
    LivenessMonitor,
    PresenceBroadcaster,
)

if TYPE_CHECKING:
    from fastapi import WebSocket
    from presence_gateway.components.connection.handle import ConnectionHandle
    from presence_gateway.components.events.frames import DeliveryFrame

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages presence and relay for every WebSocket connection.

    Configuration from settings:
    - ws_probe_interval / ws_sweep_interval / ws_stale_threshold: liveness
    - ws_broadcast_batch_size: parallel sends per fan-out batch
    - ws_send_timeout: seconds before a single write is abandoned
    - ws_shutdown_timeout: bound on waiting for teardown at shutdown
    - channel_namespace / channel_kind: addressed channel tags
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or default_settings

        self.metrics = MetricsCollector()
        self.registry = ConnectionRegistry()

        self._broadcaster = PresenceBroadcaster(
            registry=self.registry,
            metrics=self.metrics,
            batch_size=self.config.ws_broadcast_batch_size,
        )
        self._lifecycle = ConnectionLifecycle(
            registry=self.registry,
            broadcaster=self._broadcaster,
            metrics=self.metrics,
            send_timeout=self.config.ws_send_timeout,
        )
        self._router = MessageRouter(
            registry=self.registry,
            evict=self._lifecycle.evict,
            metrics=self.metrics,
            namespace=self.config.channel_namespace,
            kind=self.config.channel_kind,
        )
        self._liveness = LivenessMonitor(
            registry=self.registry,
            broadcaster=self._broadcaster,
            evict=self._lifecycle.expire,
            metrics=self.metrics,
            probe_interval=self.config.ws_probe_interval,
            sweep_interval=self.config.ws_sweep_interval,
            stale_threshold=self.config.ws_stale_threshold,
        )
        self._stats = ConnectionStats(
            registry=self.registry,
            metrics=self.metrics,
            get_active_connections=lambda: self._lifecycle.active_count,
            is_liveness_running=lambda: self._liveness.is_running,
        )

    @property
    def is_shutting_down(self) -> bool:
        return self._lifecycle.is_shutdown

    @property
    def liveness(self) -> LivenessMonitor:
        return self._liveness

    # =========================================================================
    # Connection lifecycle (delegated to ConnectionLifecycle)
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> ConnectionHandle:
        return await self._lifecycle.connect(websocket)

    async def disconnect(
        self,
        handle: ConnectionHandle,
        reason: DisconnectReason = DisconnectReason.CLIENT_CLOSED,
    ) -> bool:
        return await self._lifecycle.disconnect(handle, reason)

    async def register(self, handle: ConnectionHandle, identity: str) -> ConnectionRecord | None:
        return await self._lifecycle.register(handle, identity)

    async def query_online(self, handle: ConnectionHandle, identity: str) -> bool:
        return await self._lifecycle.query_online(handle, identity)

    def record_liveness(self, handle: ConnectionHandle) -> bool:
        return self._lifecycle.record_liveness(handle)

    async def answer_ping(self, handle: ConnectionHandle) -> None:
        await self._lifecycle.answer_ping(handle)

    # =========================================================================
    # Routing (delegated to MessageRouter)
    # =========================================================================

    async def route(self, frame: DeliveryFrame) -> RoutingResult:
        return await self._router.handle_delivery(frame)

    # =========================================================================
    # Startup / shutdown
    # =========================================================================

    def start(self) -> None:
        """Start background liveness tasks. Call from the app lifespan."""
        self._liveness.start()

    async def shutdown(self) -> None:
        """
        Graceful shutdown, in order:
        1. Refuse new connections
        2. Stop the liveness tasks
        3. Close every connection with 1001 and run its teardown
        4. Wait, bounded by ws_shutdown_timeout, for in-flight teardowns
        """
        logger.info("Shutting down connection manager")
        self._lifecycle.begin_shutdown()
        await self._liveness.stop()

        closed = await self._lifecycle.close_all(DisconnectReason.SHUTDOWN)
        drained = await self._lifecycle.wait_idle(self.config.ws_shutdown_timeout)

        logger.info(
            "Connection manager shutdown complete",
            closed=closed,
            drained=drained,
        )

    # =========================================================================
    # Read-only views for the HTTP endpoints
    # =========================================================================

    def online_users(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.registry.records()]

    def check_online(self, identities: list[str]) -> dict[str, bool]:
        return {identity: self.registry.is_online(identity) for identity in identities}

    def get_stats(self) -> dict[str, Any]:
        return self._stats.get_stats()
