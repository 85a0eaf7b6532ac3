"""
Connection Lifecycle Management.

Owns the per-connection state transitions and the actions that change who is
online: accept, register, online queries, liveness replies and teardown.
Every way a connection can end (peer close, transport error, liveness
eviction, router eviction, shutdown) goes through `disconnect`, which runs
exactly once per connection.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from presence_gateway.components.connection.handle import ConnectionHandle
from presence_gateway.components.core.constants import (
    PresenceStatus,
    WSCloseCode,
    WSConstants,
)
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.core.errors import ConnectionNotOpen
from presence_gateway.components.events.frames import (
    online_response_frame,
    pong_frame,
    registered_frame,
)
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from presence_gateway.components.connection.registry import (
        ConnectionRecord,
        ConnectionRegistry,
    )
    from presence_gateway.components.metrics.collector import MetricsCollector
    from presence_gateway.core.connection.broadcaster import PresenceBroadcaster

logger = get_logger(__name__)


class DisconnectReason(str, Enum):
    """Why a connection was torn down."""

    CLIENT_CLOSED = "client_closed"
    TRANSPORT_ERROR = "transport_error"
    PROBE_TIMEOUT = "probe_timeout"
    DESTINATION_UNREACHABLE = "destination_unreachable"
    SHUTDOWN = "shutdown"


class ConnectionLifecycle:
    """
    Manages the lifecycle of WebSocket connections.

    Responsibilities:
    - Accept new connections (refused once shutdown starts)
    - Register identities and announce them online
    - Tear connections down once, announcing offline only when the
      connection still owned its identity
    - Track in-flight teardowns so shutdown can wait for them
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: PresenceBroadcaster,
        metrics: MetricsCollector | None = None,
        accept_timeout: float = WSConstants.ACCEPT_TIMEOUT,
        send_timeout: float = WSConstants.SEND_TIMEOUT,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._accept_timeout = accept_timeout
        self._send_timeout = send_timeout
        self._shutdown = False
        # Handles accepted and not yet fully torn down
        self._active: set[ConnectionHandle] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_shutdown(self) -> bool:
        """Whether shutdown has been initiated."""
        return self._shutdown

    @property
    def active_count(self) -> int:
        return len(self._active)

    def begin_shutdown(self) -> None:
        """Refuse new connections from now on."""
        self._shutdown = True

    # =========================================================================
    # Accept
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> ConnectionHandle:
        """
        Accept a WebSocket and start tracking it.

        Raises:
            ConnectionError: If the server is shutting down or the handshake
                fails.
        """
        if self._shutdown:
            if self._metrics:
                self._metrics.increment_rejected_shutdown()
            raise ConnectionError("Server is shutting down")

        handle = ConnectionHandle(websocket, send_timeout=self._send_timeout)
        try:
            await handle.accept(timeout=self._accept_timeout)
        except asyncio.TimeoutError:
            if self._metrics:
                self._metrics.increment_accept_timeouts()
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            raise ConnectionError(f"WebSocket accept failed: {e}") from e

        self._registry.attach(handle)
        self._active.add(handle)
        self._idle.clear()
        if self._metrics:
            self._metrics.increment_accepted()

        logger.info("Client connected", connection=handle.connection_id)
        return handle

    # =========================================================================
    # Actions while OPEN
    # =========================================================================

    async def register(self, handle: ConnectionHandle, identity: str) -> ConnectionRecord | None:
        """
        Register `identity` on `handle`, confirm it to the client and
        announce it online to everybody.

        Returns:
            The new record, or None if the connection was no longer open.
        """
        try:
            result = self._registry.register(identity, handle)
        except ConnectionNotOpen as e:
            logger.warning(
                "Registration on closed connection ignored",
                identity=sanitize_log_data(identity),
                connection=e.connection_id,
            )
            if self._metrics:
                self._metrics.increment_registrations_rejected()
            return None

        if self._metrics:
            self._metrics.increment_registrations(superseded=result.superseded is not None)

        if result.superseded is not None:
            logger.info(
                "Identity registered again from another connection",
                identity=sanitize_log_data(identity),
                previous_connection=result.superseded.handle.connection_id,
            )

        logger.info(
            "User registered",
            identity=sanitize_log_data(identity),
            session_id=result.record.session_id,
        )

        await handle.send_json(
            registered_frame(identity, result.record.session_id, self._registry.snapshot())
        )

        if result.replaced_identity is not None:
            await self._broadcaster.announce(result.replaced_identity, PresenceStatus.OFFLINE)
        await self._broadcaster.announce(identity, PresenceStatus.ONLINE)
        return result.record

    async def query_online(self, handle: ConnectionHandle, identity: str) -> bool:
        """Answer an is_online_request on the asking connection."""
        online = self._registry.is_online(identity)
        await handle.send_json(online_response_frame(identity, online))
        return online

    def record_liveness(self, handle: ConnectionHandle) -> bool:
        """Refresh last_seen for the identity this handle currently owns."""
        identity = self._registry.identity_of(handle)
        if identity is None:
            return False
        return self._registry.touch(identity, handle)

    async def answer_ping(self, handle: ConnectionHandle) -> None:
        """Client heartbeat: reply with a pong and count it as liveness."""
        self.record_liveness(handle)
        await handle.send_json(pong_frame())

    # =========================================================================
    # Teardown
    # =========================================================================

    async def disconnect(
        self,
        handle: ConnectionHandle,
        reason: DisconnectReason = DisconnectReason.CLIENT_CLOSED,
        close_code: int | None = None,
    ) -> bool:
        """
        Tear a connection down.

        Idempotent per handle: only the first call closes, detaches and
        unregisters. Later calls return False immediately.

        Args:
            handle: Connection to tear down.
            reason: Recorded in logs and metrics.
            close_code: If given, a close frame with this code is sent first.
                Omit it when the peer already closed.

        Returns:
            True if this call performed the teardown.
        """
        if not handle.begin_closing():
            return False

        try:
            if close_code is not None:
                await handle.close(close_code, reason.value)

            self._registry.detach(handle)
            result = self._registry.unregister(handle)

            if self._metrics:
                self._metrics.increment_disconnects(reason.value)

            if result.was_current:
                logger.info(
                    "User disconnected",
                    identity=sanitize_log_data(result.identity),
                    reason=reason.value,
                )
                await self._broadcaster.announce(result.identity, PresenceStatus.OFFLINE)
            elif result.identity is not None:
                logger.debug(
                    "Superseded connection closed, identity still online elsewhere",
                    identity=sanitize_log_data(result.identity),
                    reason=reason.value,
                )
            else:
                logger.debug(
                    "Unregistered connection closed",
                    connection=handle.connection_id,
                    reason=reason.value,
                )
        finally:
            handle.mark_closed()
            self._active.discard(handle)
            if not self._active:
                self._idle.set()

        return True

    async def evict(self, handle: ConnectionHandle) -> bool:
        """Force-close a registered connection that can no longer be written."""
        return await self._force_close(handle, DisconnectReason.DESTINATION_UNREACHABLE)

    async def expire(self, handle: ConnectionHandle) -> bool:
        """Force-close a connection that stopped answering liveness probes."""
        return await self._force_close(handle, DisconnectReason.PROBE_TIMEOUT)

    async def _force_close(self, handle: ConnectionHandle, reason: DisconnectReason) -> bool:
        # Only the call that performs the teardown counts as an eviction
        evicted = await self.disconnect(handle, reason, WSCloseCode.GOING_AWAY)
        if evicted and self._metrics:
            self._metrics.increment_evictions()
        return evicted

    async def close_all(self, reason: DisconnectReason = DisconnectReason.SHUTDOWN) -> int:
        """
        Close every tracked connection with 1001 and run its teardown.

        Returns:
            Number of teardowns this call performed.
        """
        handles = list(self._active)
        if not handles:
            return 0

        results = await asyncio.gather(
            *[self.disconnect(h, reason, WSCloseCode.GOING_AWAY) for h in handles],
            return_exceptions=True,
        )
        closed = 0
        for handle, result in zip(handles, results):
            if result is True:
                closed += 1
            elif isinstance(result, Exception):
                logger.error(
                    "Error closing connection during shutdown",
                    connection=handle.connection_id,
                    error=str(result),
                )
        return closed

    async def wait_idle(self, timeout: float = WSConstants.SHUTDOWN_TIMEOUT) -> bool:
        """
        Wait until every in-flight teardown has finished.

        Returns:
            False if the timeout expired first.
        """
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "Timed out waiting for connection teardown",
                remaining=len(self._active),
            )
            return False
