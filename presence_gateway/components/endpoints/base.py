"""
WebSocket Endpoint Base Class.

Runs one connection from accept to teardown:
1. Accept through the ConnectionManager (refused during shutdown)
2. Bind the connection id to the logging context
3. Message loop: receive, parse, dispatch
4. Teardown through the manager, exactly once, however the loop ended
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect

from presence_gateway.components.connection.handle import ConnectionHandle
from presence_gateway.components.core.constants import WSCloseCode, WSConstants
from presence_gateway.components.core.errors import MalformedFrame
from presence_gateway.components.events.frames import InboundFrame, parse_frame
from presence_gateway.core.connection.lifecycle import DisconnectReason
from shared.config.logging import get_logger
from shared.infrastructure.correlation import connection_id_var

if TYPE_CHECKING:
    from presence_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class WebSocketEndpointBase(ABC):
    """
    Base class for WebSocket endpoints.

    Subclasses implement `handle_frame` for parsed frames. Malformed frames
    are dropped here and never reach the subclass.

    Usage:
        endpoint = RelayEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: ConnectionManager,
        endpoint_name: str,
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
    ):
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.max_message_size = max_message_size
        self.handle: ConnectionHandle | None = None

    @abstractmethod
    async def handle_frame(self, frame: InboundFrame) -> None:
        """Act on one parsed inbound frame."""

    async def run(self) -> None:
        """Main entry point - run the connection until it ends."""
        try:
            self.handle = await self.manager.connect(self.websocket)
        except ConnectionError as e:
            logger.warning(
                "Connection rejected",
                endpoint=self.endpoint_name,
                reason=str(e),
            )
            await self._reject()
            return

        token = connection_id_var.set(self.handle.connection_id)
        reason = DisconnectReason.CLIENT_CLOSED
        try:
            await self._message_loop()
        except WebSocketDisconnect as e:
            logger.debug("Client disconnected", endpoint=self.endpoint_name, code=e.code)
        except Exception as e:
            reason = DisconnectReason.TRANSPORT_ERROR
            logger.warning(
                "Connection error",
                endpoint=self.endpoint_name,
                error=str(e),
            )
        finally:
            try:
                # Teardown must finish even if this task is being cancelled
                await asyncio.shield(self.manager.disconnect(self.handle, reason))
            finally:
                connection_id_var.reset(token)

    async def _message_loop(self) -> None:
        """Receive frames until the peer goes away."""
        while True:
            data = await self._receive()
            self.manager.metrics.increment_frames_received()
            # Any inbound frame proves the peer is alive, whether or not it parses
            self.manager.record_liveness(self.handle)

            try:
                frame = parse_frame(data, self.max_message_size)
            except MalformedFrame as e:
                logger.warning(
                    "Invalid message received",
                    endpoint=self.endpoint_name,
                    reason=e.reason,
                    preview=e.preview,
                )
                self.manager.metrics.increment_frames_malformed()
                continue

            try:
                await self.handle_frame(frame)
            except Exception as e:
                logger.error(
                    "Error handling frame",
                    endpoint=self.endpoint_name,
                    frame_type=type(frame).__name__,
                    error=str(e),
                    exc_info=True,
                )

    async def _receive(self) -> str | bytes:
        """
        Receive one text or binary frame.

        Raises:
            WebSocketDisconnect: When the peer closed the connection.
        """
        message: dict[str, Any] = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", WSCloseCode.NORMAL))

        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    async def _reject(self) -> None:
        try:
            await self.websocket.close(code=WSCloseCode.GOING_AWAY)
        except Exception as e:
            logger.debug("Error closing rejected connection", error=str(e))
