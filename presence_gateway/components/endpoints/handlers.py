"""
Concrete WebSocket Endpoint Implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket

from presence_gateway.components.core.constants import WSConstants
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.endpoints.base import WebSocketEndpointBase
from presence_gateway.components.events.frames import (
    DeliveryFrame,
    InboundFrame,
    OnlineQueryFrame,
    PingFrame,
    PongFrame,
    RegisterFrame,
    UnrecognizedFrame,
)
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from presence_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class RelayEndpoint(WebSocketEndpointBase):
    """
    The presence and relay endpoint.

    Frames:
    - register: claim an identity, announced online to everybody
    - delivery envelope: routed to the identity named in its channel
    - is_online_request: answered on this connection
    - ping / pong: liveness
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: ConnectionManager,
        endpoint_name: str = "/ws",
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
    ):
        super().__init__(
            websocket=websocket,
            manager=manager,
            endpoint_name=endpoint_name,
            max_message_size=max_message_size,
        )

    async def handle_frame(self, frame: InboundFrame) -> None:
        handle = self.handle

        if isinstance(frame, DeliveryFrame):
            await self.manager.route(frame)
        elif isinstance(frame, RegisterFrame):
            await self.manager.register(handle, frame.identity)
        elif isinstance(frame, OnlineQueryFrame):
            await self.manager.query_online(handle, frame.identity)
        elif isinstance(frame, PongFrame):
            # Liveness was already refreshed when the frame arrived
            return
        elif isinstance(frame, PingFrame):
            await self.manager.answer_ping(handle)
        elif isinstance(frame, UnrecognizedFrame):
            self.manager.metrics.increment_frames_unrecognized()
            logger.debug(
                "Unknown message received",
                endpoint=self.endpoint_name,
                reason=frame.reason,
                message=sanitize_log_data(frame.data),
            )
