"""
Connection handle for the presence gateway.

Wraps one accepted WebSocket with a server-assigned id, a lifecycle state and
a lock that serializes every outbound write on that socket.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketState

from presence_gateway.components.core.constants import WSCloseCode, WSConstants
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Per-connection lifecycle: CONNECTING -> OPEN -> CLOSING -> CLOSED."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def is_ws_connected(ws: WebSocket) -> bool:
    """
    Check if a WebSocket is still connected in both directions.

    Starlette tracks the client side and the application side separately;
    a write is only possible while both are CONNECTED.
    """
    try:
        return (
            ws.client_state == WebSocketState.CONNECTED
            and ws.application_state == WebSocketState.CONNECTED
        )
    except AttributeError:
        return False


class ConnectionHandle:
    """
    One live client connection.

    Every write goes through `send_json` / `close`, which hold `send_lock`,
    so frames from the router, the broadcaster and the prober never
    interleave on the same socket.
    """

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: str | None = None,
        send_timeout: float = WSConstants.SEND_TIMEOUT,
    ):
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex[:12]
        self.state = ConnectionState.CONNECTING
        self.connected_at = time.time()
        self.send_lock = asyncio.Lock()
        self._send_timeout = send_timeout
        # Set once a write raised; a timed out write leaves the socket usable
        self._write_failed = False

    def __repr__(self) -> str:
        return f"<ConnectionHandle {self.connection_id} {self.state.value}>"

    @property
    def is_open(self) -> bool:
        """True while the handle is OPEN and the socket can still be written."""
        return (
            self.state is ConnectionState.OPEN
            and not self._write_failed
            and is_ws_connected(self.websocket)
        )

    async def accept(self, timeout: float | None = None) -> None:
        """
        Complete the WebSocket handshake and move to OPEN.

        Raises:
            asyncio.TimeoutError: If the handshake does not finish in time.
        """
        if timeout is None:
            await self.websocket.accept()
        else:
            await asyncio.wait_for(self.websocket.accept(), timeout=timeout)
        self.state = ConnectionState.OPEN

    def begin_closing(self) -> bool:
        """
        Move an OPEN or CONNECTING handle to CLOSING.

        Returns False if teardown already started, so callers can make
        teardown run exactly once.
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return False
        self.state = ConnectionState.CLOSING
        return True

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    async def send_json(self, payload: dict[str, Any]) -> bool:
        """
        Send one JSON frame.

        Never raises for transport failures: a dead peer, a timeout or a
        handle that is no longer open all return False. A write that raised
        leaves the handle no longer open; a timed out write does not.
        """
        if not self.is_open:
            return False

        async with self.send_lock:
            # State may have changed while waiting for the lock
            if not self.is_open:
                return False
            try:
                await asyncio.wait_for(
                    self.websocket.send_json(payload),
                    timeout=self._send_timeout,
                )
                return True
            except asyncio.TimeoutError:
                logger.warning(
                    "Send timed out",
                    connection_id=self.connection_id,
                    timeout=self._send_timeout,
                )
                return False
            except Exception as e:
                self._write_failed = True
                logger.debug(
                    "Send failed",
                    connection_id=self.connection_id,
                    error=str(e),
                )
                return False

    async def close(
        self,
        code: int = WSCloseCode.NORMAL,
        reason: str = "",
    ) -> None:
        """Send a close frame if the application side is still connected."""
        async with self.send_lock:
            if self.websocket.application_state != WebSocketState.CONNECTED:
                return
            try:
                await asyncio.wait_for(
                    self.websocket.close(code=int(code), reason=reason),
                    timeout=self._send_timeout,
                )
            except Exception as e:
                logger.debug(
                    "Error closing WebSocket",
                    connection_id=self.connection_id,
                    code=int(code),
                    error=str(e),
                )
