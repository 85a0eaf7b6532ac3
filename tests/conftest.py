"""
Pytest configuration and fixtures for gateway tests.
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketState

from shared.config.settings import Settings
from presence_gateway.components.connection.handle import ConnectionHandle, ConnectionState
from presence_gateway.components.connection.registry import ConnectionRegistry
from presence_gateway.components.metrics.collector import MetricsCollector
from presence_gateway.core.connection.broadcaster import PresenceBroadcaster
from presence_gateway.core.connection.lifecycle import ConnectionLifecycle


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWebSocket:
    """
    Stand-in for a Starlette WebSocket.

    Records every JSON payload sent and the close code, and exposes the two
    Starlette connection states so handles see it as connected.
    """

    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.accept = AsyncMock()
        self.send_json = AsyncMock(side_effect=self._record)
        self.close = AsyncMock(side_effect=self._close)

    async def _record(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def _close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED
        self.client_state = WebSocketState.DISCONNECTED

    def vanish(self) -> None:
        """Peer disappeared without a close frame."""
        self.client_state = WebSocketState.DISCONNECTED

    def frames(self, frame_type: str) -> list[dict[str, Any]]:
        return [p for p in self.sent if p.get("type") == frame_type]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return ConnectionRegistry(clock=clock)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def broadcaster(registry, metrics):
    return PresenceBroadcaster(registry, metrics=metrics, batch_size=50)


@pytest.fixture
def lifecycle(registry, broadcaster, metrics):
    return ConnectionLifecycle(registry, broadcaster, metrics=metrics)


@pytest.fixture
def open_handle():
    """
    Factory for open handles over fake websockets, without a handshake.

    Usage:
        handle = open_handle()
        handle.websocket.sent  # frames written so far
    """
    def _make(connection_id: str | None = None) -> ConnectionHandle:
        handle = ConnectionHandle(FakeWebSocket(), connection_id=connection_id)
        handle.state = ConnectionState.OPEN
        return handle

    return _make


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        debug=False,
        ws_probe_interval=60.0,
        ws_sweep_interval=60.0,
        ws_stale_threshold=120.0,
        ws_shutdown_timeout=2.0,
    )
