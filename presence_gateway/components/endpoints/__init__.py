"""
WebSocket endpoint components.

Base class and the concrete relay endpoint.
"""

from presence_gateway.components.endpoints.base import WebSocketEndpointBase
from presence_gateway.components.endpoints.handlers import RelayEndpoint

__all__ = [
    "WebSocketEndpointBase",
    "RelayEndpoint",
]
