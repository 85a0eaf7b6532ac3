"""
Connection management components.

Handles per-connection state and the identity registry.
"""

from presence_gateway.components.connection.handle import (
    ConnectionHandle,
    ConnectionState,
    is_ws_connected,
)
from presence_gateway.components.connection.registry import (
    ConnectionRecord,
    ConnectionRegistry,
    RegistrationResult,
    UnregisterResult,
)

__all__ = [
    "ConnectionHandle",
    "ConnectionState",
    "is_ws_connected",
    "ConnectionRecord",
    "ConnectionRegistry",
    "RegistrationResult",
    "UnregisterResult",
]
