"""
Core components: constants, error taxonomy, log-safety helpers.
"""

from presence_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    MessageType,
    PresenceStatus,
    MSG_PING_PLAIN,
)
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.core.errors import (
    RelayError,
    ConnectionNotOpen,
    InvalidChannel,
    DestinationUnreachable,
    MalformedFrame,
    ProbeTimeout,
)

__all__ = [
    # constants
    "WSCloseCode",
    "WSConstants",
    "MessageType",
    "PresenceStatus",
    "MSG_PING_PLAIN",
    # context
    "sanitize_log_data",
    # errors
    "RelayError",
    "ConnectionNotOpen",
    "InvalidChannel",
    "DestinationUnreachable",
    "MalformedFrame",
    "ProbeTimeout",
]
