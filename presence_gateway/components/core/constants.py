"""
Presence Gateway Constants.

Centralized constants with documentation explaining the rationale for each value.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MessageType",
    "PresenceStatus",
    "MSG_PING_PLAIN",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or liveness eviction
    PROTOCOL_ERROR = 1002  # Protocol error
    UNSUPPORTED_DATA = 1003  # Received data type not supported
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # Server overloaded, try again later


class WSConstants:
    """
    Presence Gateway operational constants.

    These are defaults used when settings are not available. At runtime the
    ConnectionManager reads `shared.config.settings.settings`, which can
    override the configurable ones via environment variables.
    """

    # ==========================================================================
    # Liveness Constants
    # ==========================================================================

    # PROBE_INTERVAL: 30 seconds
    # Rationale: Below the idle timeout of common proxies (60s), so a probe
    # also keeps intermediaries from closing quiet connections.
    PROBE_INTERVAL: Final[float] = 30.0

    # SWEEP_INTERVAL: 35 seconds
    # Rationale: Offset from the probe so the two timers drift apart and a
    # sweep never runs in the same tick as the probe that would refresh it.
    SWEEP_INTERVAL: Final[float] = 35.0

    # STALE_THRESHOLD: 65 seconds
    # Rationale: Roughly 2x the probe interval. One missed probe reply is
    # tolerated; two missed replies evict the connection.
    STALE_THRESHOLD: Final[float] = 65.0

    # ==========================================================================
    # Send Constants
    # ==========================================================================

    # SEND_TIMEOUT: 5 seconds
    # Rationale: A single write should complete in milliseconds. A write that
    # blocks for 5s is stuck on a dead peer and must not hold the send lock.
    SEND_TIMEOUT: Final[float] = 5.0

    # ACCEPT_TIMEOUT: 5 seconds
    # Rationale: The handshake is one round trip. A client that cannot
    # complete it in 5s is gone and should not hold an ASGI task.
    ACCEPT_TIMEOUT: Final[float] = 5.0

    # BROADCAST_BATCH_SIZE: 50
    # Rationale: Bounds the number of concurrent sends created per fan-out
    # step while still sending to typical online sets in a single batch.
    BROADCAST_BATCH_SIZE: Final[int] = 50

    # ==========================================================================
    # Frame Constants
    # ==========================================================================

    # MAX_MESSAGE_SIZE: 64 KB
    # Rationale: Chat envelopes are well under 4 KB. 64 KB leaves room for
    # rich payloads while bounding JSON parse cost per frame.
    MAX_MESSAGE_SIZE: Final[int] = 64 * 1024

    # LOG_PREVIEW_LENGTH: 100 characters
    # Rationale: Enough of a dropped frame to diagnose client bugs without
    # copying whole payloads into logs.
    LOG_PREVIEW_LENGTH: Final[int] = 100

    # ==========================================================================
    # Shutdown Constants
    # ==========================================================================

    # SHUTDOWN_TIMEOUT: 10 seconds
    # Rationale: Teardown of one connection is a registry update plus one
    # broadcast. 10s covers thousands of connections on a loaded loop.
    SHUTDOWN_TIMEOUT: Final[float] = 10.0


class MessageType:
    """Values of the "type" field in frames exchanged with clients."""

    # Inbound
    REGISTER: Final[str] = "register"
    IS_ONLINE_REQUEST: Final[str] = "is_online_request"

    # Outbound
    REGISTERED: Final[str] = "registered"
    PRESENCE_UPDATE: Final[str] = "presence_update"
    MESSAGE: Final[str] = "message"
    DELIVERY_STATUS: Final[str] = "delivery_status"
    IS_ONLINE_RESPONSE: Final[str] = "is_online_response"

    # Both directions
    PING: Final[str] = "ping"
    PONG: Final[str] = "pong"


class PresenceStatus:
    """Presence states carried by presence_update frames."""

    ONLINE: Final[str] = "online"
    OFFLINE: Final[str] = "offline"


# Plain-text heartbeat some clients send instead of a JSON ping
MSG_PING_PLAIN: Final[str] = "ping"
