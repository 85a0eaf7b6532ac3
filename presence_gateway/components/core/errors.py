"""
Gateway error taxonomy.

Every error is scoped to a single connection or a single routing attempt;
none of them is fatal to the server process.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for presence gateway errors."""


class ConnectionNotOpen(RelayError):
    """Registration attempted on a connection that is already unusable."""

    def __init__(self, identity: str, connection_id: str | None = None):
        self.identity = identity
        self.connection_id = connection_id
        super().__init__(f"Connection is not open for identity {identity!r}")


class InvalidChannel(RelayError):
    """Channel string does not follow <namespace>.<kind>.<identity>."""

    def __init__(self, channel: object):
        self.channel = channel
        super().__init__(f"Invalid channel format: {channel!r}")


class DestinationUnreachable(RelayError):
    """The destination identity has no open connection."""

    def __init__(self, identity: str, stale: bool = False):
        self.identity = identity
        self.stale = stale
        super().__init__(f"User {identity!r} not connected")


class MalformedFrame(RelayError):
    """Inbound data could not be parsed into a JSON object."""

    def __init__(self, reason: str, preview: str = ""):
        self.reason = reason
        self.preview = preview
        super().__init__(f"Malformed frame: {reason}")


class ProbeTimeout(RelayError):
    """A connection did not answer liveness probes within the threshold."""

    def __init__(self, identity: str, silent_for: float, threshold: float):
        self.identity = identity
        self.silent_for = silent_for
        self.threshold = threshold
        super().__init__(
            f"No liveness reply from {identity!r} for {silent_for:.1f}s "
            f"(threshold {threshold:.1f}s)"
        )
