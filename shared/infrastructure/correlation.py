"""
Connection correlation for log records.

Every WebSocket connection gets a short server-assigned id. The endpoint sets it
in a context variable for the lifetime of its message loop, so every log line
written while handling that connection carries the id.
"""

import logging
from contextvars import ContextVar

# Context variable for the connection id (task-local under asyncio)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the id of the connection being handled, or "" outside one."""
    return connection_id_var.get()


class ConnectionIdFilter(logging.Filter):
    """
    Logging filter that adds connection_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
