"""
Log-safety helpers for client-supplied data.

Identities, channels and raw frames all come straight from clients and end up
in log records, so they pass through `sanitize_log_data` first.
"""

from __future__ import annotations

import json
import re

from presence_gateway.components.core.constants import WSConstants

# C0/C1 controls, zero-width and bidi formatting characters, BOM
_UNSAFE_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]")


def sanitize_log_data(data: object, max_length: int = WSConstants.LOG_PREVIEW_LENGTH) -> str:
    """
    Make client data safe to embed in a log line.

    Bytes are decoded leniently and other objects go through str(). The text
    is cut to `max_length` characters before unsafe characters are dropped and
    quotes and backslashes escaped, so an escape is never split. Cut text ends
    in "...".
    """
    if isinstance(data, bytes):
        text = data.decode("utf-8", errors="replace")
    elif isinstance(data, str):
        text = data
    else:
        text = str(data)

    cut = len(text) > max_length
    if cut:
        text = text[:max_length]

    # json.dumps escapes exactly the quotes and backslashes left after stripping
    escaped = json.dumps(_UNSAFE_CHARS.sub("", text), ensure_ascii=False)[1:-1]
    return f"{escaped}..." if cut else escaped
