"""
Named timer enumeration.

Rules:
- One pending timer per name at most.
- Starting a timer replaces any pending timer of the same name.
"""

from __future__ import annotations

from enum import Enum


class TimerName(str, Enum):
    """Cancellable scheduled tasks owned by a ConnectionManager."""

    HEARTBEAT_SEND = "heartbeat_send"
    HEARTBEAT_TIMEOUT = "heartbeat_timeout"
    RECONNECT = "reconnect"
    OFFLINE_GRACE = "offline_grace"
