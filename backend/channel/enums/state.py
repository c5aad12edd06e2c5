"""
Authoritative connection state enumeration.

Rules:
- This enum defines ONLY the connection lifecycle states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Lifecycle states of a single logical channel.

    Exactly one is active at any instant. DISCONNECTED is initial.
    """

    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DISCONNECTING = "DISCONNECTING"
    DISCONNECTED = "DISCONNECTED"
