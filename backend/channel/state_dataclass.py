"""
Authoritative channel state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.

Timer handles are NOT here: timers are runtime resources tracked by name.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from config import ChannelConfig
from channel.enums.state import ConnectionState
from channel.retry import RetryAttempt


@dataclass(frozen=True)
class ChannelState:
    """Immutable snapshot of all reducer-owned state for one channel."""

    config: ChannelConfig

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    status: ConnectionState = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Transport handle tracking
    # ------------------------------------------------------------------
    # Handle of the live or opening transport; 0 means none.
    transport_id: int = 0

    # Monotonic handle generator. Once issued, a handle is never reused.
    last_transport_id: int = 0

    # ------------------------------------------------------------------
    # Reconnect bookkeeping
    # ------------------------------------------------------------------
    reconnect_attempt: RetryAttempt = field(
        default_factory=lambda: RetryAttempt(attempt=0)
    )

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------
    last_message: Any = None
    last_error: str | None = None
