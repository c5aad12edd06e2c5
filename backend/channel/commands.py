"""
Side-effect command definitions for the channel reducer.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from channel.enums.timer import TimerName
from channel.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Transport
    OPEN_TRANSPORT = "OPEN_TRANSPORT"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"
    RELEASE_TRANSPORT = "RELEASE_TRANSPORT"
    SEND_FRAME = "SEND_FRAME"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenTransport(Command):
    """Request to construct and open a transport under a fresh handle."""
    transport_id: int
    endpoint: str
    command_type: CommandType = CommandType.OPEN_TRANSPORT


@dataclass(frozen=True)
class CloseTransport(Command):
    """
    Request to close a transport with a close code.

    detach=True: event handlers are dropped BEFORE the close frame is sent,
    so the intentional close produces no close/error callbacks, and the
    handle is released.
    detach=False: the transport stays attached and reports its own close.
    """
    transport_id: int
    code: int
    reason: str
    detach: bool
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


@dataclass(frozen=True)
class ReleaseTransport(Command):
    """
    Drop a transport that already failed.

    Detaches handlers and closes best-effort without reporting.
    """
    transport_id: int
    command_type: CommandType = CommandType.RELEASE_TRANSPORT


@dataclass(frozen=True)
class SendFrame(Command):
    """Send a payload on the live transport."""
    transport_id: int
    payload: str | bytes
    command_type: CommandType = CommandType.SEND_FRAME


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    A pending timer with the same name is cancelled first.
    """
    timer: TimerName
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer. Idempotent."""
    timer: TimerName
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
