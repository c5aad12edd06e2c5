"""
Unified event definitions for the channel reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Transport events carry the transport_id they were created with so the
reducer can drop callbacks from a transport it no longer owns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (status, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    DISCONNECT_REQUESTED = "DISCONNECT_REQUESTED"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_MESSAGE = "TRANSPORT_MESSAGE"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    HEARTBEAT_DUE = "HEARTBEAT_DUE"
    HEARTBEAT_TIMEOUT = "HEARTBEAT_TIMEOUT"
    RECONNECT_DUE = "RECONNECT_DUE"
    OFFLINE_GRACE_ELAPSED = "OFFLINE_GRACE_ELAPSED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class TransportEvent(Event):
    """
    Base class for events raised by a transport.

    The reducer MUST ignore events whose transport_id does not match the
    transport it currently owns.
    """

    transport_id: int


# =============================================================================
# Public Entry Point Events
# =============================================================================

@dataclass(frozen=True)
class ConnectRequested(Event):
    """
    connect() was called.

    network_available is sampled by the runtime at call time so the
    reducer stays free of I/O.
    """
    network_available: bool = True


@dataclass(frozen=True)
class DisconnectRequested(Event):
    """disconnect() was called."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportOpened(TransportEvent):
    """The transport finished its opening handshake."""


@dataclass(frozen=True)
class TransportMessage(TransportEvent):
    """
    A raw payload arrived on the transport.

    Decoding is the reducer's job; the transport delivers what it received.
    """
    data: str | bytes


@dataclass(frozen=True)
class TransportClosed(TransportEvent):
    """The transport terminated with a close code."""
    code: int
    reason: str = ""


@dataclass(frozen=True)
class TransportError(TransportEvent):
    """
    The transport failed (open failure, I/O error).

    The transport is considered dead after this event.
    """
    reason: str


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class HeartbeatDue(Event):
    """heartbeat_send timer fired: no traffic for a full interval."""


@dataclass(frozen=True)
class HeartbeatTimeout(Event):
    """heartbeat_timeout timer fired: the heartbeat provoked no traffic."""


@dataclass(frozen=True)
class ReconnectDue(Event):
    """reconnect timer fired. Carries reachability like ConnectRequested."""
    network_available: bool = True


@dataclass(frozen=True)
class OfflineGraceElapsed(Event):
    """offline_grace timer fired after a connect() made while offline."""
