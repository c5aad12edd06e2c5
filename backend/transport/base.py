"""
Transport contract.

This module defines the *interface only*: no timers, no reconnect policy,
no state machine decisions live here.

Key invariants:
- Transport handles (transport_id) are owned by the reducer. Transports
  never generate or mutate them; they stamp every event they emit with
  the handle they were constructed with.
- The transport emits events; it does not call the reducer or make state
  transitions.
- After detach(), the transport emits nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from channel.events import Event


EventSink = Callable[[Event], None]

# (endpoint, transport_id, emit_event) -> Transport
TransportFactory = Callable[[str, int, EventSink], "Transport"]


class Transport(ABC):
    """
    Abstract full-duplex message transport.

    Note: emit_event is synchronous; it only enqueues into the manager.

    Implementations are responsible for:
    - Opening the underlying connection and reporting TransportOpened
      or TransportError
    - Reporting every inbound payload as TransportMessage
    - Reporting termination as exactly one TransportClosed or TransportError

    Non-responsibilities:
    - No heartbeat, reconnect or backoff logic
    - No payload decoding
    """

    @abstractmethod
    def open(self) -> None:
        """
        Begin opening the connection.

        Must return immediately; the outcome is reported through the
        event sink.
        """
        raise NotImplementedError

    @abstractmethod
    def send(self, data: str | bytes) -> None:
        """
        Queue one payload for sending.

        str is sent as a text frame, bytes as a binary frame. Sending on a
        transport that is not open is a no-op.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self, code: int, reason: str) -> None:
        """
        Close the connection with a close code.

        If still attached, the transport later reports TransportClosed
        carrying the code it sent.
        """
        raise NotImplementedError

    @abstractmethod
    def detach(self) -> None:
        """
        Drop the event sink.

        Idempotent. Callbacks already in flight are discarded.
        """
        raise NotImplementedError

    @abstractmethod
    async def wait_closed(self) -> None:
        """
        Wait until the transport's own I/O has finished.

        Returns once the connection is gone and no background work remains,
        whether or not the transport is still attached. Never raises.
        """
        raise NotImplementedError
