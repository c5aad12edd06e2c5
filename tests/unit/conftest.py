# pylint: disable=missing-module-docstring,missing-function-docstring
from __future__ import annotations

import pytest

from channel.events import (
    EventType,
    TransportClosed,
    TransportError,
    TransportMessage,
    TransportOpened,
)
from observability import logger
from transport.base import EventSink, Transport


class FakeTransport(Transport):
    """
    In-memory Transport driven by the test.

    Records every call; emits events only when the test asks it to.
    """

    def __init__(self, endpoint: str, transport_id: int, emit_event: EventSink) -> None:
        self.endpoint = endpoint
        self.transport_id = transport_id
        self._sink: EventSink | None = emit_event
        self._original_sink = emit_event
        self.opened = False
        self.sent: list[str | bytes] = []
        self.closed_with: tuple[int, str] | None = None
        self.detached = False
        self.waited = False

    # Transport API ------------------------------------------------------

    def open(self) -> None:
        self.opened = True

    def send(self, data: str | bytes) -> None:
        self.sent.append(data)

    def close(self, code: int, reason: str) -> None:
        self.closed_with = (code, reason)

    def detach(self) -> None:
        self.detached = True
        self._sink = None

    async def wait_closed(self) -> None:
        self.waited = True

    # Test drivers -------------------------------------------------------

    def _emit(self, event) -> None:
        if self._sink is not None:
            self._sink(event)

    def emit_open(self) -> None:
        self._emit(TransportOpened(
            event_type=EventType.TRANSPORT_OPENED, ts_ms=0, transport_id=self.transport_id
        ))

    def emit_message(self, data: str | bytes) -> None:
        self._emit(TransportMessage(
            event_type=EventType.TRANSPORT_MESSAGE,
            ts_ms=0,
            transport_id=self.transport_id,
            data=data,
        ))

    def emit_close(self, code: int, reason: str = "") -> None:
        self._emit(TransportClosed(
            event_type=EventType.TRANSPORT_CLOSED,
            ts_ms=0,
            transport_id=self.transport_id,
            code=code,
            reason=reason,
        ))

    def emit_error(self, reason: str = "boom") -> None:
        self._emit(TransportError(
            event_type=EventType.TRANSPORT_ERROR,
            ts_ms=0,
            transport_id=self.transport_id,
            reason=reason,
        ))

    def emit_late_open(self) -> None:
        """Deliver an open straight to the original sink, ignoring detach()."""
        self._original_sink(TransportOpened(
            event_type=EventType.TRANSPORT_OPENED, ts_ms=0, transport_id=self.transport_id
        ))


class FakeTransportFactory:
    """TransportFactory that keeps every transport it built, in order."""

    def __init__(self) -> None:
        self.built: list[FakeTransport] = []

    def __call__(self, endpoint: str, transport_id: int, emit_event: EventSink) -> FakeTransport:
        transport = FakeTransport(endpoint, transport_id, emit_event)
        self.built.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.built[-1]


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture JSONL lines instead of writing them to stdout."""
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines

