"""
WebSocket transport.

Core model (IMPORTANT):
- One instance == one connection attempt. A reconnect builds a new instance
  under a new transport_id; instances are never reopened.
- All I/O runs in instance-owned asyncio tasks; public methods never await.
- Termination is reported exactly once, as TransportClosed or TransportError.
- A close we initiate while attached is reported with the code we sent,
  not the code echoed by the peer.

Design constraints:
- Transport must not call reducer directly.
- Transport must not own connection state transitions.
- Transport must not retry.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Coroutine

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed

from channel.events import (
    Event,
    EventType,
    TransportClosed,
    TransportError,
    TransportMessage,
    TransportOpened,
)
from constants import (
    ABNORMAL_CLOSURE_CODE,
    INTERNAL_ERROR_CLOSE_CODE,
    WS_CLOSE_TIMEOUT_S,
    WS_MAX_MESSAGE_BYTES,
    WS_OPEN_TIMEOUT_S,
)
from transport.base import EventSink, Transport


def _now_ms() -> int:
    return int(time.time() * 1000)


class WebSocketTransport(Transport):
    """
    websockets-backed implementation of Transport.

    Library keepalive pings are disabled: liveness is the channel's own
    heartbeat protocol.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        transport_id: int,
        emit_event: EventSink,
        open_timeout_s: float = WS_OPEN_TIMEOUT_S,
    ) -> None:
        self._endpoint = endpoint
        self._transport_id = transport_id
        self._emit_event: EventSink | None = emit_event
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._io_tasks: set[asyncio.Task[None]] = set()

        self._local_close_code: int | None = None
        self._local_close_reason: str = ""
        self._terminated = False

    @classmethod
    def factory(cls, endpoint: str, transport_id: int, emit_event: EventSink) -> WebSocketTransport:
        """TransportFactory adapter."""
        return cls(endpoint=endpoint, transport_id=transport_id, emit_event=emit_event)

    @property
    def transport_id(self) -> int:
        return self._transport_id

    # -------------------------------------------------------------------------
    # Transport API
    # -------------------------------------------------------------------------

    def open(self) -> None:
        if self._run_task is not None:
            return
        self._run_task = asyncio.create_task(self._run())

    def send(self, data: str | bytes) -> None:
        ws = self._ws
        if ws is None or self._terminated:
            return
        self._spawn(self._send(ws, data))

    def close(self, code: int, reason: str) -> None:
        if self._terminated:
            return
        self._local_close_code = code
        self._local_close_reason = reason

        ws = self._ws
        if ws is None:
            # Still opening: abandon the handshake and report right away.
            if self._run_task is not None and not self._run_task.done():
                self._run_task.cancel()
            self._report_closed(code, reason)
            return

        # The receive loop observes the close and reports it.
        self._spawn(self._close(ws, code, reason))

    def detach(self) -> None:
        self._emit_event = None

    async def wait_closed(self) -> None:
        # Closing can spawn more I/O tasks, so re-check until none are left.
        while True:
            pending = {
                task
                for task in (self._run_task, *self._io_tasks)
                if task is not None and not task.done()
            }
            if not pending:
                return
            await asyncio.wait(pending)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _emit(self, event: Event) -> None:
        sink = self._emit_event
        if sink is not None:
            sink(event)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._io_tasks.add(task)
        task.add_done_callback(self._io_tasks.discard)

    def _report_closed(self, code: int, reason: str) -> None:
        if self._terminated:
            return
        self._terminated = True
        self._emit(
            TransportClosed(
                event_type=EventType.TRANSPORT_CLOSED,
                ts_ms=_now_ms(),
                transport_id=self._transport_id,
                code=code,
                reason=reason,
            )
        )

    def _report_error(self, reason: str) -> None:
        if self._terminated:
            return
        self._terminated = True
        self._emit(
            TransportError(
                event_type=EventType.TRANSPORT_ERROR,
                ts_ms=_now_ms(),
                transport_id=self._transport_id,
                reason=reason,
            )
        )

    async def _send(self, ws: ClientConnection, data: str | bytes) -> None:
        try:
            await ws.send(data)
        except ConnectionClosed:
            # The receive loop reports the closure.
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._report_error(f"ws_send_failed: {e!r}")
            await self._close(ws, INTERNAL_ERROR_CLOSE_CODE, "send failed")

    async def _close(self, ws: ClientConnection, code: int, reason: str) -> None:
        try:
            await ws.close(code=code, reason=reason)
        except Exception:  # pylint: disable=broad-exception-caught
            # Closing is best-effort; the receive loop still terminates.
            pass

    async def _run(self) -> None:
        """
        Open, then receive until the connection ends.

        RULES:
        - Handshake failure => TransportError
        - Every inbound frame => TransportMessage
        - Peer or local close => TransportClosed (local code wins)
        - Unexpected receive failure => TransportError
        """
        try:
            ws = await ws_connect(
                self._endpoint,
                open_timeout=self._open_timeout_s,
                close_timeout=WS_CLOSE_TIMEOUT_S,
                max_size=WS_MAX_MESSAGE_BYTES,
                ping_interval=None,
            )
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._report_error(f"ws_connect_failed: {e!r}")
            return

        if self._terminated:
            # close() won the race against the handshake.
            await self._close(ws, self._local_close_code or INTERNAL_ERROR_CLOSE_CODE, "")
            return

        self._ws = ws
        self._emit(
            TransportOpened(
                event_type=EventType.TRANSPORT_OPENED,
                ts_ms=_now_ms(),
                transport_id=self._transport_id,
            )
        )

        try:
            async for raw in ws:
                self._emit(
                    TransportMessage(
                        event_type=EventType.TRANSPORT_MESSAGE,
                        ts_ms=_now_ms(),
                        transport_id=self._transport_id,
                        data=raw,
                    )
                )
        except ConnectionClosed:
            pass
        except asyncio.CancelledError:
            await self._close(ws, INTERNAL_ERROR_CLOSE_CODE, "")
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._report_error(f"ws_recv_failed: {e!r}")
            await self._close(ws, INTERNAL_ERROR_CLOSE_CODE, "")
            return

        if self._local_close_code is not None:
            self._report_closed(self._local_close_code, self._local_close_reason)
            return

        code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE_CODE
        self._report_closed(code, ws.close_reason or "")
