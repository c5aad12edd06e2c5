"""
Runtime execution shell for a single logical channel.

Responsibilities:
- Own channel state
- Call pure reducer
- Execute commands with side effects (transport, timers, logging)
- Schedule and cancel named timers
- Convert timer expiry into events
- Mirror status / message / error into observable outputs

Non-responsibilities:
- Deciding when the channel should be open (LifecycleBinding)
- Any transition logic (reducer)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Callable
from uuid import uuid4

from channel.commands import (
    CancelTimer,
    CloseTransport,
    Command,
    LogEvent,
    OpenTransport,
    ReleaseTransport,
    SendFrame,
    StartTimer,
)
from channel.enums.state import ConnectionState
from channel.enums.timer import TimerName
from channel.events import (
    ConnectRequested,
    DisconnectRequested,
    Event,
    EventType,
    HeartbeatDue,
    HeartbeatTimeout,
    OfflineGraceElapsed,
    ReconnectDue,
    TransportError,
)
from channel.reducer import reduce
from channel.state_dataclass import ChannelState
from config import ChannelConfig
from constants import INTERNAL_ERROR_CLOSE_CODE
from observability import metrics
from observability.logger import EventLogger, channel_logger
from protocol.payload import encode_payload
from session.observable import ObservableValue
from transport.base import Transport, TransportFactory
from transport.websocket import WebSocketTransport


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_channel_id() -> str:
    return f"chan_{uuid4().hex[:12]}"


def _always_online() -> bool:
    return True


class ConnectionManager:
    """
    Runtime execution boundary for a single logical channel.

    Responsibilities:
    - Own the authoritative channel state
    - Act as the universal event sink for the channel
      (public calls, transport events, timer events)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is called exactly once per incoming event
    - Transitions run to completion: an event raised while another is
      being processed is queued behind it, never interleaved
    - All side effects occur *after* state has been updated
    - Timers emit events back into handle_event (single entry point)
    - No transport failure escapes as an exception; failures become
      state and output changes

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        config: ChannelConfig,
        *,
        transport_factory: TransportFactory | None = None,
        is_network_available: Callable[[], bool] | None = None,
        channel_id: str | None = None,
    ) -> None:
        self._state = ChannelState(config=config)
        self._transport_factory = transport_factory or WebSocketTransport.factory
        self._is_network_available = is_network_available or _always_online
        self.channel_id = channel_id or _new_channel_id()
        self.log: EventLogger = channel_logger(self.channel_id)

        self._transports: dict[int, Transport] = {}
        # Detached transports still finishing their close handshake
        self._draining: set[asyncio.Task[None]] = set()
        self._timers: dict[TimerName, asyncio.Task[None]] = {}

        self._inbox: deque[Event] = deque()
        self._dispatching = False

        # In-flight metric spans
        self._open_span: metrics.Span | None = None
        self._uptime_span: metrics.Span | None = None

        # Outputs
        self.status: ObservableValue[ConnectionState] = ObservableValue(
            self._state.status, name="status"
        )
        self.last_message: ObservableValue[Any] = ObservableValue(
            None, name="last_message"
        )
        self.last_error: ObservableValue[str | None] = ObservableValue(
            None, name="last_error"
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        """
        Return the current immutable channel state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def config(self) -> ChannelConfig:
        return self._state.config

    @property
    def reconnect_attempts(self) -> int:
        return self._state.reconnect_attempt.attempt

    @property
    def pending_timers(self) -> frozenset[TimerName]:
        """Names of timers scheduled but not yet fired or cancelled."""
        return frozenset(self._timers)

    @property
    def live_transport_count(self) -> int:
        return len(self._transports)

    @property
    def draining_transport_count(self) -> int:
        return len(self._draining)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Tear down any existing session and open a new one.

        Returns immediately; observe status / last_error for the outcome.
        """
        self.handle_event(
            ConnectRequested(
                event_type=EventType.CONNECT_REQUESTED,
                ts_ms=_now_ms(),
                network_available=self._is_network_available(),
            )
        )

    def disconnect(self) -> None:
        """
        Close the session intentionally.

        Always leaves zero pending timers; no reconnect follows.
        """
        self.handle_event(
            DisconnectRequested(
                event_type=EventType.DISCONNECT_REQUESTED,
                ts_ms=_now_ms(),
            )
        )

    def retry_connect(self) -> None:
        """Manual reconnect bypassing the backoff timer. No-op while connected."""
        if self._state.status is not ConnectionState.CONNECTED:
            self.connect()

    def send(self, message: Any) -> bool:
        """
        Send an application message as a JSON text frame.

        Returns False (and sends nothing) unless status is CONNECTED. A
        transport that raises is reported as a transport error and the call
        returns False.
        """
        if self._state.status is not ConnectionState.CONNECTED:
            return False
        transport = self._transports.get(self._state.transport_id)
        if transport is None:
            return False
        try:
            transport.send(encode_payload(message))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._report_transport_failure(self._state.transport_id, f"send_failed: {exc!r}")
            return False
        return True

    async def shutdown(self) -> None:
        """
        Clean shutdown of the channel.

        Disconnects, waits for cancelled timer tasks to complete, then waits
        for every released transport to finish closing.
        """
        tasks = list(self._timers.values())
        self.disconnect()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        while self._draining:
            await asyncio.gather(*list(self._draining), return_exceptions=True)

    # ------------------------------------------------------------------
    # Event processing
    # ------------------------------------------------------------------

    def handle_event(self, event: Event) -> None:
        """
        Process a single event through the channel pipeline.

        This method is the *only* entry point for events affecting channel
        state. All event sources converge here:
        - Public calls (connect / disconnect)
        - Transports (open, message, close, error)
        - Timers (heartbeat, reconnect, offline grace)

        Re-entrant calls (a transport reporting synchronously from inside a
        command) are queued and processed after the current event.
        """
        self._inbox.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._inbox:
                self._process(self._inbox.popleft())
        finally:
            self._dispatching = False

    def _process(self, event: Event) -> None:
        prev = self._state
        new_state, commands = reduce(prev, event)
        self._state = new_state

        for cmd in commands:
            self._execute_command(cmd, event)

        self._prune_transports()
        self._record_metrics(prev, new_state)
        self._publish(prev, new_state)

    def _prune_transports(self) -> None:
        """Detach transports the reducer no longer owns (already terminated)."""
        for transport_id in list(self._transports):
            if transport_id != self._state.transport_id:
                self._retire(self._transports.pop(transport_id))

    def _retire(self, transport: Transport) -> None:
        """Detach a transport and keep it tracked until its I/O has wound down."""
        transport.detach()
        task = asyncio.ensure_future(transport.wait_closed())
        self._draining.add(task)
        task.add_done_callback(self._draining.discard)

    def _publish(self, prev: ChannelState, new: ChannelState) -> None:
        if new.status is not prev.status:
            self.status.set(new.status)
        if new.last_message is not prev.last_message:
            self.last_message.set(new.last_message)
        if new.last_error is not prev.last_error:
            self.last_error.set(new.last_error)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command, cause: Event) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            self.log(cmd.event)

        elif isinstance(cmd, OpenTransport):
            self._open_transport(cmd)

        elif isinstance(cmd, CloseTransport):
            transport = self._transports.get(cmd.transport_id)
            if transport is None:
                return
            if cmd.detach:
                # Handlers go first so the intentional close is silent.
                self._transports.pop(cmd.transport_id, None)
                self._retire(transport)
            transport.close(cmd.code, cmd.reason)

        elif isinstance(cmd, ReleaseTransport):
            transport = self._transports.pop(cmd.transport_id, None)
            if transport is not None:
                self._retire(transport)
                transport.close(INTERNAL_ERROR_CLOSE_CODE, "transport error")

        elif isinstance(cmd, SendFrame):
            transport = self._transports.get(cmd.transport_id)
            if transport is None:
                return
            try:
                transport.send(cmd.payload)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._report_transport_failure(cmd.transport_id, f"send_failed: {exc!r}")

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer=cmd.timer,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer)

        else:
            self.log({
                "event_type": "COMMAND_NOT_HANDLED",
                "command_type": type(cmd).__name__,
                "cause": cause.event_type.value,
            })

    def _open_transport(self, cmd: OpenTransport) -> None:
        """
        Construct and open a transport under the reducer-issued handle.

        Construction or open() failures are fed back as TransportError so
        they take the same reconnect path as any other open failure.
        """
        try:
            transport = self._transport_factory(
                cmd.endpoint, cmd.transport_id, self.handle_event
            )
            self._transports[cmd.transport_id] = transport
            transport.open()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._report_transport_failure(cmd.transport_id, f"open_failed: {exc!r}")

    def _report_transport_failure(self, transport_id: int, reason: str) -> None:
        self.handle_event(
            TransportError(
                event_type=EventType.TRANSPORT_ERROR,
                ts_ms=_now_ms(),
                transport_id=transport_id,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _record_metrics(self, prev: ChannelState, new: ChannelState) -> None:
        if new.transport_id != prev.transport_id:
            # A new handle restarts the open measurement; a dropped one abandons it.
            self._open_span = (
                metrics.start_span("transport_open_latency")
                if new.transport_id != 0 else None
            )

        if new.status is prev.status:
            return

        if new.status is ConnectionState.CONNECTED:
            if self._open_span is not None:
                metrics.finish_span(
                    self._open_span,
                    channel_id=self.channel_id,
                    status=new.status.value,
                    details={"transport_id": new.transport_id},
                )
                self._open_span = None
            self._uptime_span = metrics.start_span("connection_uptime")

        elif prev.status is ConnectionState.CONNECTED and self._uptime_span is not None:
            metrics.finish_span(
                self._uptime_span,
                channel_id=self.channel_id,
                status=new.status.value,
                details={"transport_id": prev.transport_id},
            )
            self._uptime_span = None

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer: TimerName,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a named timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        # Cancel existing timer if present (idempotent)
        self._cancel_timer(timer)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            # Fired: no longer pending.
            if self._timers.get(timer) is task:
                del self._timers[timer]

            self.handle_event(self._construct_timeout_event(timeout_event_type))

        task = asyncio.create_task(_timer_task())
        self._timers[timer] = task

    def _cancel_timer(self, timer: TimerName) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(self, timeout_event_type: EventType) -> Event:
        """
        Construct the timeout event for a fired timer.

        This is where runtime context (clock, network reachability) gets
        injected; the reducer only names the event type.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.HEARTBEAT_DUE:
            return HeartbeatDue(event_type=timeout_event_type, ts_ms=ts)

        if timeout_event_type is EventType.HEARTBEAT_TIMEOUT:
            return HeartbeatTimeout(event_type=timeout_event_type, ts_ms=ts)

        if timeout_event_type is EventType.RECONNECT_DUE:
            return ReconnectDue(
                event_type=timeout_event_type,
                ts_ms=ts,
                network_available=self._is_network_available(),
            )

        if timeout_event_type is EventType.OFFLINE_GRACE_ELAPSED:
            return OfflineGraceElapsed(event_type=timeout_event_type, ts_ms=ts)

        # This should never happen if reducer is correct
        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
