"""
Pure channel reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (status, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any

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
    TransportClosed,
    TransportError,
    TransportEvent,
    TransportMessage,
    TransportOpened,
)
from channel.retry import (
    get_reconnect_delay_ms,
    next_attempt,
    reset_attempt,
    should_reconnect,
)
from channel.state_dataclass import ChannelState
from constants import (
    HEARTBEAT_TIMEOUT_CLOSE_CODE,
    HEARTBEAT_TIMEOUT_CLOSE_REASON,
    NORMAL_CLOSURE_CODE,
    NORMAL_CLOSURE_REASON,
    OFFLINE_GRACE_DELAY_MS,
)
from protocol.payload import PayloadDecodeError, decode_payload, is_heartbeat_ack


Result = tuple[ChannelState, tuple[Command, ...]]

_ACTIVE = (ConnectionState.CONNECTED, ConnectionState.CONNECTING)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: ChannelState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "status": state.status.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "transport_id": state.transport_id,
            "reconnect_attempts": state.reconnect_attempt.attempt,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: ChannelState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _state_changed(
    prev: ChannelState,
    new: ChannelState,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    if prev.status is new.status:
        return ()
    return (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": prev.status.value,
                "to_state": new.status.value,
                "source": source,
            },
        ),
    )


def _cancel_heartbeat() -> tuple[Command, ...]:
    return (
        CancelTimer(timer=TimerName.HEARTBEAT_SEND),
        CancelTimer(timer=TimerName.HEARTBEAT_TIMEOUT),
    )


def _cancel_all_timers() -> tuple[Command, ...]:
    return _cancel_heartbeat() + (
        CancelTimer(timer=TimerName.RECONNECT),
        CancelTimer(timer=TimerName.OFFLINE_GRACE),
    )


def _start_heartbeat(state: ChannelState) -> tuple[Command, ...]:
    """Cancel-and-restart: any pending cycle is dropped, never queued."""
    return _cancel_heartbeat() + (
        StartTimer(
            timer=TimerName.HEARTBEAT_SEND,
            duration_ms=state.config.heartbeat_interval_ms,
            timeout_event_type=EventType.HEARTBEAT_DUE,
        ),
    )


def _is_stale(state: ChannelState, event: TransportEvent) -> bool:
    return state.transport_id == 0 or event.transport_id != state.transport_id


# =============================================================================
# Teardown / connect
# =============================================================================

def _teardown(state: ChannelState, event: Event) -> Result:
    """
    Release the current session.

    - All timers are cancelled, whatever the prior status.
    - A live/opening transport is detached before its close frame is sent,
      so the intentional close cannot feed the reconnect path.
    - With no transport, status is only touched to settle a pending
      offline-grace CONNECTING.
    """
    cmds: list[Command] = list(_cancel_all_timers())

    if state.transport_id == 0:
        if state.status is ConnectionState.CONNECTING:
            new_state = replace(state, status=ConnectionState.DISCONNECTED)
            return new_state, _logs_last(tuple(cmds) + _state_changed(
                state, new_state, event, "teardown_offline_grace"
            ))
        return state, tuple(cmds)

    closing = replace(state, status=ConnectionState.DISCONNECTING)
    cmds.append(
        CloseTransport(
            transport_id=state.transport_id,
            code=NORMAL_CLOSURE_CODE,
            reason=NORMAL_CLOSURE_REASON,
            detach=True,
        )
    )
    cmds.append(_log(closing, event, "close_transport", {
        "closed_transport_id": state.transport_id,
        "code": NORMAL_CLOSURE_CODE,
    }))

    new_state = replace(
        closing,
        status=ConnectionState.DISCONNECTED,
        transport_id=0,
    )
    return new_state, _logs_last(
        tuple(cmds)
        + _state_changed(state, closing, event, "teardown")
        + _state_changed(closing, new_state, event, "teardown")
    )


def _connect(state: ChannelState, event: Event, network_available: bool) -> Result:
    torn_down, teardown_cmds = _teardown(state, event)

    connecting = replace(torn_down, status=ConnectionState.CONNECTING)

    if not network_available:
        return connecting, _logs_last(teardown_cmds + (
            StartTimer(
                timer=TimerName.OFFLINE_GRACE,
                duration_ms=OFFLINE_GRACE_DELAY_MS,
                timeout_event_type=EventType.OFFLINE_GRACE_ELAPSED,
            ),
            _log(connecting, event, "network_unavailable", {
                "grace_ms": OFFLINE_GRACE_DELAY_MS,
            }),
        ) + _state_changed(torn_down, connecting, event, "connect"))

    transport_id = torn_down.last_transport_id + 1
    new_state = replace(
        connecting,
        transport_id=transport_id,
        last_transport_id=transport_id,
    )
    return new_state, _logs_last(teardown_cmds + (
        OpenTransport(transport_id=transport_id, endpoint=state.config.endpoint),
        _log(new_state, event, "open_transport", {
            "endpoint": state.config.endpoint,
        }),
    ) + _state_changed(torn_down, new_state, event, "connect"))


# =============================================================================
# Reconnect procedure
# =============================================================================

def _reconnect(state: ChannelState, event: Event) -> Result:
    """
    Invoked only from the abnormal-close / error path.

    The attempt counter is advanced when the timer is scheduled.
    """
    if state.status in _ACTIVE:
        return _ignore(state, event, "reconnect_while_active")

    cmds: list[Command] = list(_cancel_heartbeat())
    config = state.config

    if should_reconnect(config=config, attempt=state.reconnect_attempt):
        delay_ms = get_reconnect_delay_ms(config=config, attempt=state.reconnect_attempt)
        new_state = replace(state, reconnect_attempt=next_attempt(state.reconnect_attempt))
        cmds.append(
            StartTimer(
                timer=TimerName.RECONNECT,
                duration_ms=delay_ms,
                timeout_event_type=EventType.RECONNECT_DUE,
            )
        )
        cmds.append(_log(new_state, event, "schedule_reconnect", {
            "attempt": state.reconnect_attempt.attempt,
            "delay_ms": delay_ms,
        }))
        return new_state, _logs_last(tuple(cmds))

    new_state = replace(state, status=ConnectionState.DISCONNECTED)
    cmds.append(CancelTimer(timer=TimerName.RECONNECT))
    cmds.append(_log(new_state, event, "reconnect_exhausted", {
        "max_reconnect_attempts": config.max_reconnect_attempts,
    }))
    return new_state, _logs_last(
        tuple(cmds) + _state_changed(state, new_state, event, "reconnect_exhausted")
    )


def _session_lost(
    state: ChannelState,
    event: TransportEvent,
    *,
    error: str,
    release: bool,
) -> Result:
    lost = replace(
        state,
        status=ConnectionState.DISCONNECTED,
        transport_id=0,
        last_error=error,
    )
    cmds: tuple[Command, ...] = ()
    if release:
        cmds = (ReleaseTransport(transport_id=event.transport_id),)

    after, reconnect_cmds = _reconnect(lost, event)
    return after, _logs_last(
        cmds
        + reconnect_cmds
        + _state_changed(state, lost, event, "session_lost")
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(state: ChannelState, event: Event) -> Result:
    """
    Pure reducer for the channel lifecycle state machine.

    Given the current channel state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (status, event) pair is handled or explicitly ignored
    - Handle-safe: ignores events from transports it no longer owns
    """
    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    if isinstance(event, ConnectRequested):
        return _connect(state, event, event.network_available)

    if isinstance(event, DisconnectRequested):
        return _teardown(state, event)

    # ------------------------------------------------------------------
    # Transport events (stale handles are dropped first)
    # ------------------------------------------------------------------
    if isinstance(event, TransportEvent):
        if _is_stale(state, event):
            return _ignore(state, event, "stale_transport")

        if isinstance(event, TransportOpened):
            new_state = replace(
                state,
                status=ConnectionState.CONNECTED,
                reconnect_attempt=reset_attempt(),
                last_error=None,
            )
            return new_state, _logs_last(
                _start_heartbeat(new_state)
                + (_log(new_state, event, "transport_opened"),)
                + _state_changed(state, new_state, event, "transport_opened")
            )

        if isinstance(event, TransportMessage):
            # Any traffic proves liveness, decodable or not.
            cmds = _start_heartbeat(state)
            try:
                message = decode_payload(event.data)
            except PayloadDecodeError as e:
                return state, _logs_last(cmds + (
                    _log(state, event, "payload_dropped", {"error": str(e)}),
                ))

            if is_heartbeat_ack(message):
                return state, _logs_last(cmds + (
                    _log(state, event, "heartbeat_ack"),
                ))

            new_state = replace(state, last_message=message)
            return new_state, _logs_last(cmds + (
                _log(new_state, event, "message_received"),
            ))

        if isinstance(event, TransportClosed):
            if event.code == NORMAL_CLOSURE_CODE:
                new_state = replace(
                    state,
                    status=ConnectionState.DISCONNECTED,
                    transport_id=0,
                )
                return new_state, _logs_last(
                    _cancel_heartbeat()
                    + (_log(new_state, event, "closed_normally", {
                        "code": event.code,
                        "reason": event.reason,
                    }),)
                    + _state_changed(state, new_state, event, "transport_closed")
                )

            return _session_lost(
                state,
                event,
                error=f"closed abnormally: code={event.code} reason={event.reason!r}",
                release=False,
            )

        if isinstance(event, TransportError):
            return _session_lost(state, event, error=event.reason, release=True)

        return _ignore(state, event, "unknown_transport_event")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    if isinstance(event, HeartbeatDue):
        # Checked at fire time, not at scheduling time.
        if state.status is not ConnectionState.CONNECTED or state.transport_id == 0:
            return _ignore(state, event, "heartbeat_not_connected")

        return state, _logs_last((
            SendFrame(
                transport_id=state.transport_id,
                payload=state.config.heartbeat_payload,
            ),
            StartTimer(
                timer=TimerName.HEARTBEAT_TIMEOUT,
                duration_ms=state.config.heartbeat_interval_ms,
                timeout_event_type=EventType.HEARTBEAT_TIMEOUT,
            ),
            _log(state, event, "heartbeat_sent"),
        ))

    if isinstance(event, HeartbeatTimeout):
        if state.transport_id == 0:
            return _ignore(state, event, "heartbeat_timeout_without_transport")

        # Stay attached: the resulting close takes the abnormal-close path.
        return state, _logs_last((
            CloseTransport(
                transport_id=state.transport_id,
                code=HEARTBEAT_TIMEOUT_CLOSE_CODE,
                reason=HEARTBEAT_TIMEOUT_CLOSE_REASON,
                detach=False,
            ),
            _log(state, event, "heartbeat_timeout", {
                "code": HEARTBEAT_TIMEOUT_CLOSE_CODE,
            }),
        ))

    if isinstance(event, ReconnectDue):
        if state.status in _ACTIVE:
            return _ignore(state, event, "reconnect_while_active")
        return _connect(state, event, event.network_available)

    if isinstance(event, OfflineGraceElapsed):
        if state.status is not ConnectionState.CONNECTING or state.transport_id != 0:
            return _ignore(state, event, "offline_grace_superseded")

        new_state = replace(state, status=ConnectionState.DISCONNECTED)
        return new_state, _logs_last(
            (_log(new_state, event, "offline_grace_elapsed"),)
            + _state_changed(state, new_state, event, "offline_grace")
        )

    return _ignore(state, event, "unhandled_event")
