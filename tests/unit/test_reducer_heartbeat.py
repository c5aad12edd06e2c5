# pylint: disable=missing-module-docstring,missing-function-docstring
from channel.commands import (
    CancelTimer,
    CloseTransport,
    Command,
    LogEvent,
    SendFrame,
    StartTimer,
)
from channel.enums.state import ConnectionState
from channel.enums.timer import TimerName
from channel.events import (
    EventType,
    HeartbeatDue,
    HeartbeatTimeout,
    TransportClosed,
    TransportMessage,
)
from channel.reducer import reduce
from channel.state_dataclass import ChannelState
from config import ChannelConfig
from constants import HEARTBEAT_TIMEOUT_CLOSE_CODE


CONFIG = ChannelConfig(
    endpoint="ws://channel.test/ws",
    heartbeat_payload='{"type":"ping"}',
    heartbeat_interval_ms=1000,
)


def connected(transport_id: int = 1) -> ChannelState:
    return ChannelState(
        config=CONFIG,
        status=ConnectionState.CONNECTED,
        transport_id=transport_id,
        last_transport_id=transport_id,
    )


def heartbeat_due() -> HeartbeatDue:
    return HeartbeatDue(event_type=EventType.HEARTBEAT_DUE, ts_ms=1000)


def heartbeat_timeout() -> HeartbeatTimeout:
    return HeartbeatTimeout(event_type=EventType.HEARTBEAT_TIMEOUT, ts_ms=2000)


def msg(data: str | bytes, transport_id: int = 1) -> TransportMessage:
    return TransportMessage(
        event_type=EventType.TRANSPORT_MESSAGE,
        ts_ms=0,
        transport_id=transport_id,
        data=data,
    )


def timer_ops(commands: tuple[Command, ...]) -> list[tuple[str, TimerName]]:
    ops: list[tuple[str, TimerName]] = []
    for c in commands:
        if isinstance(c, StartTimer):
            ops.append(("start", c.timer))
        elif isinstance(c, CancelTimer):
            ops.append(("cancel", c.timer))
    return ops


# ---------------------------------------------------------------------
# Heartbeat send / timeout
# ---------------------------------------------------------------------

def test_heartbeat_due_sends_payload_and_arms_timeout():
    state = connected()

    new_state, cmds = reduce(state, heartbeat_due())

    assert new_state == state
    assert SendFrame(transport_id=1, payload='{"type":"ping"}') in cmds
    timeouts = [
        c for c in cmds
        if isinstance(c, StartTimer) and c.timer is TimerName.HEARTBEAT_TIMEOUT
    ]
    assert len(timeouts) == 1
    assert timeouts[0].duration_ms == 1000
    assert timeouts[0].timeout_event_type is EventType.HEARTBEAT_TIMEOUT


def test_heartbeat_due_is_suppressed_when_not_connected():
    for status in (
        ConnectionState.CONNECTING,
        ConnectionState.DISCONNECTING,
        ConnectionState.DISCONNECTED,
    ):
        state = ChannelState(config=CONFIG, status=status, transport_id=1, last_transport_id=1)

        _, cmds = reduce(state, heartbeat_due())

        assert not any(isinstance(c, SendFrame) for c in cmds), status
        assert timer_ops(cmds) == []


def test_heartbeat_timeout_self_closes_with_reserved_code():
    state = connected(transport_id=7)

    new_state, cmds = reduce(state, heartbeat_timeout())

    assert new_state == state
    closes = [c for c in cmds if isinstance(c, CloseTransport)]
    assert len(closes) == 1
    assert closes[0].transport_id == 7
    assert closes[0].code == HEARTBEAT_TIMEOUT_CLOSE_CODE
    # Must stay attached so the close feeds the abnormal path.
    assert closes[0].detach is False


def test_heartbeat_scenario_timeout_triggers_exactly_one_reconnect():
    state = connected()

    state, cmds = reduce(state, heartbeat_due())
    assert any(isinstance(c, SendFrame) for c in cmds)

    state, cmds = reduce(state, heartbeat_timeout())
    assert any(isinstance(c, CloseTransport) for c in cmds)

    state, cmds = reduce(state, TransportClosed(
        event_type=EventType.TRANSPORT_CLOSED,
        ts_ms=2001,
        transport_id=1,
        code=HEARTBEAT_TIMEOUT_CLOSE_CODE,
        reason="heartbeat timeout",
    ))

    reconnects = [
        c for c in cmds
        if isinstance(c, StartTimer) and c.timer is TimerName.RECONNECT
    ]
    assert len(reconnects) == 1
    assert state.status is ConnectionState.DISCONNECTED


# ---------------------------------------------------------------------
# Inbound traffic
# ---------------------------------------------------------------------

def test_any_message_restarts_heartbeat_cycle():
    state = connected()

    _, cmds = reduce(state, msg('{"msg_id": 12, "text": "hi"}'))

    assert timer_ops(cmds) == [
        ("cancel", TimerName.HEARTBEAT_SEND),
        ("cancel", TimerName.HEARTBEAT_TIMEOUT),
        ("start", TimerName.HEARTBEAT_SEND),
    ]


def test_message_updates_last_message():
    state = connected()

    new_state, _ = reduce(state, msg('{"msg_id": 12, "text": "hi"}'))

    assert new_state.last_message == {"msg_id": 12, "text": "hi"}


def test_heartbeat_ack_is_filtered_but_resets_timeout():
    for ack in ('{"msg_id": 0}', '{"msg_id": "0"}', '{"msg_id": 0.0}', b'{"msg_id": 0}'):
        state = connected()

        new_state, cmds = reduce(state, msg(ack))

        assert new_state.last_message is None, ack
        assert ("cancel", TimerName.HEARTBEAT_TIMEOUT) in timer_ops(cmds)
        assert ("start", TimerName.HEARTBEAT_SEND) in timer_ops(cmds)


def test_heartbeat_ack_keeps_previous_message():
    state, _ = reduce(connected(), msg('{"msg_id": 3}'))

    state, _ = reduce(state, msg('{"msg_id": 0}'))

    assert state.last_message == {"msg_id": 3}


def test_undecodable_payload_is_dropped_but_counts_as_traffic():
    state = connected()

    new_state, cmds = reduce(state, msg("not json"))

    assert new_state == state
    assert ("start", TimerName.HEARTBEAT_SEND) in timer_ops(cmds)
    assert any(
        isinstance(c, LogEvent) and c.event["decision"] == "payload_dropped"
        for c in cmds
    )


def test_deeply_nested_payload_is_dropped_and_heartbeat_restarts():
    state = connected()

    new_state, cmds = reduce(state, msg("[" * 200000))

    assert new_state == state
    assert ("start", TimerName.HEARTBEAT_SEND) in timer_ops(cmds)
    assert any(
        isinstance(c, LogEvent) and c.event["decision"] == "payload_dropped"
        for c in cmds
    )


def test_non_object_payloads_are_delivered():
    state = connected()

    new_state, _ = reduce(state, msg("[1, 2, 3]"))

    assert new_state.last_message == [1, 2, 3]


def test_stale_message_does_not_touch_heartbeat():
    state = connected(transport_id=2)

    new_state, cmds = reduce(state, msg('{"msg_id": 5}', transport_id=1))

    assert new_state == state
    assert timer_ops(cmds) == []
