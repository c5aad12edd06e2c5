"""
Reconnect procedure tests.

Reducer-only guarantees:
- Normal closure never reconnects; every other code does
- Backoff delay = max(base, attempts * 1000), counter advanced on schedule
- Attempt ceiling parks the channel in DISCONNECTED
"""

from channel.commands import (
    CancelTimer,
    Command,
    LogEvent,
    OpenTransport,
    ReleaseTransport,
    StartTimer,
)
from channel.enums.state import ConnectionState
from channel.enums.timer import TimerName
from channel.events import (
    EventType,
    ReconnectDue,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from channel.reducer import reduce
from channel.retry import RetryAttempt
from channel.state_dataclass import ChannelState
from config import ChannelConfig
from constants import HEARTBEAT_TIMEOUT_CLOSE_CODE


def _config(max_attempts: int = 10, base_ms: int = 5000) -> ChannelConfig:
    return ChannelConfig(
        endpoint="ws://channel.test/ws",
        heartbeat_interval_ms=1000,
        reconnect_base_interval_ms=base_ms,
        max_reconnect_attempts=max_attempts,
    )


def _connected(config: ChannelConfig, transport_id: int = 1, attempt: int = 0) -> ChannelState:
    return ChannelState(
        config=config,
        status=ConnectionState.CONNECTED,
        transport_id=transport_id,
        last_transport_id=transport_id,
        reconnect_attempt=RetryAttempt(attempt=attempt),
    )


def _closed(transport_id: int, code: int) -> TransportClosed:
    return TransportClosed(
        event_type=EventType.TRANSPORT_CLOSED,
        ts_ms=0,
        transport_id=transport_id,
        code=code,
        reason="",
    )


def _reconnect_due() -> ReconnectDue:
    return ReconnectDue(event_type=EventType.RECONNECT_DUE, ts_ms=0, network_available=True)


def _reconnect_timers(commands: tuple[Command, ...]) -> list[StartTimer]:
    return [
        c for c in commands
        if isinstance(c, StartTimer) and c.timer is TimerName.RECONNECT
    ]


def test_normal_closure_does_not_reconnect():
    state = _connected(_config())

    new_state, cmds = reduce(state, _closed(1, 1000))

    assert new_state.status is ConnectionState.DISCONNECTED
    assert new_state.transport_id == 0
    assert _reconnect_timers(cmds) == []
    assert new_state.reconnect_attempt == RetryAttempt(attempt=0)
    assert new_state.last_error is None


def test_abnormal_codes_reconnect():
    for code in (1001, 1006, 1011, HEARTBEAT_TIMEOUT_CLOSE_CODE):
        state = _connected(_config())

        new_state, cmds = reduce(state, _closed(1, code))

        assert new_state.status is ConnectionState.DISCONNECTED
        assert len(_reconnect_timers(cmds)) == 1, code
        assert new_state.reconnect_attempt == RetryAttempt(attempt=1)
        assert str(code) in (new_state.last_error or "")


def test_abnormal_close_cancels_heartbeat():
    state = _connected(_config())

    _, cmds = reduce(state, _closed(1, 1006))

    cancelled = {c.timer for c in cmds if isinstance(c, CancelTimer)}
    assert {TimerName.HEARTBEAT_SEND, TimerName.HEARTBEAT_TIMEOUT} <= cancelled


def test_delay_is_floored_at_base_interval():
    config = _config(base_ms=5000)

    for attempt, expected in ((0, 5000), (3, 5000), (5, 5000), (6, 6000), (9, 9000)):
        state = _connected(config, attempt=attempt)

        new_state, cmds = reduce(state, _closed(1, 1006))

        timers = _reconnect_timers(cmds)
        assert [t.duration_ms for t in timers] == [expected], attempt
        assert new_state.reconnect_attempt == RetryAttempt(attempt=attempt + 1)


def test_transport_error_releases_handle_and_reconnects():
    state = ChannelState(
        config=_config(),
        status=ConnectionState.CONNECTING,
        transport_id=2,
        last_transport_id=2,
    )
    event = TransportError(
        event_type=EventType.TRANSPORT_ERROR,
        ts_ms=0,
        transport_id=2,
        reason="ws_connect_failed: ConnectionRefusedError()",
    )

    new_state, cmds = reduce(state, event)

    assert new_state.status is ConnectionState.DISCONNECTED
    assert new_state.transport_id == 0
    assert new_state.last_error == "ws_connect_failed: ConnectionRefusedError()"
    assert ReleaseTransport(transport_id=2) in cmds
    assert len(_reconnect_timers(cmds)) == 1


def test_counter_advances_on_schedule_not_on_fire():
    """A second failure before the first delay elapses sees the escalated count."""
    config = _config(base_ms=1000)
    state = _connected(config, attempt=4)

    after_first, first_cmds = reduce(state, _closed(1, 1006))
    assert after_first.reconnect_attempt == RetryAttempt(attempt=5)
    assert _reconnect_timers(first_cmds)[0].duration_ms == 4000

    # A new connect() (e.g. manual) fails before the reconnect timer fires.
    reopened = ChannelState(
        config=config,
        status=ConnectionState.CONNECTING,
        transport_id=2,
        last_transport_id=2,
        reconnect_attempt=after_first.reconnect_attempt,
    )
    after_second, second_cmds = reduce(reopened, _closed(2, 1006))

    assert after_second.reconnect_attempt == RetryAttempt(attempt=6)
    assert _reconnect_timers(second_cmds)[0].duration_ms == 5000


def test_reconnect_due_opens_new_transport():
    state = ChannelState(
        config=_config(),
        status=ConnectionState.DISCONNECTED,
        last_transport_id=1,
        reconnect_attempt=RetryAttempt(attempt=1),
    )

    new_state, cmds = reduce(state, _reconnect_due())

    assert new_state.status is ConnectionState.CONNECTING
    assert [c.transport_id for c in cmds if isinstance(c, OpenTransport)] == [2]
    assert new_state.reconnect_attempt == RetryAttempt(attempt=1)


def test_reconnect_due_while_active_is_ignored():
    for status in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
        state = ChannelState(
            config=_config(),
            status=status,
            transport_id=1,
            last_transport_id=1,
        )

        new_state, cmds = reduce(state, _reconnect_due())

        assert new_state == state
        assert len(cmds) == 1
        assert isinstance(cmds[0], LogEvent)
        assert cmds[0].event["decision"] == "ignore"


def test_exhausted_attempts_park_in_disconnected():
    state = _connected(_config(max_attempts=2), attempt=2)

    new_state, cmds = reduce(state, _closed(1, 1006))

    assert new_state.status is ConnectionState.DISCONNECTED
    assert _reconnect_timers(cmds) == []
    assert CancelTimer(timer=TimerName.RECONNECT) in cmds
    assert any(
        isinstance(c, LogEvent) and c.event["decision"] == "reconnect_exhausted"
        for c in cmds
    )


def test_zero_max_attempts_never_schedules():
    state = _connected(_config(max_attempts=0))

    _, cmds = reduce(state, _closed(1, 1006))

    assert _reconnect_timers(cmds) == []


def test_three_failures_with_max_two_schedule_exactly_two_timers():
    """
    maxReconnectAttempts=2: three consecutive abnormal closes with no
    successful open between them schedule exactly two reconnect timers.
    """
    config = _config(max_attempts=2)
    state = _connected(config)
    scheduled: list[StartTimer] = []

    # Failure 1: the live connection drops.
    state, cmds = reduce(state, _closed(state.transport_id, 1006))
    scheduled += _reconnect_timers(cmds)

    # Failures 2 and 3: each reconnect opens a transport that fails again.
    for _ in range(2):
        state, cmds = reduce(state, _reconnect_due())
        assert state.status is ConnectionState.CONNECTING
        scheduled += _reconnect_timers(cmds)

        state, cmds = reduce(state, _closed(state.transport_id, 1006))
        scheduled += _reconnect_timers(cmds)

    assert len(scheduled) == 2
    assert state.status is ConnectionState.DISCONNECTED
    assert state.reconnect_attempt == RetryAttempt(attempt=2)


def test_successful_reopen_resets_counter_for_next_failure():
    config = _config(max_attempts=2)
    state = _connected(config, attempt=0)

    state, _ = reduce(state, _closed(1, 1006))
    state, _ = reduce(state, _reconnect_due())
    state, _ = reduce(state, TransportOpened(
        event_type=EventType.TRANSPORT_OPENED, ts_ms=0, transport_id=state.transport_id
    ))
    assert state.reconnect_attempt == RetryAttempt(attempt=0)

    state, cmds = reduce(state, _closed(state.transport_id, 1006))
    assert [t.duration_ms for t in _reconnect_timers(cmds)] == [5000]
