"""
Lifecycle binding between a ConnectionManager and its environment.

Responsibilities:
- Turn the "should be connected" session flag into connect()/disconnect()
- Turn network online/offline signals into reachability updates and retries
- Re-expose status as UI-facing text (only while not connected)
- Re-expose the latest non-heartbeat message as a single-slot cell

Still NOT responsible for:
- Any state machine logic
- Backoff decisions
- Producing the session flag or the network signals
"""

from __future__ import annotations

from typing import Any, Final

from channel.enums.state import ConnectionState
from channel.manager import ConnectionManager
from config import ChannelConfig
from session.network import NetworkMonitor
from session.observable import LatestValueCell, ObservableValue, Unsubscribe
from transport.base import TransportFactory


STATUS_TEXT: Final[dict[ConnectionState, str]] = {
    ConnectionState.CONNECTING: "Connecting...",
    ConnectionState.CONNECTED: "Connected",
    ConnectionState.DISCONNECTING: "Closing connection",
    ConnectionState.DISCONNECTED: "Disconnected",
}


class LifecycleBinding:
    """
    One binding == one ConnectionManager.

    The session flag may be pushed with set_should_connect() or bound from
    an ObservableValue[bool]; a bound flag is applied immediately and then
    on every change.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        network: NetworkMonitor | None = None,
        session_flag: ObservableValue[bool] | None = None,
    ) -> None:
        self._manager = manager
        self._network = network or NetworkMonitor()
        self._should_connect: bool | None = None

        self.status_text: ObservableValue[str] = ObservableValue("", name="status_text")
        self.latest_message = LatestValueCell(name="latest_message")

        self._unsubscribes: list[Unsubscribe] = [
            manager.status.subscribe(self._on_status),
            manager.last_message.subscribe(self._on_message),
        ]

        if session_flag is not None:
            self._unsubscribes.append(session_flag.subscribe(self.set_should_connect))
            self.set_should_connect(session_flag.value)

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def network(self) -> NetworkMonitor:
        return self._network

    @property
    def status(self) -> ConnectionState:
        return self._manager.status.value

    # ------------------------------------------------------------------
    # External signals
    # ------------------------------------------------------------------

    def set_should_connect(self, should_connect: bool) -> None:
        """Apply the session flag. Repeating the current value is a no-op."""
        if should_connect == self._should_connect:
            return
        self._should_connect = should_connect

        if should_connect:
            if self.status not in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
                self._manager.connect()
        else:
            self._manager.disconnect()

    def on_network_online(self) -> None:
        """Network restored: record it and retry right away, ignoring backoff."""
        self._network.mark_online()
        self._log("network_online")
        self.retry_connect()

    def on_network_offline(self) -> None:
        """Network lost: record it so the next connect() does not open a doomed transport."""
        self._network.mark_offline()
        self._log("network_offline")

    def retry_connect(self) -> None:
        self._manager.retry_connect()

    def close(self) -> None:
        """Stop observing. Does not disconnect the manager."""
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    # ------------------------------------------------------------------
    # Manager outputs
    # ------------------------------------------------------------------

    def _on_status(self, status: ConnectionState) -> None:
        if status is not ConnectionState.CONNECTED:
            self.status_text.set(STATUS_TEXT[status])

    def _on_message(self, message: Any) -> None:
        if message is not None:
            self.latest_message.set(message)

    def _log(self, event_type: str) -> None:
        self._manager.log({
            "event_type": event_type,
            "status": self.status.value,
        })


def create_channel(
    config: ChannelConfig,
    *,
    transport_factory: TransportFactory | None = None,
    session_flag: ObservableValue[bool] | None = None,
    network: NetworkMonitor | None = None,
) -> LifecycleBinding:
    """
    Wire a NetworkMonitor, a ConnectionManager and a LifecycleBinding.

    The manager consults the monitor for reachability on every connect.
    """
    network = network or NetworkMonitor()
    manager = ConnectionManager(
        config,
        transport_factory=transport_factory,
        is_network_available=network.is_online,
    )
    return LifecycleBinding(manager, network=network, session_flag=session_flag)
