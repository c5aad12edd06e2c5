"""
Network reachability tracking.

Pure data fed by external online/offline signals. The ConnectionManager
samples is_online() when a connect is attempted; nothing here probes the
network itself.
"""

from __future__ import annotations


class NetworkMonitor:
    """Last known network reachability. Assumed online until told otherwise."""

    def __init__(self, *, online: bool = True) -> None:
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def mark_online(self) -> None:
        self._online = True

    def mark_offline(self) -> None:
        self._online = False
