"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide typed, immutable config objects

Non-responsibilities:
- No connection logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_HEARTBEAT_PAYLOAD,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_BASE_INTERVAL_MS,
)


@dataclass(frozen=True)
class ChannelConfig:
    """
    Immutable configuration for a single logical channel.

    One ConnectionManager is constructed with exactly one ChannelConfig
    and never sees another.
    """

    endpoint: str
    heartbeat_payload: str | bytes = DEFAULT_HEARTBEAT_PAYLOAD
    heartbeat_interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS
    reconnect_base_interval_ms: int = DEFAULT_RECONNECT_BASE_INTERVAL_MS
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ValueError("endpoint must not be empty")
        if self.heartbeat_interval_ms <= 0:
            raise ValueError(
                f"heartbeat_interval_ms must be positive, got {self.heartbeat_interval_ms}"
            )
        if self.reconnect_base_interval_ms <= 0:
            raise ValueError(
                "reconnect_base_interval_ms must be positive, "
                f"got {self.reconnect_base_interval_ms}"
            )
        if self.max_reconnect_attempts < 0:
            raise ValueError(
                f"max_reconnect_attempts must be >= 0, got {self.max_reconnect_attempts}"
            )

    @staticmethod
    def load_from_env() -> ChannelConfig:
        """
        Load channel configuration from environment variables.

        Raises:
            KeyError if CHANNEL_ENDPOINT is missing.
            ValueError if a numeric variable is malformed or out of range.
        """
        return ChannelConfig(
            endpoint=os.environ["CHANNEL_ENDPOINT"],
            heartbeat_payload=os.environ.get(
                "CHANNEL_HEARTBEAT_PAYLOAD", DEFAULT_HEARTBEAT_PAYLOAD
            ),
            heartbeat_interval_ms=int(os.environ.get(
                "CHANNEL_HEARTBEAT_INTERVAL_MS", DEFAULT_HEARTBEAT_INTERVAL_MS
            )),
            reconnect_base_interval_ms=int(os.environ.get(
                "CHANNEL_RECONNECT_INTERVAL_MS", DEFAULT_RECONNECT_BASE_INTERVAL_MS
            )),
            max_reconnect_attempts=int(os.environ.get(
                "CHANNEL_MAX_RECONNECT_ATTEMPTS", DEFAULT_MAX_RECONNECT_ATTEMPTS
            )),
        )


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed downward to the
    channel factory.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Channel
    # ------------------------------------------------------------------

    channel: ChannelConfig

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            KeyError if required variables are missing.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
            channel=ChannelConfig.load_from_env(),
        )
