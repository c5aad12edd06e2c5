"""
CONSTANTS
---------
Single source of truth for all behavioral constants of the channel client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Per-channel tunables live in config.ChannelConfig; these are fixed.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Close codes  [wire contract]
# =============================================================================

# Intentional / normal closure. The only code that does not trigger reconnect.
NORMAL_CLOSURE_CODE: Final[int] = 1000
NORMAL_CLOSURE_REASON: Final[str] = "normal closure"

# Reserved application code used when we close the socket ourselves
# because no traffic arrived within the heartbeat timeout window.
HEARTBEAT_TIMEOUT_CLOSE_CODE: Final[int] = 4444
HEARTBEAT_TIMEOUT_CLOSE_REASON: Final[str] = "heartbeat timeout"

# Reported when the peer vanished without a close frame. Never sent.
ABNORMAL_CLOSURE_CODE: Final[int] = 1006

# Sent when the transport aborts a connection after a local I/O failure.
INTERNAL_ERROR_CLOSE_CODE: Final[int] = 1011

# =============================================================================
# Heartbeat acknowledgment  [wire contract]
# =============================================================================

HEARTBEAT_ACK_FIELD: Final[str] = "msg_id"
HEARTBEAT_ACK_VALUE: Final[int] = 0

# =============================================================================
# Timing
# =============================================================================

# Connect while the network is known to be down: settle back to
# DISCONNECTED after this delay instead of opening a doomed transport.
OFFLINE_GRACE_DELAY_MS: Final[int] = 500

# Reconnect delay grows by this step per attempt, floored at the base interval.
RECONNECT_STEP_MS: Final[int] = 1000

# =============================================================================
# Defaults for ChannelConfig
# =============================================================================

DEFAULT_HEARTBEAT_PAYLOAD: Final[str] = '{"msg_id":0}'
DEFAULT_HEARTBEAT_INTERVAL_MS: Final[int] = 60 * 1000
DEFAULT_RECONNECT_BASE_INTERVAL_MS: Final[int] = 5000
DEFAULT_MAX_RECONNECT_ATTEMPTS: Final[int] = 10

# =============================================================================
# WebSocket transport
# =============================================================================

WS_MAX_MESSAGE_BYTES: Final[int] = 2**22
WS_OPEN_TIMEOUT_S: Final[float] = 10.0
WS_CLOSE_TIMEOUT_S: Final[float] = 5.0
