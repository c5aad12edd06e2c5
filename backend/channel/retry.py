"""
Reconnect policy helpers.

Purpose:
- Centralize reconnect rules
- Keep reducer pure
- Allow deterministic reconnect decisions in tests

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from config import ChannelConfig
from constants import RECONNECT_STEP_MS


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable reconnect attempt counter.

    Semantics:
    - attempt == 0: no reconnect scheduled since the last successful open.
    - attempt == N: N reconnects have been scheduled since then.

    The counter is advanced when a reconnect is SCHEDULED, not when it
    fires, so a second failure arriving before the first delay elapses
    already sees the escalated count.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """
    Advance to the next reconnect attempt.

    Returns a new RetryAttempt with attempt incremented by 1.
    """
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh reconnect attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Policy
# =============================================================================

def should_reconnect(*, config: ChannelConfig, attempt: RetryAttempt) -> bool:
    """
    Returns True if another automatic reconnect may be scheduled.

    attempt = number of reconnects already scheduled
    """
    return attempt.attempt < config.max_reconnect_attempts


# =============================================================================
# Delay Calculation
# =============================================================================

def get_reconnect_delay_ms(*, config: ChannelConfig, attempt: RetryAttempt) -> int:
    """
    Returns delay before the next reconnect.

    Grows by whole steps per attempt but never drops below the
    configured base interval:

        max(reconnect_base_interval_ms, attempt * RECONNECT_STEP_MS)
    """
    return max(
        config.reconnect_base_interval_ms,
        attempt.attempt * RECONNECT_STEP_MS,
    )
