"""
JSONL event logger.

One JSON object per line, written and flushed immediately. Callers build
the event dict; this module only serializes it and never raises.

Channel code logs through channel_logger(channel_id), which stamps every
event with the channel it belongs to and a wall-clock ts_ms when the
caller did not supply one.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Mapping, TextIO


EventLogger = Callable[[Mapping[str, Any]], None]

_stream: TextIO | None = None


def _write_line(line: str) -> None:
    stream = _stream or sys.stdout
    stream.write(line + "\n")
    stream.flush()


def _discard(line: str) -> None:  # pylint: disable=unused-argument
    return None


# Output sink; tests patch this directly.
_print: Callable[[str], None] = _write_line


def configure(*, enabled: bool, stream: TextIO | None = None) -> None:
    """
    Select where events go.

    enabled=False drops every event (ENABLE_JSON_LOGS=0). stream defaults
    to whatever sys.stdout is at write time.
    """
    global _print, _stream  # pylint: disable=global-statement
    _stream = stream
    _print = _write_line if enabled else _discard


def _serialize(event: Mapping[str, Any]) -> str:
    try:
        return json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Keep enough to correlate the failure with the surrounding lines.
        return json.dumps(
            {
                "ts_ms": event.get("ts_ms"),
                "event_type": "LOGGER_SERIALIZATION_ERROR",
                "channel_id": event.get("channel_id"),
                "error": str(e),
                "original_event_repr": repr(event),
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )


def log_event(event: Mapping[str, Any]) -> None:
    """Write one event as one JSONL line."""
    _print(_serialize(event))


def channel_logger(channel_id: str) -> EventLogger:
    """Return a log_event variant bound to one channel."""

    def _log(event: Mapping[str, Any]) -> None:
        stamped: dict[str, Any] = {"ts_ms": time.time_ns() // 1_000_000}
        stamped.update(event)
        stamped["channel_id"] = channel_id
        log_event(stamped)

    return _log
