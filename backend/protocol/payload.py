# backend/protocol/payload.py
"""
JSON payload helpers for the channel wire contract.

- Inbound payloads are UTF-8 JSON (text frames, or binary frames holding
  UTF-8 bytes).
- A JSON object whose "msg_id" coerces numerically to 0 is a heartbeat
  acknowledgment and is never surfaced as a message.

Usage example:

    try:
        msg = decode_payload(event.data)
    except PayloadDecodeError as e:
        log_event({"event_type": "payload_dropped", "error": str(e)})
    else:
        if not is_heartbeat_ack(msg):
            deliver(msg)
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from constants import HEARTBEAT_ACK_FIELD, HEARTBEAT_ACK_VALUE


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """Base class for payload protocol errors."""


class PayloadDecodeError(ProtocolError):
    """
    Raised when an inbound payload is not valid UTF-8 JSON.

    The payload is unsafe to deliver and must be dropped. It still counts
    as traffic for liveness purposes.
    """


# -------------------------
# Low-level helpers
# -------------------------

_DECIMAL = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", re.ASCII)
_RADIX = {"0x": 16, "0o": 8, "0b": 2}


def _as_text(value: Any) -> str:
    """String form of a JSON value as JavaScript's String() would render it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if math.isnan(value):
            return "NaN"
        return repr(value)
    if isinstance(value, list):
        return ",".join(_as_text(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def _parse_number(text: str) -> float:
    text = text.strip()
    if not text:
        return 0.0
    base = _RADIX.get(text[:2].lower())
    if base is not None:
        digits = text[2:]
        if not (digits.isascii() and digits.isalnum()):
            return math.nan
        try:
            return float(int(digits, base))
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf
    if not _DECIMAL.fullmatch(text):
        return math.nan
    return float(text.replace("Infinity", "inf"))


def coerce_number(value: Any) -> float:
    """
    Numeric coercion following JavaScript's unary plus.

    - numbers pass through (bools count as 1/0)
    - null is 0
    - strings are stripped; empty is 0; decimal, Infinity and unsigned
      0x/0o/0b literals parse; anything else is NaN
    - arrays coerce through their comma-joined string form, so [] and [0]
      are 0 while [1, 2] is NaN
    - objects are NaN
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        return _parse_number(value)
    if isinstance(value, list):
        try:
            return _parse_number(_as_text(value))
        except RecursionError:
            return math.nan
    return math.nan


# -------------------------
# Public API
# -------------------------

def decode_payload(data: str | bytes) -> Any:
    """
    Decode an inbound frame into a JSON value.

    Raises:
        PayloadDecodeError if bytes are not UTF-8 or text is not JSON.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadDecodeError(f"payload is not UTF-8: {e}") from e
    else:
        text = data

    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the parser can follow.
        raise PayloadDecodeError(f"payload is not JSON: {e}") from e


def is_heartbeat_ack(message: Any) -> bool:
    """
    Return True if a decoded payload is a heartbeat acknowledgment.

    Only JSON objects carrying the reserved field qualify; a missing
    field is not an acknowledgment.
    """
    if not isinstance(message, dict):
        return False
    if HEARTBEAT_ACK_FIELD not in message:
        return False
    return coerce_number(message[HEARTBEAT_ACK_FIELD]) == HEARTBEAT_ACK_VALUE


def encode_payload(message: Any) -> str:
    """Encode a JSON value as a compact text frame."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))
