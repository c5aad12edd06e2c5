# pylint: disable=missing-module-docstring,missing-function-docstring
import math

import pytest

from protocol.payload import (
    PayloadDecodeError,
    ProtocolError,
    coerce_number,
    decode_payload,
    encode_payload,
    is_heartbeat_ack,
)


# ---------------------------------------------------------------------
# decode_payload
# ---------------------------------------------------------------------

def test_decode_text_and_utf8_bytes():
    assert decode_payload('{"a": 1}') == {"a": 1}
    assert decode_payload('{"text": "héllo"}'.encode("utf-8")) == {"text": "héllo"}


def test_decode_rejects_invalid_json():
    with pytest.raises(PayloadDecodeError):
        decode_payload("{not json")


def test_decode_rejects_invalid_utf8():
    with pytest.raises(PayloadDecodeError):
        decode_payload(b"\xff\xfe{}")


def test_decode_error_is_protocol_error():
    assert issubclass(PayloadDecodeError, ProtocolError)


# ---------------------------------------------------------------------
# Heartbeat acknowledgment detection
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "message",
    [
        {"msg_id": 0},
        {"msg_id": "0"},
        {"msg_id": " 0 "},
        {"msg_id": ""},
        {"msg_id": None},
        {"msg_id": False},
        {"msg_id": -0.0},
        {"msg_id": []},
        {"msg_id": [0]},
        {"msg_id": [[""]]},
        {"msg_id": ["0"]},
        {"msg_id": "0x0"},
        {"msg_id": "0b0"},
        {"msg_id": "0.0e5"},
        {"msg_id": ".0"},
    ],
)
def test_heartbeat_ack_values(message):
    assert is_heartbeat_ack(message) is True


@pytest.mark.parametrize(
    "message",
    [
        {"msg_id": 1},
        {"msg_id": "abc"},
        {"msg_id": True},
        {"msg_id": [0, 0]},
        {"msg_id": [{}]},
        {"msg_id": {}},
        {"msg_id": "0_0"},
        {"msg_id": "-0x0"},
        {"msg_id": "0x"},
        {"msg_id": "."},
        {"other": 0},
        [0],
        0,
        "0",
        None,
    ],
)
def test_not_heartbeat_ack(message):
    assert is_heartbeat_ack(message) is False


def test_coerce_number_nan_for_objects_and_junk():
    assert math.isnan(coerce_number({}))
    assert math.isnan(coerce_number("1x"))
    assert math.isnan(coerce_number("inf"))
    assert math.isnan(coerce_number("1_000"))


@pytest.mark.parametrize(
    "value, expected",
    [
        ("  12.5\n", 12.5),
        ("1.", 1.0),
        ("-1e3", -1000.0),
        ("0xff", 255.0),
        ("0O17", 15.0),
        ("0b101", 5.0),
        ("Infinity", math.inf),
        ("-Infinity", -math.inf),
        ([7], 7.0),
        ([[" 3 "]], 3.0),
        ([None], 0.0),
    ],
)
def test_coerce_number_follows_javascript_unary_plus(value, expected):
    assert coerce_number(value) == expected


def test_decode_rejects_nesting_beyond_parser_depth():
    with pytest.raises(PayloadDecodeError):
        decode_payload("[" * 200000)


def test_encode_payload_is_compact():
    assert encode_payload({"a": [1, 2], "b": "é"}) == '{"a":[1,2],"b":"é"}'
