"""Tests for the vessel network wire format."""

from __future__ import annotations

import asyncio
import json
import struct
from datetime import datetime, timezone

import pytest

from boatvoice.network.wire import (
    MAX_FRAME_SIZE,
    FrameError,
    PacketDecodeError,
    decode_packet,
    encode_packet,
    read_packet,
)


def _body(**overrides) -> dict:
    body = {
        "timestamp": "2016-02-28-19:04:12.500",
        "prio": 3,
        "src": 7,
        "dst": 255,
        "pgn": 128267,
        "description": "Water Depth",
        "fields": {"Depth": 12.5, "Offset": 0},
    }
    body.update(overrides)
    return body


def _payload(body: dict) -> bytes:
    return json.dumps(body).encode("utf-8")


def _reader(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def test_decode_full_packet():
    packet = decode_packet(_payload(_body()))

    assert packet.timestamp == datetime(2016, 2, 28, 19, 4, 12, 500000, tzinfo=timezone.utc)
    assert packet.priority == 3
    assert packet.source_id == 7
    assert packet.dest_id == 255
    assert packet.pgn == 128267
    assert packet.description == "Water Depth"
    assert dict(packet.fields) == {"Depth": 12.5, "Offset": 0.0}


def test_decode_applies_header_defaults():
    packet = decode_packet(_payload({"fields": {"Heading": 90}}))

    assert packet.priority == 0
    assert packet.source_id == 0
    assert packet.dest_id == 255
    assert packet.description == ""
    assert packet.timestamp.tzinfo is not None


def test_decode_drops_non_numeric_fields():
    packet = decode_packet(_payload(_body(fields={
        "Wind Speed": 6.1, "Reference": "Apparent", "Valid": True, "Spare": None,
    })))

    assert dict(packet.fields) == {"Wind Speed": 6.1}


def test_decode_drops_non_finite_fields():
    payload = b'{"fields": {"Depth": Infinity, "Heading": NaN, "Wind Angle": 12}}'

    assert dict(decode_packet(payload).fields) == {"Wind Angle": 12.0}


def test_decoded_fields_are_read_only():
    packet = decode_packet(_payload(_body()))
    with pytest.raises(TypeError):
        packet.fields["Depth"] = 1.0


@pytest.mark.parametrize("payload", [
    b"\xff\xfe not utf-8",
    b"{not json",
    b"[1, 2, 3]",
    b'{"prio": 2}',
    b'{"fields": [1, 2]}',
])
def test_decode_rejects_malformed_payloads(payload):
    with pytest.raises(PacketDecodeError):
        decode_packet(payload)


def test_decode_rejects_bad_timestamp():
    with pytest.raises(PacketDecodeError, match="timestamp"):
        decode_packet(_payload(_body(timestamp="yesterday")))


def test_decode_rejects_non_integer_header():
    with pytest.raises(PacketDecodeError, match="src"):
        decode_packet(_payload(_body(src="one")))


def test_encode_prefixes_big_endian_length():
    frame = encode_packet({"fields": {"Depth": 3.0}})

    (length,) = struct.unpack(">I", frame[:4])
    assert length == len(frame) - 4
    assert json.loads(frame[4:]) == {"fields": {"Depth": 3.0}}


@pytest.mark.asyncio
async def test_read_packet_sequence_then_end_of_stream():
    data = encode_packet(_body()) + encode_packet(_body(pgn=127250, fields={"Heading": 181.0}))
    reader = _reader(data)

    first = await read_packet(reader)
    second = await read_packet(reader)

    assert first.fields["Depth"] == 12.5
    assert second.fields["Heading"] == 181.0
    assert await read_packet(reader) is None


@pytest.mark.asyncio
async def test_read_packet_truncated_header():
    with pytest.raises(FrameError):
        await read_packet(_reader(b"\x00\x00"))


@pytest.mark.asyncio
async def test_read_packet_truncated_body():
    frame = encode_packet(_body())
    with pytest.raises(FrameError):
        await read_packet(_reader(frame[:-3]))


@pytest.mark.asyncio
async def test_read_packet_oversized_frame():
    with pytest.raises(FrameError, match="exceeds"):
        await read_packet(_reader(struct.pack(">I", MAX_FRAME_SIZE + 1)))


@pytest.mark.asyncio
async def test_read_packet_bad_payload_keeps_stream_aligned():
    bad = b"{oops"
    data = struct.pack(">I", len(bad)) + bad + encode_packet(_body())
    reader = _reader(data)

    with pytest.raises(PacketDecodeError):
        await read_packet(reader)
    packet = await read_packet(reader)
    assert packet.fields["Depth"] == 12.5
