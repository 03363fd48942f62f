"""Vessel network wire format.

Each packet travels as one frame:
[4-byte big-endian length][UTF-8 JSON bytes]

The JSON body follows the analyzer layout used by the instrument gateway:

    {"timestamp": "2016-02-28-19:04:12.500", "prio": 2, "src": 1, "dst": 255,
     "pgn": 128267, "description": "Water Depth",
     "fields": {"Depth": 12.5, "Offset": 0.0}}

Only finite numeric field values are kept; anything else is dropped at
decode time.
"""

from __future__ import annotations

import asyncio
import json
import math
import struct
from collections.abc import Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from boatvoice.core.models import Packet

HEADER = struct.Struct(">I")

# Analyzer packets are a few hundred bytes; anything this large is garbage.
MAX_FRAME_SIZE = 64 * 1024

TIMESTAMP_FORMAT = "%Y-%m-%d-%H:%M:%S.%f"

DEFAULT_DEST = 255


class WireError(Exception):
    """Base class for wire format failures."""


class FrameError(WireError):
    """The byte stream is no longer aligned on frame boundaries."""


class PacketDecodeError(WireError):
    """A complete frame whose payload is not a valid packet."""


def format_timestamp(ts: datetime) -> str:
    """Render a timestamp in the 23-character analyzer format."""
    return ts.strftime(TIMESTAMP_FORMAT)[:-3]


def parse_timestamp(raw: str) -> datetime:
    try:
        ts = datetime.strptime(raw, TIMESTAMP_FORMAT)
    except (TypeError, ValueError) as exc:
        raise PacketDecodeError(f"invalid timestamp {raw!r}") from exc
    return ts.replace(tzinfo=timezone.utc)


def _int_field(body: Mapping[str, Any], key: str, default: int) -> int:
    value = body.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise PacketDecodeError(f"{key} must be an integer, got {value!r}")
    return value


def decode_packet(payload: bytes) -> Packet:
    """Decode one frame payload into a Packet."""
    try:
        body = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PacketDecodeError(f"invalid JSON payload: {exc}") from exc

    if not isinstance(body, dict):
        raise PacketDecodeError("packet body must be a JSON object")

    raw_fields = body.get("fields")
    if not isinstance(raw_fields, dict):
        raise PacketDecodeError("packet has no fields object")

    fields = {
        name: float(value)
        for name, value in raw_fields.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
        and math.isfinite(value)
    }

    if "timestamp" in body:
        timestamp = parse_timestamp(body["timestamp"])
    else:
        timestamp = datetime.now(timezone.utc)

    description = body.get("description", "")
    if not isinstance(description, str):
        raise PacketDecodeError(f"description must be a string, got {description!r}")

    return Packet(
        timestamp=timestamp,
        priority=_int_field(body, "prio", 0),
        source_id=_int_field(body, "src", 0),
        dest_id=_int_field(body, "dst", DEFAULT_DEST),
        description=description,
        fields=MappingProxyType(fields),
        pgn=_int_field(body, "pgn", 0),
    )


def encode_packet(payload: Mapping[str, Any]) -> bytes:
    """Serialize an analyzer-layout dict into one length-prefixed frame."""
    data = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    if len(data) > MAX_FRAME_SIZE:
        raise ValueError(f"packet of {len(data)} bytes exceeds {MAX_FRAME_SIZE}")
    return HEADER.pack(len(data)) + data


async def read_packet(reader: asyncio.StreamReader) -> Packet | None:
    """Read one frame from the stream.

    Returns None on a clean end of stream. Raises FrameError if the stream
    ends mid-frame or declares an oversized frame, PacketDecodeError if the
    frame is intact but its payload is not a packet.
    """
    try:
        header = await reader.readexactly(HEADER.size)
    except asyncio.IncompleteReadError as exc:
        if not exc.partial:
            return None
        raise FrameError("stream ended inside a frame header") from exc

    (length,) = HEADER.unpack(header)
    if length > MAX_FRAME_SIZE:
        raise FrameError(f"declared frame length {length} exceeds {MAX_FRAME_SIZE}")

    try:
        payload = await reader.readexactly(length)
    except asyncio.IncompleteReadError as exc:
        raise FrameError(
            f"stream ended after {len(exc.partial)} of {length} payload bytes"
        ) from exc

    return decode_packet(payload)
