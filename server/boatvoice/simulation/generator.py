"""Synthetic instrument packets in the analyzer wire layout.

Used by the bench simulator and the tests to produce the same JSON bodies an
instrument gateway would send. Every generator validates its inputs against
the physical range of the instrument.
"""

from __future__ import annotations

from datetime import datetime, timezone

from boatvoice.network.wire import format_timestamp

DEFAULT_PRIORITY = 2
DEFAULT_SRC = 1
DEFAULT_DEST = 255

PGN_VESSEL_HEADING = 127250
PGN_SPEED = 128259
PGN_WATER_DEPTH = 128267
PGN_POSITION_RAPID = 129025
PGN_WIND_DATA = 130306


def _check_range(name: str, value: float, low: float | None, high: float | None) -> None:
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValueError(f"{name} {value} outside [{low}, {high}]")


def create_default_packet(timestamp: datetime | None = None) -> dict:
    """Return a packet body with default header values and no fields."""
    ts = timestamp if timestamp is not None else datetime.now(timezone.utc)
    return {
        "timestamp": format_timestamp(ts),
        "prio": DEFAULT_PRIORITY,
        "src": DEFAULT_SRC,
        "dst": DEFAULT_DEST,
        "fields": {},
    }


def _packet(pgn: int, description: str, fields: dict) -> dict:
    packet = create_default_packet()
    packet["pgn"] = pgn
    packet["description"] = description
    packet["fields"] = fields
    return packet


def vessel_heading_packet(heading: float, deviation: float, variation: float) -> dict:
    _check_range("Heading", heading, 0.0, 360.0)
    _check_range("Deviation", deviation, -180.0, 180.0)
    _check_range("Variation", variation, -180.0, 180.0)
    return _packet(PGN_VESSEL_HEADING, "Vessel Heading", {
        "Heading": heading,
        "Deviation": deviation,
        "Variation": variation,
    })


def water_depth_packet(depth: float, offset: float) -> dict:
    _check_range("Depth", depth, 0.0, None)
    return _packet(PGN_WATER_DEPTH, "Water Depth", {"Depth": depth, "Offset": offset})


def wind_data_packet(speed: float, angle: float) -> dict:
    _check_range("Wind Speed", speed, 0.0, None)
    _check_range("Wind Angle", angle, 0.0, 360.0)
    return _packet(PGN_WIND_DATA, "Wind Data", {"Wind Speed": speed, "Wind Angle": angle})


def speed_packet(speed: float) -> dict:
    _check_range("Speed Water Referenced", speed, 0.0, None)
    return _packet(PGN_SPEED, "Speed", {"Speed Water Referenced": speed})


def position_packet(lat: float, lon: float) -> dict:
    _check_range("Latitude", lat, -90.0, 90.0)
    _check_range("Longitude", lon, -180.0, 180.0)
    return _packet(PGN_POSITION_RAPID, "Position, Rapid Update",
                   {"Latitude": lat, "Longitude": lon})
