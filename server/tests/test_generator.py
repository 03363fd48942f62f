"""Tests for the synthetic packet generator."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from boatvoice.network.wire import decode_packet, encode_packet
from boatvoice.simulation import generator
from boatvoice.simulation.generator import (
    create_default_packet,
    position_packet,
    speed_packet,
    vessel_heading_packet,
    water_depth_packet,
    wind_data_packet,
)


def test_default_packet_contains_all_fields():
    packet = create_default_packet()
    for key in ("timestamp", "prio", "src", "dst", "fields"):
        assert key in packet


def test_default_packet_values():
    packet = create_default_packet()
    assert packet["prio"] == generator.DEFAULT_PRIORITY
    assert packet["src"] == generator.DEFAULT_SRC
    assert packet["dst"] == generator.DEFAULT_DEST
    assert len(packet["timestamp"]) == 23


def test_default_packet_timestamp_format():
    ts = datetime(2016, 2, 28, 19, 4, 12, 345000, tzinfo=timezone.utc)
    assert create_default_packet(ts)["timestamp"] == "2016-02-28-19:04:12.345"


@pytest.mark.parametrize("heading,deviation,variation", [
    (-1.0, 0, 0),
    (370, 0, 0),
    (0, -200, 0),
    (0, 200, 0),
    (0, 0, -200),
    (0, 0, 200),
])
def test_vessel_heading_checks_range(heading, deviation, variation):
    with pytest.raises(ValueError):
        vessel_heading_packet(heading, deviation, variation)


def test_vessel_heading_fields():
    packet = vessel_heading_packet(100.0, 1.0, -1.0)
    assert packet["pgn"] == 127250
    assert packet["fields"] == {"Heading": 100.0, "Deviation": 1.0, "Variation": -1.0}


def test_water_depth_checks_range():
    with pytest.raises(ValueError):
        water_depth_packet(-1.0, 0)


def test_water_depth_fields():
    packet = water_depth_packet(100.0, 1.0)
    assert packet["pgn"] == 128267
    assert packet["fields"] == {"Depth": 100.0, "Offset": 1.0}


def test_other_generators_check_range():
    with pytest.raises(ValueError):
        wind_data_packet(-0.1, 10)
    with pytest.raises(ValueError):
        wind_data_packet(5, 361)
    with pytest.raises(ValueError):
        speed_packet(-2)
    with pytest.raises(ValueError):
        position_packet(91, 0)
    with pytest.raises(ValueError):
        position_packet(0, -181)


def test_generated_packets_decode():
    frame = encode_packet(wind_data_packet(6.5, 45.0))
    packet = decode_packet(frame[4:])
    assert packet.pgn == 130306
    assert packet.description == "Wind Data"
    assert dict(packet.fields) == {"Wind Speed": 6.5, "Wind Angle": 45.0}
