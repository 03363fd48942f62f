"""Geodesy helpers — distances, bearings and the nearest known port."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

# Earth radius in meters (for Haversine).
_EARTH_R = 6_371_000.0


@dataclass(frozen=True)
class LatLng:
    lat: float
    lon: float


@dataclass(frozen=True)
class Port:
    name: str
    location: LatLng


def distance_m(a: LatLng, b: LatLng) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_R * math.asin(math.sqrt(min(1.0, h)))


def initial_bearing(a: LatLng, b: LatLng) -> float:
    """Initial bearing in degrees [0, 360) from a to b."""
    p1, p2 = math.radians(a.lat), math.radians(b.lat)
    dl = math.radians(b.lon - a.lon)
    x = math.sin(dl) * math.cos(p2)
    y = math.cos(p1) * math.sin(p2) - math.sin(p1) * math.cos(p2) * math.cos(dl)
    return (math.degrees(math.atan2(x, y)) + 360) % 360


# Solent and south coast harbours.
DEFAULT_PORTS: tuple[Port, ...] = (
    Port("Southampton", LatLng(50.8998, -1.4044)),
    Port("Portsmouth", LatLng(50.7989, -1.1094)),
    Port("Cowes", LatLng(50.7628, -1.2977)),
    Port("Lymington", LatLng(50.7587, -1.5367)),
    Port("Poole", LatLng(50.7150, -1.9872)),
    Port("Weymouth", LatLng(50.6089, -2.4519)),
    Port("Plymouth", LatLng(50.3655, -4.1427)),
    Port("Dover", LatLng(51.1279, 1.3134)),
)


class PortDirectory:
    """Known ports, searchable by distance."""

    def __init__(self, ports: Iterable[Port] = DEFAULT_PORTS) -> None:
        self._ports = tuple(ports)
        if not self._ports:
            raise ValueError("port directory needs at least one port")

    def __len__(self) -> int:
        return len(self._ports)

    def nearest(self, location: LatLng) -> Port:
        return min(self._ports, key=lambda port: distance_m(location, port.location))
