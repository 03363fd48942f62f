"""BoatVoice — core internal data models.

These are plain dataclasses and enums with no framework dependencies.
Wire payloads are converted to/from these at the boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum


class SensorId(IntEnum):
    """Sensors monitored by the alert engine."""
    WATER_DEPTH = 0
    WIND_SPEED = 1
    WIND_ANGLE = 2
    HEADING = 3
    SPEED = 4


class AlertKind(IntEnum):
    CRITICAL_CHANGE = 0
    ABOVE_MAX = 1
    BELOW_MIN = 2
    TIMEOUT = 3


class Priority(IntEnum):
    """Dispatch precedence. Higher values are spoken first."""
    INFO = 1
    ALERT = 2
    SHUTDOWN = 3


@dataclass(frozen=True)
class Packet:
    """One decoded unit of vessel telemetry."""
    timestamp: datetime
    priority: int
    source_id: int
    dest_id: int
    description: str
    fields: Mapping[str, float] = field(default_factory=dict)
    pgn: int = 0


@dataclass
class BoatState:
    """Live snapshot of the vessel's most recent sensor readings.

    Every field is written independently by the state decoder. Readers see
    the latest value of each field; two reads may straddle an update.
    """
    latitude: float = 0.0             # degrees
    longitude: float = 0.0            # degrees
    heading: float = 0.0              # degrees from north
    wind_angle: float = 0.0           # degrees from head
    wind_speed: float = 0.0           # m/s
    water_depth: float = 0.0          # meters
    speed_through_water: float = 0.0  # m/s

    def snapshot(self) -> dict:
        """Return a JSON-serializable copy of all fields."""
        return asdict(self)


@dataclass(frozen=True)
class Alert:
    sensor: SensorId
    kind: AlertKind
    timestamp: datetime


@dataclass(frozen=True)
class Message:
    text: str
    priority: Priority
