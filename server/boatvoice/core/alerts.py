"""Alert engine — per-sensor anomaly and timeout detection.

Each monitored sensor runs an independent two-state machine (NORMAL /
ALERTING) driven by boat state updates:

- crossing above ``max_value`` emits ABOVE_MAX, crossing below ``min_value``
  emits BELOW_MIN; both move the sensor to ALERTING;
- a change larger than ``max_change`` since the previous sample emits
  CRITICAL_CHANGE without touching the status;
- returning within bounds moves the sensor back to NORMAL silently.

A periodic scan emits TIMEOUT once per silence episode for sensors that have
not reported within ``timeout_seconds``. Timeouts are tracked separately from
the bound status, so a sensor can be ALERTING and timed out at once.

Alerts are handed to ``on_alert`` synchronously and never awaited.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from boatvoice.core.models import Alert, AlertKind, SensorId

if TYPE_CHECKING:
    from boatvoice.core.stats import PipelineStats

log = structlog.get_logger()

# BoatState attribute → monitored sensor. Position is not monitored.
ATTRIBUTE_SENSORS: dict[str, SensorId] = {
    "water_depth": SensorId.WATER_DEPTH,
    "wind_speed": SensorId.WIND_SPEED,
    "wind_angle": SensorId.WIND_ANGLE,
    "heading": SensorId.HEADING,
    "speed_through_water": SensorId.SPEED,
}


class SensorStatus(Enum):
    NORMAL = "normal"
    ALERTING = "alerting"


@dataclass(frozen=True)
class SensorPolicy:
    """Thresholds for one sensor. ``None`` disables a check."""
    min_value: float | None = None
    max_value: float | None = None
    max_change: float | None = None
    timeout_seconds: float | None = None
    circular: bool = False  # angles: measure change along the shorter arc


DEFAULT_POLICIES: dict[SensorId, SensorPolicy] = {
    SensorId.WATER_DEPTH: SensorPolicy(min_value=2.0, max_change=5.0, timeout_seconds=10.0),
    SensorId.WIND_SPEED: SensorPolicy(max_value=15.0, max_change=5.0, timeout_seconds=10.0),
    SensorId.WIND_ANGLE: SensorPolicy(max_change=90.0, timeout_seconds=10.0, circular=True),
    SensorId.HEADING: SensorPolicy(max_change=45.0, timeout_seconds=10.0, circular=True),
    SensorId.SPEED: SensorPolicy(max_value=10.0, max_change=3.0, timeout_seconds=10.0),
}


@dataclass
class _SensorTrack:
    last_update: float                   # clock() timestamp
    last_value: float | None = None
    bound: AlertKind | None = None       # ABOVE_MAX / BELOW_MIN while alerting
    timed_out: bool = False


def _change(previous: float, current: float, circular: bool) -> float:
    delta = abs(current - previous)
    if circular:
        delta %= 360.0
        delta = min(delta, 360.0 - delta)
    return delta


class AlertEngine:
    """Watches boat state updates and emits alerts per sensor policy."""

    def __init__(
        self,
        on_alert: Callable[[Alert], object],
        policies: Mapping[SensorId, SensorPolicy] | None = None,
        clock: Callable[[], float] = time.monotonic,
        stats: PipelineStats | None = None,
    ) -> None:
        self.on_alert = on_alert
        self.policies = dict(policies if policies is not None else DEFAULT_POLICIES)
        self.clock = clock
        self.stats = stats
        self._lock = threading.Lock()
        started = self.clock()
        self._tracks = {sensor: _SensorTrack(last_update=started) for sensor in self.policies}

    def status(self, sensor: SensorId) -> SensorStatus:
        with self._lock:
            track = self._tracks[sensor]
            return SensorStatus.NORMAL if track.bound is None else SensorStatus.ALERTING

    def is_timed_out(self, sensor: SensorId) -> bool:
        with self._lock:
            return self._tracks[sensor].timed_out

    def on_state_update(self, attribute: str, value: float) -> None:
        """StateListener hook: route a boat state write to its sensor."""
        sensor = ATTRIBUTE_SENSORS.get(attribute)
        if sensor is not None and sensor in self.policies:
            self.observe(sensor, value)

    def observe(self, sensor: SensorId, value: float) -> list[Alert]:
        """Evaluate a new sample for one sensor and emit any resulting alerts."""
        policy = self.policies[sensor]
        kinds: list[AlertKind] = []

        with self._lock:
            track = self._tracks[sensor]
            track.last_update = self.clock()
            track.timed_out = False

            if (policy.max_change is not None and track.last_value is not None
                    and _change(track.last_value, value, policy.circular) > policy.max_change):
                kinds.append(AlertKind.CRITICAL_CHANGE)
            track.last_value = value

            if policy.max_value is not None and value > policy.max_value:
                bound = AlertKind.ABOVE_MAX
            elif policy.min_value is not None and value < policy.min_value:
                bound = AlertKind.BELOW_MIN
            else:
                bound = None

            if bound is not None and bound != track.bound:
                kinds.append(bound)
            if bound is None and track.bound is not None:
                log.info("sensor_normal", sensor=sensor.name, value=value)
            track.bound = bound

        return self._emit(sensor, kinds)

    def check_timeouts(self) -> list[Alert]:
        """Emit TIMEOUT for every sensor silent longer than its timeout."""
        now = self.clock()
        expired: list[SensorId] = []
        with self._lock:
            for sensor, track in self._tracks.items():
                timeout = self.policies[sensor].timeout_seconds
                if timeout is None or track.timed_out:
                    continue
                if now - track.last_update > timeout:
                    track.timed_out = True
                    expired.append(sensor)

        alerts = []
        for sensor in expired:
            alerts.extend(self._emit(sensor, [AlertKind.TIMEOUT]))
        return alerts

    async def run_timeout_scan(self, interval: float = 1.0) -> None:
        """Check timeouts every ``interval`` seconds. Runs as a background task."""
        log.info("timeout_scan_started", interval=interval)
        while True:
            await asyncio.sleep(interval)
            self.check_timeouts()

    def _emit(self, sensor: SensorId, kinds: list[AlertKind]) -> list[Alert]:
        alerts = []
        for kind in kinds:
            alert = Alert(sensor=sensor, kind=kind, timestamp=datetime.now(timezone.utc))
            log.info("alert_emitted", sensor=sensor.name, kind=kind.name)
            if self.stats is not None:
                self.stats.record_alert(kind.name)
            self.on_alert(alert)
            alerts.append(alert)
        return alerts
