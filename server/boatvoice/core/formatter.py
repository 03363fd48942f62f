"""Message formatter — turns button presses and alerts into spoken text.

Button presses read the live boat state and render one sensor phrase at
INFO priority. Alerts render a "Warning: ..." phrase at ALERT priority. The
shut-down button renders a fixed farewell at SHUTDOWN priority and then
triggers the shutdown collaborator.

Numbers are spoken with at most one decimal place (see ``truncate_float``)
so that phrases stay short.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol, TYPE_CHECKING

import structlog

from boatvoice.core.geo import LatLng, distance_m, initial_bearing
from boatvoice.core.models import AlertKind, Message, Priority, SensorId

if TYPE_CHECKING:
    from boatvoice.core.geo import PortDirectory
    from boatvoice.core.models import Alert, BoatState

log = structlog.get_logger()

SHUTDOWN_TEXT = "Turning the system completely off"


class Button(str, Enum):
    BOAT_SPEED = "boat-speed"
    COMPASS_HEADING = "compass-heading"
    NEAREST_PORT = "nearest-port"
    WATER_DEPTH = "water-depth"
    WIND_DIRECTION = "wind-direction"
    WIND_SPEED = "wind-speed"
    SHUT_DOWN = "shut-down"


BUTTON_NAMES = frozenset(button.value for button in Button)

SENSOR_LABELS: dict[SensorId, str] = {
    SensorId.WATER_DEPTH: "Water Depth",
    SensorId.WIND_SPEED: "Wind Speed",
    SensorId.WIND_ANGLE: "Wind Angle",
    SensorId.HEADING: "Boat Heading",
    SensorId.SPEED: "Boat Speed",
}

_ALERT_PHRASES: dict[AlertKind, str] = {
    AlertKind.CRITICAL_CHANGE: "rapid change in {label}",
    AlertKind.ABOVE_MAX: "{label} is high",
    AlertKind.BELOW_MIN: "{label} is low",
    AlertKind.TIMEOUT: "{label} is unresponsive",
}


class StateSource(Protocol):
    def get_state(self) -> BoatState: ...


class MessageSink(Protocol):
    def receive(self, message: Message) -> None: ...


def _fixed(value: float, places: int) -> str:
    # Half-up on the shortest decimal form, so 2.25 reads "2.3", not "2.2".
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def truncate_float(value: float) -> str:
    """Render a magnitude with 0 decimals above 10 or near a whole number, else 1."""
    places = 0 if value > 10 or (value - math.floor(value)) < 0.1 else 1
    return _fixed(value, places)


def format_distance(meters: float) -> str:
    """Render a distance as meters, or kilometers beyond 1000 m."""
    unit = "m"
    if meters > 1000:
        meters /= 1000
        unit = "km"
    return truncate_float(meters) + unit


class MessageFormatter:
    """Renders button presses and alerts, then forwards them to the dispatcher."""

    def __init__(
        self,
        decoder: StateSource,
        dispatcher: MessageSink,
        ports: PortDirectory,
        shutdown: Callable[[], object],
    ) -> None:
        self._decoder = decoder
        self._dispatcher = dispatcher
        self._ports = ports
        self._shutdown = shutdown
        self._renderers: dict[Button, Callable[[BoatState], str]] = {
            Button.BOAT_SPEED: self._boat_speed,
            Button.COMPASS_HEADING: self._compass_heading,
            Button.NEAREST_PORT: self._nearest_port,
            Button.WATER_DEPTH: self._water_depth,
            Button.WIND_DIRECTION: self._wind_direction,
            Button.WIND_SPEED: self._wind_speed,
        }

    def handle_button_press(self, button_name: str) -> Message:
        """Format the reading for a pressed button and send it for speech."""
        button = self._parse_button(button_name)

        if button is Button.SHUT_DOWN:
            message = Message(SHUTDOWN_TEXT, Priority.SHUTDOWN)
            log.info("shutdown_requested")
            self._dispatcher.receive(message)
            self._shutdown()
            return message

        message = Message(self.format_button_press(button), Priority.INFO)
        log.info("message_formatted", button=button.value, text=message.text)
        self._dispatcher.receive(message)
        return message

    def format_button_press(self, button_name: str) -> str:
        button = self._parse_button(button_name)
        renderer = self._renderers.get(button)
        if renderer is None:
            raise ValueError(f"Button {button.value!r} has no sensor reading")
        return renderer(self._decoder.get_state())

    def handle_alert(self, alert: Alert) -> Message:
        """Format an alert as a warning and send it for speech."""
        message = Message(self.format_alert(alert), Priority.ALERT)
        log.info("alert_formatted", sensor=alert.sensor.name, kind=alert.kind.name,
                 text=message.text)
        self._dispatcher.receive(message)
        return message

    @staticmethod
    def format_alert(alert: Alert) -> str:
        try:
            label = SENSOR_LABELS[SensorId(alert.sensor)]
        except (KeyError, ValueError):
            raise ValueError(f"Invalid alert sensor type: {alert.sensor!r}") from None
        try:
            phrase = _ALERT_PHRASES[AlertKind(alert.kind)]
        except (KeyError, ValueError):
            raise ValueError(f"Invalid alert type: {alert.kind!r}") from None
        return "Warning: " + phrase.format(label=label)

    @staticmethod
    def _parse_button(button_name: str) -> Button:
        try:
            return Button(button_name)
        except ValueError:
            raise ValueError(f"Invalid button name: {button_name!r}") from None

    def _boat_speed(self, state: BoatState) -> str:
        return truncate_float(state.speed_through_water) + " meters per second"

    def _wind_speed(self, state: BoatState) -> str:
        return truncate_float(state.wind_speed) + " meters per second"

    def _compass_heading(self, state: BoatState) -> str:
        return _fixed(state.heading, 0) + " degrees from north"

    def _wind_direction(self, state: BoatState) -> str:
        return _fixed(state.wind_angle, 0) + " degrees from head"

    def _water_depth(self, state: BoatState) -> str:
        return truncate_float(state.water_depth) + " meters deep"

    def _nearest_port(self, state: BoatState) -> str:
        here = LatLng(state.latitude, state.longitude)
        port = self._ports.nearest(here)
        distance = format_distance(distance_m(here, port.location))
        bearing = truncate_float(initial_bearing(here, port.location))
        return f"{distance} at {bearing} degrees to {port.name}"
