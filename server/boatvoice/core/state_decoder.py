"""State decoder — folds queued packets into the live boat state.

This is the single writer of BoatState. It depends on the PacketQueue
protocol, not a concrete queue implementation.
"""

from __future__ import annotations

from typing import Iterable, Protocol, TYPE_CHECKING

import structlog

from boatvoice.core.models import BoatState

if TYPE_CHECKING:
    from boatvoice.core.models import Packet
    from boatvoice.core.stats import PipelineStats
    from boatvoice.queue.base import PacketQueue

log = structlog.get_logger()

# Analyzer field name → BoatState attribute.
FIELD_MAP: dict[str, str] = {
    "Latitude": "latitude",
    "Longitude": "longitude",
    "Heading": "heading",
    "Wind Angle": "wind_angle",
    "Wind Speed": "wind_speed",
    "Depth": "water_depth",
    "Speed Water Referenced": "speed_through_water",
}


class StateListener(Protocol):
    """Observer notified after each boat state field is written."""

    def on_state_update(self, attribute: str, value: float) -> None: ...


class StateDecoder:
    """Drains the ingestion queue and updates the shared BoatState."""

    def __init__(
        self,
        queue: PacketQueue,
        state: BoatState | None = None,
        listeners: Iterable[StateListener] = (),
        stats: PipelineStats | None = None,
    ) -> None:
        self._queue = queue
        self._state = state if state is not None else BoatState()
        self._listeners = list(listeners)
        self._stats = stats

    @property
    def state(self) -> BoatState:
        return self._state

    def get_state(self) -> BoatState:
        """Return the live state. Values may change between two reads."""
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def apply(self, packet: Packet) -> list[str]:
        """Write every recognized field of the packet. Returns the attributes written."""
        updated = []
        for name, value in packet.fields.items():
            attribute = FIELD_MAP.get(name)
            if attribute is None:
                continue
            setattr(self._state, attribute, value)
            updated.append(attribute)

        for attribute in updated:
            value = getattr(self._state, attribute)
            for listener in self._listeners:
                try:
                    listener.on_state_update(attribute, value)
                except Exception:
                    log.error("state_listener_failed", attribute=attribute,
                              exc_info=True)

        if self._stats is not None:
            self._stats.record_applied(len(updated))
        return updated

    async def run(self) -> None:
        """Consume from the queue forever. Runs as a background task."""
        log.info("state_decoder_started")
        while True:
            packet = await self._queue.get()
            updated = self.apply(packet)
            if self._stats is not None:
                self._stats.update_queue_depth(self._queue.qsize())
            log.debug("packet_applied", pgn=packet.pgn, updated=updated)
