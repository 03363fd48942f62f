"""Queue interface (port) for decoded packet ingestion."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from boatvoice.core.models import Packet


class PacketQueue(Protocol):
    """Port: bounded handoff between packet producers and the state decoder."""

    @property
    def capacity(self) -> int: ...

    def push(self, packet: Packet) -> bool: ...

    def drain(self) -> Packet | None: ...

    async def get(self) -> Packet: ...

    def qsize(self) -> int: ...
