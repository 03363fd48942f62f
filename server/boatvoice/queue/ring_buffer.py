"""In-process evicting ring buffer implementation of PacketQueue."""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING

from boatvoice.core.signal import LoopSignal

if TYPE_CHECKING:
    from boatvoice.core.models import Packet

DEFAULT_CAPACITY = 300


class EvictingPacketQueue:
    """PacketQueue backed by a mutex-guarded fixed-size deque.

    When full, ``push`` discards the oldest packet to admit the new one.
    Producers are never blocked; eviction is the only backpressure.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"queue capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._items: deque[Packet] = deque()
        self._not_empty = LoopSignal()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, packet: Packet) -> bool:
        """Append a packet. Returns True if the oldest packet was evicted."""
        with self._lock:
            evicted = len(self._items) >= self._capacity
            if evicted:
                self._items.popleft()
            self._items.append(packet)
        self._not_empty.set()
        return evicted

    def drain(self) -> Packet | None:
        """Remove and return the oldest packet, or None when empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    async def get(self) -> Packet:
        """Wait for and return the oldest packet."""
        self._not_empty.bind()
        while True:
            packet = self.drain()
            if packet is not None:
                return packet
            self._not_empty.clear()
            # A push may have landed between drain() and clear().
            packet = self.drain()
            if packet is not None:
                return packet
            await self._not_empty.wait()

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> list[Packet]:
        """Return the queued packets, oldest first, without removing them."""
        with self._lock:
            return list(self._items)
