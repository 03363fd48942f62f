"""Message dispatcher — the single hand-off point to the speech backend.

Pending messages are ordered SHUTDOWN > ALERT > INFO, first-in-first-out
within a tier. Delivery is strictly one message at a time so speech never
overlaps.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from typing import TYPE_CHECKING

import structlog

from boatvoice.core.signal import LoopSignal

if TYPE_CHECKING:
    from boatvoice.core.models import Message
    from boatvoice.core.stats import PipelineStats
    from boatvoice.speech.base import SpeechSink

log = structlog.get_logger()


class MessageDispatcher:
    """Priority-ordered outbound channel. ``receive`` is safe from any thread."""

    def __init__(self, speech: SpeechSink, stats: PipelineStats | None = None) -> None:
        self._speech = speech
        self._stats = stats
        self._lock = threading.Lock()
        self._heap: list[tuple[int, int, Message]] = []
        self._sequence = itertools.count()
        self._pending_signal = LoopSignal()
        self._idle_signal = LoopSignal()
        self._idle_signal.set()
        self._speaking = False

    def receive(self, message: Message) -> None:
        """Enqueue a message for delivery. Never drops."""
        with self._lock:
            heapq.heappush(self._heap, (-message.priority, next(self._sequence), message))
            self._idle_signal.clear()
        if self._stats is not None:
            self._stats.record_message()
        log.debug("message_received", text=message.text, priority=message.priority.name)
        self._pending_signal.set()

    def pop_next(self) -> Message | None:
        """Remove and return the highest-priority pending message, or None."""
        with self._lock:
            if not self._heap:
                return None
            return heapq.heappop(self._heap)[2]

    def pending(self) -> int:
        with self._lock:
            return len(self._heap)

    def _take(self) -> Message | None:
        with self._lock:
            if not self._heap:
                return None
            self._speaking = True
            return heapq.heappop(self._heap)[2]

    async def next_message(self) -> Message:
        """Wait for the highest-priority pending message and claim it for delivery."""
        self._pending_signal.bind()
        while True:
            message = self._take()
            if message is not None:
                return message
            self._pending_signal.clear()
            message = self._take()
            if message is not None:
                return message
            await self._pending_signal.wait()

    async def deliver(self, message: Message) -> bool:
        """Speak one message. Returns False if the speech backend failed."""
        self._speaking = True
        try:
            await asyncio.to_thread(self._speech.speak, message.text)
        except Exception:
            log.error("speech_failed", text=message.text,
                      priority=message.priority.name, exc_info=True)
            if self._stats is not None:
                self._stats.record_speech_error()
            return False
        finally:
            self._speaking = False
            self._mark_idle_if_drained()

        if self._stats is not None:
            self._stats.record_spoken()
        log.info("message_dispatched", text=message.text, priority=message.priority.name)
        return True

    async def run(self) -> None:
        """Deliver messages forever. Runs as a background task."""
        log.info("dispatcher_started")
        while True:
            message = await self.next_message()
            await self.deliver(message)

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait until nothing is pending or being spoken. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._wait_idle(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _wait_idle(self) -> None:
        self._idle_signal.bind()
        while True:
            self._mark_idle_if_drained()
            if self._idle_signal.is_set():
                return
            await self._idle_signal.wait()

    def _mark_idle_if_drained(self) -> None:
        with self._lock:
            drained = not self._heap and not self._speaking
        if drained:
            self._idle_signal.set()
