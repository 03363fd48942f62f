"""Thread-safe wake-up for coroutines waiting on shared buffers.

Producers may run on the event loop (network readers) or on foreign threads
(hardware button callbacks). ``LoopSignal.set()`` is safe from both; the
waiting side always runs on the loop.
"""

from __future__ import annotations

import asyncio


class LoopSignal:
    """An ``asyncio.Event`` that can be set from any thread."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self) -> None:
        """Attach to the running loop. Call before the first check of the buffer."""
        self._loop = asyncio.get_running_loop()

    def set(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            # Not bound yet: nobody waits, and the consumer checks its buffer
            # after binding.
            self._event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        self.bind()
        await self._event.wait()
