"""Shutdown collaborator — turns the shut-down button into process exit.

The formatter calls ``shutdown()`` right after handing the farewell message
to the dispatcher. The entry point waits on ``wait()``, lets the dispatcher
finish speaking, stops the pipeline and finally calls ``power_off()``.
"""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Sequence

import structlog

from boatvoice.core.signal import LoopSignal

log = structlog.get_logger()


class ShutdownController:
    """Thread-safe, one-shot shutdown request plus the power-down hook."""

    def __init__(self, command: Sequence[str] = ()) -> None:
        self._command = list(command)
        self._lock = threading.Lock()
        self._requested = False
        self._signal = LoopSignal()

    @property
    def requested(self) -> bool:
        with self._lock:
            return self._requested

    def shutdown(self) -> None:
        """Request shutdown. Repeated calls are ignored."""
        with self._lock:
            if self._requested:
                return
            self._requested = True
        log.info("shutdown_signalled")
        self._signal.set()

    async def wait(self) -> None:
        self._signal.bind()
        while not self.requested:
            await self._signal.wait()

    def power_off(self) -> None:
        """Run the configured power-down command, if any."""
        if not self._command:
            log.info("power_off_skipped", reason="no command configured")
            return
        log.info("power_off", command=self._command)
        try:
            subprocess.run(self._command, check=True)
        except (OSError, subprocess.CalledProcessError):
            log.error("power_off_failed", command=self._command, exc_info=True)
