"""Speech backend that shells out to an external synthesizer.

The configured command gets the message text appended as its last argument,
for example ``["espeak", "-s", "140"]`` runs ``espeak -s 140 "<text>"``.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence

import structlog

from boatvoice.speech.base import SpeechError

log = structlog.get_logger()


class CommandSpeech:
    """SpeechSink running one synthesizer process per message."""

    def __init__(self, command: Sequence[str], timeout: float = 30.0) -> None:
        if not command:
            raise ValueError("speech command must not be empty")
        self._command = list(command)
        self._timeout = timeout

    def speak(self, text: str) -> None:
        argv = [*self._command, text]
        try:
            result = subprocess.run(argv, capture_output=True, timeout=self._timeout,
                                    check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SpeechError(f"{self._command[0]} failed: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise SpeechError(f"{self._command[0]} exited with {result.returncode}: {stderr}")
        log.debug("speech_played", command=self._command[0], chars=len(text))
