"""Log-only speech backend for bench runs without an audio device."""

from __future__ import annotations

from collections import deque

import structlog

log = structlog.get_logger()


class LoggingSpeech:
    """SpeechSink that writes every message to the log instead of a speaker."""

    def __init__(self, history: int = 50) -> None:
        self.recent: deque[str] = deque(maxlen=history)

    def speak(self, text: str) -> None:
        self.recent.append(text)
        log.info("speech_played", text=text)
