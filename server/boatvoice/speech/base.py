"""Speech interface (port) for spoken output."""

from __future__ import annotations

from typing import Protocol


class SpeechError(Exception):
    """The speech backend failed to play a message."""


class SpeechSink(Protocol):
    """Port: plays one text message, returning when playback has finished."""

    def speak(self, text: str) -> None: ...
