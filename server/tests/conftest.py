"""Shared test fixtures."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

import boatvoice.main as main_module
from boatvoice.config import AppConfig
from boatvoice.core.geo import LatLng, Port
from boatvoice.core.models import Packet


class RecordingSpeech:
    """SpeechSink that remembers what it was asked to say."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.spoken: list[str] = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def speak(self, text: str) -> None:
        if text == self.fail_on:
            raise RuntimeError("speaker unplugged")
        with self._lock:
            self.spoken.append(text)


@pytest.fixture
def speech():
    return RecordingSpeech()


@pytest.fixture
def config():
    config = AppConfig()
    config.server.enabled = False
    config.network.host = "127.0.0.1"
    config.network.port = 0
    config.network.announce_startup = False
    config.logging.level = "warning"
    config.ports = [
        Port("Cowes", LatLng(50.7628, -1.2977)),
        Port("Lymington", LatLng(50.7587, -1.5367)),
    ]
    return config


@pytest.fixture
def pipeline(config, speech):
    return main_module.build_pipeline(config, speech=speech)


@pytest.fixture
def make_packet():
    """Factory for decoded packets carrying the given fields."""

    def _make(fields: dict, pgn: int = 0, description: str = "") -> Packet:
        return Packet(
            timestamp=datetime(2016, 2, 28, 19, 4, 12, tzinfo=timezone.utc),
            priority=2,
            source_id=1,
            dest_id=255,
            description=description,
            fields=dict(fields),
            pgn=pgn,
        )

    return _make


@pytest.fixture
def _init_assistant(pipeline):
    """Install the pipeline singleton used by the API adapters."""
    main_module._pipeline = pipeline

    yield pipeline

    # Cleanup
    main_module._pipeline = None


@pytest.fixture
async def client(_init_assistant):
    from boatvoice.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
