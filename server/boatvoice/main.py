"""BoatVoice assistant — main entry point.

This is the only file that knows about concrete implementations.
It wires together the network source, queue, core pipeline, speech backend
and the monitoring API.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass

import structlog
import uvicorn
from fastapi import FastAPI

from boatvoice.api.buttons import router as buttons_router
from boatvoice.api.monitoring import router as monitoring_router
from boatvoice.config import AppConfig, load_config
from boatvoice.core.alerts import AlertEngine
from boatvoice.core.dispatcher import MessageDispatcher
from boatvoice.core.formatter import MessageFormatter
from boatvoice.core.geo import PortDirectory
from boatvoice.core.models import Message, Priority
from boatvoice.core.state_decoder import StateDecoder
from boatvoice.core.stats import PipelineStats
from boatvoice.network.packet_source import PacketSource
from boatvoice.queue.ring_buffer import EvictingPacketQueue
from boatvoice.shutdown import ShutdownController
from boatvoice.speech.base import SpeechSink
from boatvoice.speech.command import CommandSpeech
from boatvoice.speech.console import LoggingSpeech

VERSION = "0.1.0"

log = structlog.get_logger()


@dataclass
class Pipeline:
    """Every long-lived component, constructed once at startup."""
    config: AppConfig
    stats: PipelineStats
    queue: EvictingPacketQueue
    decoder: StateDecoder
    alerts: AlertEngine
    dispatcher: MessageDispatcher
    formatter: MessageFormatter
    source: PacketSource
    shutdown: ShutdownController
    ports: PortDirectory


# Module-level singleton (set during startup), read by the API adapters.
_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    assert _pipeline is not None, "Assistant not initialized"
    return _pipeline


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def _make_speech(config: AppConfig) -> SpeechSink:
    if config.speech.backend == "command":
        return CommandSpeech(config.speech.command, timeout=config.speech.timeout_seconds)
    if config.speech.backend == "log":
        return LoggingSpeech()
    raise ValueError(f"Unknown speech backend: {config.speech.backend!r}")


def build_pipeline(config: AppConfig, speech: SpeechSink | None = None) -> Pipeline:
    """Construct and wire every component. Nothing is started here."""
    stats = PipelineStats()
    queue = EvictingPacketQueue(capacity=config.queue.capacity)
    dispatcher = MessageDispatcher(speech if speech is not None else _make_speech(config),
                                   stats=stats)
    shutdown = ShutdownController(config.shutdown.command)
    ports = PortDirectory(config.ports)
    decoder = StateDecoder(queue, stats=stats)
    formatter = MessageFormatter(
        decoder=decoder,
        dispatcher=dispatcher,
        ports=ports,
        shutdown=shutdown.shutdown,
    )
    alerts = AlertEngine(formatter.handle_alert, config.alerts.sensors, stats=stats)
    decoder.add_listener(alerts)
    source = PacketSource(queue, stats, host=config.network.host, port=config.network.port)
    return Pipeline(
        config=config,
        stats=stats,
        queue=queue,
        decoder=decoder,
        alerts=alerts,
        dispatcher=dispatcher,
        formatter=formatter,
        source=source,
        shutdown=shutdown,
        ports=ports,
    )


app = FastAPI(
    title="BoatVoice",
    description="Spoken instrument assistant",
    version=VERSION,
)

app.include_router(monitoring_router)
app.include_router(buttons_router)


async def serve(config: AppConfig) -> int:
    """Run the assistant until shutdown. Returns the process exit status."""
    global _pipeline

    pipeline = build_pipeline(config)
    _pipeline = pipeline

    log.info("assistant_starting",
             env=config.server.env,
             queue_capacity=config.queue.capacity,
             speech=config.speech.backend)

    try:
        await pipeline.source.start()
    except OSError as exc:
        log.error("bind_failed", host=config.network.host,
                  port=config.network.port, error=str(exc))
        return 1

    workers = [
        asyncio.create_task(pipeline.decoder.run(), name="state-decoder"),
        asyncio.create_task(
            pipeline.alerts.run_timeout_scan(config.alerts.scan_interval_seconds),
            name="timeout-scan"),
        asyncio.create_task(pipeline.dispatcher.run(), name="dispatcher"),
    ]

    if config.network.announce_startup:
        pipeline.dispatcher.receive(
            Message(f"Server started on port {pipeline.source.port}", Priority.INFO))

    waiters = [asyncio.create_task(pipeline.shutdown.wait(), name="shutdown-wait")]
    api_server = None
    if config.server.enabled:
        api_server = uvicorn.Server(uvicorn.Config(
            app, host=config.server.host, port=config.server.port,
            log_config=None, lifespan="off",
        ))
        waiters.append(asyncio.create_task(api_server.serve(), name="monitoring-api"))

    log.info("assistant_started",
             network_port=pipeline.source.port,
             api_port=config.server.port if api_server else None)

    await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

    # Shutdown
    if pipeline.shutdown.requested:
        spoken = await pipeline.dispatcher.wait_idle(config.shutdown.grace_seconds)
        if not spoken:
            log.warning("shutdown_grace_expired", pending=pipeline.dispatcher.pending())
    if api_server is not None:
        api_server.should_exit = True
    for task in workers + waiters:
        if task.get_name() != "monitoring-api":
            task.cancel()
    await asyncio.gather(*workers, *waiters, return_exceptions=True)
    await pipeline.source.close()
    log.info("assistant_stopped")

    if pipeline.shutdown.requested:
        pipeline.shutdown.power_off()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="BoatVoice spoken instrument assistant")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config")
    args = parser.parse_args()

    config = load_config(args.config)
    _setup_logging(config)
    sys.exit(asyncio.run(serve(config)))


if __name__ == "__main__":
    main()
