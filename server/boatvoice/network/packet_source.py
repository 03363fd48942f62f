"""Packet source — accepts instrument gateway connections and queues packets.

Each accepted connection gets its own reader coroutine. Readers decode frames
and push packets into the ingestion queue; a full queue evicts its oldest
packet rather than slowing the reader down.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from boatvoice.network.wire import FrameError, PacketDecodeError, read_packet

if TYPE_CHECKING:
    from boatvoice.core.stats import PipelineStats
    from boatvoice.queue.base import PacketQueue

log = structlog.get_logger()

DEFAULT_PORT = 8989


class PacketSource:
    """TCP listener feeding the ingestion queue."""

    def __init__(
        self,
        queue: PacketQueue,
        stats: PipelineStats,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
    ) -> None:
        self._queue = queue
        self._stats = stats
        self._host = host
        self._port = port
        self._server: asyncio.Server | None = None
        self._readers: set[asyncio.Task] = set()

    @property
    def port(self) -> int:
        """The bound port (differs from the configured one when that was 0)."""
        if self._server is None or not self._server.sockets:
            return self._port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind the listener. Raises OSError if the port cannot be bound."""
        self._server = await asyncio.start_server(
            self._handle_connection, self._host, self._port,
        )
        log.info("packet_source_listening", host=self._host, port=self.port)

    async def close(self) -> None:
        """Stop accepting and close every live connection."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        readers = list(self._readers)
        for task in readers:
            task.cancel()
        if readers:
            await asyncio.gather(*readers, return_exceptions=True)
        # Waits for live connections too, so readers must be gone first.
        if server is not None:
            await server.wait_closed()
        log.info("packet_source_closed")

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._readers.add(task)

        address = writer.get_extra_info("peername")
        peer = f"{address[0]}:{address[1]}" if address else "unknown"
        self._stats.record_connection_opened(peer)
        log.info("client_connected", peer=peer)

        try:
            await self._read_loop(reader, peer)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            self._stats.record_connection_closed(peer)
            if task is not None:
                self._readers.discard(task)
            log.info("client_disconnected", peer=peer)

    async def _read_loop(self, reader: asyncio.StreamReader, peer: str) -> None:
        while True:
            try:
                packet = await read_packet(reader)
            except FrameError as exc:
                log.warning("frame_error", peer=peer, error=str(exc))
                self._stats.record_frame_error()
                return
            except PacketDecodeError as exc:
                log.warning("packet_decode_failed", peer=peer, error=str(exc))
                self._stats.record_decode_error()
                continue
            except (ConnectionError, OSError) as exc:
                log.warning("connection_lost", peer=peer, error=str(exc))
                return

            if packet is None:
                return

            evicted = self._queue.push(packet)
            self._stats.record_packet(peer, evicted=evicted)
            self._stats.update_queue_depth(self._queue.qsize())
            log.debug("packet_queued", peer=peer, pgn=packet.pgn,
                      description=packet.description, evicted=evicted)
