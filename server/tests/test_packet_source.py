"""Tests for the TCP packet source."""

from __future__ import annotations

import asyncio
import struct

import pytest

from boatvoice.core.stats import PipelineStats
from boatvoice.network.packet_source import PacketSource
from boatvoice.network.wire import encode_packet
from boatvoice.queue.ring_buffer import EvictingPacketQueue


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
async def source():
    queue = EvictingPacketQueue()
    stats = PipelineStats()
    src = PacketSource(queue, stats, host="127.0.0.1", port=0)
    await src.start()

    yield src, queue, stats

    await src.close()


def _depth(value: float) -> bytes:
    return encode_packet({"pgn": 128267, "fields": {"Depth": value}})


@pytest.mark.asyncio
async def test_packets_queued_in_arrival_order(source):
    src, queue, stats = source
    _, writer = await asyncio.open_connection("127.0.0.1", src.port)
    writer.write(_depth(1.0) + _depth(2.0) + _depth(3.0))
    await writer.drain()

    await _wait_for(lambda: queue.qsize() == 3)
    assert [p.fields["Depth"] for p in queue.snapshot()] == [1.0, 2.0, 3.0]
    assert stats.snapshot()["packets_received"] == 3

    writer.close()
    await writer.wait_closed()


@pytest.mark.asyncio
async def test_undecodable_payload_is_skipped(source):
    src, queue, stats = source
    garbage = b"not json at all"
    _, writer = await asyncio.open_connection("127.0.0.1", src.port)
    writer.write(_depth(1.0) + struct.pack(">I", len(garbage)) + garbage + _depth(2.0))
    await writer.drain()

    await _wait_for(lambda: queue.qsize() == 2)
    assert [p.fields["Depth"] for p in queue.snapshot()] == [1.0, 2.0]
    assert stats.snapshot()["decode_errors"] == 1

    writer.close()
    await writer.wait_closed()


@pytest.mark.asyncio
async def test_broken_frame_closes_only_that_connection(source):
    src, queue, stats = source
    reader_a, writer_a = await asyncio.open_connection("127.0.0.1", src.port)
    _, writer_b = await asyncio.open_connection("127.0.0.1", src.port)

    # Oversized length prefix: the stream can no longer be trusted.
    writer_a.write(struct.pack(">I", 10_000_000))
    await writer_a.drain()
    assert await asyncio.wait_for(reader_a.read(), timeout=2.0) == b""

    writer_b.write(_depth(7.0))
    await writer_b.drain()
    await _wait_for(lambda: queue.qsize() == 1)
    assert stats.snapshot()["frame_errors"] == 1

    writer_a.close()
    writer_b.close()


@pytest.mark.asyncio
async def test_keeps_accepting_after_client_disconnects(source):
    src, queue, stats = source

    _, writer = await asyncio.open_connection("127.0.0.1", src.port)
    writer.write(_depth(1.0))
    await writer.drain()
    writer.close()
    await writer.wait_closed()
    await _wait_for(lambda: stats.snapshot()["connections"]["active"] == 0)

    _, writer = await asyncio.open_connection("127.0.0.1", src.port)
    writer.write(_depth(2.0))
    await writer.drain()
    await _wait_for(lambda: queue.qsize() == 2)
    assert stats.snapshot()["connections"]["total"] == 2

    writer.close()
    await writer.wait_closed()


@pytest.mark.asyncio
async def test_concurrent_connections_all_delivered(source):
    src, queue, _ = source
    writers = []
    for _ in range(4):
        _, writer = await asyncio.open_connection("127.0.0.1", src.port)
        writers.append(writer)

    for n, writer in enumerate(writers):
        writer.write(b"".join(_depth(n * 100 + i) for i in range(10)))
    await asyncio.gather(*(w.drain() for w in writers))

    await _wait_for(lambda: queue.qsize() == 40)
    values = [p.fields["Depth"] for p in queue.snapshot()]
    for n in range(4):
        assert [v for v in values if v // 100 == n] == [n * 100 + i for i in range(10)]

    for writer in writers:
        writer.close()


@pytest.mark.asyncio
async def test_overflow_evicts_oldest():
    queue = EvictingPacketQueue(capacity=5)
    stats = PipelineStats()
    src = PacketSource(queue, stats, host="127.0.0.1", port=0)
    await src.start()
    try:
        _, writer = await asyncio.open_connection("127.0.0.1", src.port)
        writer.write(b"".join(_depth(float(i)) for i in range(12)))
        await writer.drain()

        await _wait_for(lambda: stats.snapshot()["packets_received"] == 12)
        assert [p.fields["Depth"] for p in queue.snapshot()] == [7.0, 8.0, 9.0, 10.0, 11.0]
        assert stats.snapshot()["packets_evicted"] == 7
        writer.close()
    finally:
        await src.close()


@pytest.mark.asyncio
async def test_bind_failure_raises(source):
    src, queue, stats = source
    clash = PacketSource(queue, stats, host="127.0.0.1", port=src.port)

    with pytest.raises(OSError):
        await clash.start()
