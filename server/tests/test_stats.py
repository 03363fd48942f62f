"""Tests for PipelineStats and connection tracking."""

from __future__ import annotations

import threading

from boatvoice.core.stats import PipelineStats


def test_initial_stats():
    stats = PipelineStats()
    snap = stats.snapshot()
    assert snap["packets_received"] == 0
    assert snap["alerts"] == {}
    assert snap["connections"] == {"active": 0, "total": 0, "peers": {}}


def test_connection_tracking():
    stats = PipelineStats()
    stats.record_connection_opened("10.0.0.5:40000")
    stats.record_connection_opened("10.0.0.6:40001")
    stats.record_packet("10.0.0.5:40000")
    stats.record_packet("10.0.0.5:40000", evicted=True)

    snap = stats.snapshot()
    assert snap["packets_received"] == 2
    assert snap["packets_evicted"] == 1
    assert snap["connections"]["active"] == 2
    assert snap["connections"]["peers"]["10.0.0.5:40000"]["packets_received"] == 2
    assert snap["connections"]["peers"]["10.0.0.6:40001"]["packets_received"] == 0

    stats.record_connection_closed("10.0.0.5:40000")
    snap = stats.snapshot()
    assert snap["connections"]["active"] == 1
    assert snap["connections"]["total"] == 2
    assert "10.0.0.5:40000" not in snap["connections"]["peers"]


def test_packet_from_unknown_peer_still_counted():
    stats = PipelineStats()
    stats.record_packet("gone:1")
    assert stats.snapshot()["packets_received"] == 1


def test_queue_depth_tracking():
    stats = PipelineStats()
    stats.update_queue_depth(50)
    stats.update_queue_depth(300)
    stats.update_queue_depth(30)

    snap = stats.snapshot()
    assert snap["queue_depth"] == 30
    assert snap["queue_max_depth_ever"] == 300


def test_error_and_dispatch_counters():
    stats = PipelineStats()
    stats.record_decode_error()
    stats.record_frame_error()
    stats.record_applied(2)
    stats.record_applied(0)
    stats.record_alert("ABOVE_MAX")
    stats.record_alert("ABOVE_MAX")
    stats.record_alert("TIMEOUT")
    stats.record_message()
    stats.record_spoken()
    stats.record_speech_error()

    snap = stats.snapshot()
    assert snap["decode_errors"] == 1
    assert snap["frame_errors"] == 1
    assert snap["packets_applied"] == 2
    assert snap["fields_updated"] == 2
    assert snap["alerts"] == {"ABOVE_MAX": 2, "TIMEOUT": 1}
    assert snap["messages_received"] == 1
    assert snap["messages_spoken"] == 1
    assert snap["speech_errors"] == 1


def test_concurrent_updates():
    """Counters stay exact under concurrent readers."""
    stats = PipelineStats()

    def reader(peer: str) -> None:
        stats.record_connection_opened(peer)
        for _ in range(500):
            stats.record_packet(peer)

    threads = [threading.Thread(target=reader, args=(f"peer-{i}",)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = stats.snapshot()
    assert snap["packets_received"] == 2000
    assert all(p["packets_received"] == 500 for p in snap["connections"]["peers"].values())
