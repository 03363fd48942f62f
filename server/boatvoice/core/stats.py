"""Pipeline statistics and connection tracking.

Tracks in-memory counters for every stage of the pipeline, from packet
ingestion to spoken delivery. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class ConnectionActivity:
    """Tracks a single instrument gateway connection."""
    connected_at: float       # time.monotonic() timestamp
    last_seen: float          # time.monotonic() timestamp
    packets_received: int = 0


class PipelineStats:
    """Thread-safe pipeline statistics.

    Counters are updated from network readers, the state decoder, the alert
    engine and the dispatcher, so every mutation happens under one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()

        # Ingestion
        self.packets_received: int = 0
        self.packets_evicted: int = 0
        self.decode_errors: int = 0
        self.frame_errors: int = 0
        self.connections_total: int = 0
        self.queue_depth: int = 0
        self.queue_max_depth: int = 0

        # State
        self.packets_applied: int = 0
        self.fields_updated: int = 0

        # Alerts, keyed by AlertKind name
        self.alerts: dict[str, int] = {}

        # Dispatch
        self.messages_received: int = 0
        self.messages_spoken: int = 0
        self.speech_errors: int = 0

        # Connection tracking: peer → ConnectionActivity
        self._connections: dict[str, ConnectionActivity] = {}

    def record_connection_opened(self, peer: str) -> None:
        now = time.monotonic()
        with self._lock:
            self.connections_total += 1
            self._connections[peer] = ConnectionActivity(connected_at=now, last_seen=now)

    def record_connection_closed(self, peer: str) -> None:
        with self._lock:
            self._connections.pop(peer, None)

    def record_packet(self, peer: str, *, evicted: bool = False) -> None:
        """Record that a decoded packet from a peer was queued."""
        now = time.monotonic()
        with self._lock:
            self.packets_received += 1
            if evicted:
                self.packets_evicted += 1
            conn = self._connections.get(peer)
            if conn is not None:
                conn.last_seen = now
                conn.packets_received += 1

    def record_decode_error(self) -> None:
        with self._lock:
            self.decode_errors += 1

    def record_frame_error(self) -> None:
        with self._lock:
            self.frame_errors += 1

    def record_applied(self, fields_updated: int) -> None:
        with self._lock:
            self.packets_applied += 1
            self.fields_updated += fields_updated

    def record_alert(self, kind: str) -> None:
        with self._lock:
            self.alerts[kind] = self.alerts.get(kind, 0) + 1

    def record_message(self) -> None:
        with self._lock:
            self.messages_received += 1

    def record_spoken(self) -> None:
        with self._lock:
            self.messages_spoken += 1

    def record_speech_error(self) -> None:
        with self._lock:
            self.speech_errors += 1

    def update_queue_depth(self, depth: int) -> None:
        with self._lock:
            self.queue_depth = depth
            if depth > self.queue_max_depth:
                self.queue_max_depth = depth

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "packets_received": self.packets_received,
                "packets_evicted": self.packets_evicted,
                "packets_applied": self.packets_applied,
                "fields_updated": self.fields_updated,
                "decode_errors": self.decode_errors,
                "frame_errors": self.frame_errors,
                "queue_depth": self.queue_depth,
                "queue_max_depth_ever": self.queue_max_depth,
                "alerts": dict(self.alerts),
                "messages_received": self.messages_received,
                "messages_spoken": self.messages_spoken,
                "speech_errors": self.speech_errors,
                "connections": {
                    "active": len(self._connections),
                    "total": self.connections_total,
                    "peers": {
                        peer: {
                            "connected_seconds": round(now_mono - conn.connected_at, 1),
                            "idle_seconds": round(now_mono - conn.last_seen, 1),
                            "packets_received": conn.packets_received,
                        }
                        for peer, conn in self._connections.items()
                    },
                },
            }
