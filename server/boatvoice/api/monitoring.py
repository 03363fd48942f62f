"""Health check, statistics and live boat state endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from boatvoice.main import VERSION, get_pipeline

    pipeline = get_pipeline()
    snapshot = pipeline.stats.snapshot()
    return {
        "status": "ok",
        "version": VERSION,
        "uptime_seconds": snapshot["uptime_seconds"],
        "queue_depth": pipeline.queue.qsize(),
        "queue_capacity": pipeline.queue.capacity,
        "pending_messages": pipeline.dispatcher.pending(),
        "connections": snapshot["connections"]["active"],
        "ports_known": len(pipeline.ports),
        "shutdown_requested": pipeline.shutdown.requested,
    }


@router.get("/stats")
async def stats() -> dict:
    """Detailed pipeline statistics.

    The ``connections`` section lists every instrument gateway currently
    connected, with its packet count and idle time.
    """
    from boatvoice.main import get_pipeline

    return get_pipeline().stats.snapshot()


@router.get("/state")
async def state() -> dict:
    """Current boat state plus the alert status of every monitored sensor."""
    from boatvoice.main import get_pipeline

    pipeline = get_pipeline()
    return {
        "boat": pipeline.decoder.get_state().snapshot(),
        "sensors": {
            sensor.name.lower(): {
                "status": pipeline.alerts.status(sensor).value,
                "timed_out": pipeline.alerts.is_timed_out(sensor),
            }
            for sensor in pipeline.alerts.policies
        },
    }
