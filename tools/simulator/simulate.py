#!/usr/bin/env python3
"""BoatVoice instrument simulator.

Streams realistic instrument packets for a drifting sailing boat to the
assistant's gateway port, and optionally presses random buttons through the
monitoring API.

Usage:
    # One boat off Cowes for 2 minutes, 2 updates per second
    python -m tools.simulator.simulate --host localhost --duration 120 --rate 2

    # Also press a random button every 10 seconds
    python -m tools.simulator.simulate --press-every 10 --api http://localhost:8000

    # Several gateways at once (exercises concurrent connections)
    python -m tools.simulator.simulate --gateways 4 --rate 20
"""

from __future__ import annotations

import argparse
import asyncio
import math
import random
import time
from dataclasses import dataclass

import httpx

from boatvoice.core.formatter import BUTTON_NAMES, Button
from boatvoice.network.wire import encode_packet
from boatvoice.simulation.generator import (
    position_packet,
    speed_packet,
    vessel_heading_packet,
    water_depth_packet,
    wind_data_packet,
)


@dataclass
class SimBoat:
    lat: float
    lon: float
    heading: float
    speed_mps: float
    depth_m: float
    wind_speed_mps: float
    wind_angle: float
    packets_sent: int = 0


def move_boat(boat: SimBoat, dt_seconds: float) -> None:
    """Drift the boat along its heading, with small random changes."""
    boat.heading = (boat.heading + random.uniform(-5, 5)) % 360
    boat.speed_mps = max(0.0, min(8.0, boat.speed_mps + random.uniform(-0.3, 0.3)))
    boat.depth_m = max(0.5, boat.depth_m + random.uniform(-0.5, 0.5))
    boat.wind_speed_mps = max(0.0, boat.wind_speed_mps + random.uniform(-0.5, 0.5))
    boat.wind_angle = (boat.wind_angle + random.uniform(-10, 10)) % 360

    distance_m = boat.speed_mps * dt_seconds
    heading_rad = math.radians(boat.heading)

    # Approximate: 1 degree latitude ≈ 111,000 m
    boat.lat += (distance_m * math.cos(heading_rad)) / 111_000
    boat.lon += (distance_m * math.sin(heading_rad)) / (111_000 * math.cos(math.radians(boat.lat)))


def boat_packets(boat: SimBoat) -> list[dict]:
    return [
        position_packet(boat.lat, boat.lon),
        vessel_heading_packet(boat.heading, 0.0, 0.0),
        speed_packet(boat.speed_mps),
        water_depth_packet(boat.depth_m, 0.0),
        wind_data_packet(boat.wind_speed_mps, boat.wind_angle),
    ]


async def run_gateway(
    boat: SimBoat,
    host: str,
    port: int,
    rate: float,
    duration_seconds: float,
) -> None:
    """Stream the boat's instruments over one gateway connection."""
    interval = 1.0 / rate
    end_time = time.monotonic() + duration_seconds

    _, writer = await asyncio.open_connection(host, port)
    try:
        while time.monotonic() < end_time:
            move_boat(boat, interval)
            for packet in boat_packets(boat):
                writer.write(encode_packet(packet))
                boat.packets_sent += 1
            await writer.drain()
            await asyncio.sleep(interval)
    finally:
        writer.close()
        await writer.wait_closed()


async def press_buttons(api_url: str, every_seconds: float, duration_seconds: float) -> None:
    """Press a random (non shut-down) button at a fixed interval."""
    names = sorted(BUTTON_NAMES - {Button.SHUT_DOWN.value})
    end_time = time.monotonic() + duration_seconds
    async with httpx.AsyncClient(timeout=10.0) as client:
        while time.monotonic() < end_time:
            await asyncio.sleep(every_seconds)
            name = random.choice(names)
            try:
                resp = await client.post(f"{api_url}/api/v1/buttons/{name}")
                print(f"  [{name}] -> {resp.json().get('text')}")
            except httpx.RequestError as exc:
                print(f"  [{name}] failed: {exc}")


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    center_lat, center_lon = args.center
    boats = [
        SimBoat(
            lat=center_lat + random.uniform(-0.01, 0.01),
            lon=center_lon + random.uniform(-0.01, 0.01),
            heading=random.uniform(0, 360),
            speed_mps=random.uniform(1, 4),
            depth_m=random.uniform(5, 30),
            wind_speed_mps=random.uniform(3, 9),
            wind_angle=random.uniform(0, 360),
        )
        for _ in range(args.gateways)
    ]

    print(f"Starting simulation: {args.gateways} gateway(s), {args.rate} updates/s each")
    print(f"  Center: {center_lat:.4f}, {center_lon:.4f}")
    print(f"  Duration: {args.duration}s")
    print(f"  Gateway port: {args.host}:{args.port}")
    print()

    start = time.monotonic()
    tasks = [run_gateway(boat, args.host, args.port, args.rate, args.duration) for boat in boats]
    if args.press_every > 0:
        tasks.append(press_buttons(args.api, args.press_every, args.duration))
    await asyncio.gather(*tasks)

    elapsed = time.monotonic() - start
    total = sum(b.packets_sent for b in boats)
    print(f"\nSimulation complete in {elapsed:.1f}s")
    print(f"  Total packets sent: {total}")
    print(f"  Throughput: {total / elapsed:.1f} packets/sec")

    # Check assistant stats
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(f"{args.api}/api/v1/stats")
        if resp.status_code == 200:
            stats = resp.json()
            print("\nAssistant stats:")
            print(f"  Packets received: {stats['packets_received']}")
            print(f"  Packets evicted: {stats['packets_evicted']}")
            print(f"  Decode errors: {stats['decode_errors']}")
            print(f"  Alerts: {stats['alerts']}")
            print(f"  Messages spoken: {stats['messages_spoken']}")
    except httpx.RequestError:
        pass


def main():
    parser = argparse.ArgumentParser(description="BoatVoice instrument simulator")
    parser.add_argument("--host", default="localhost", help="Assistant host")
    parser.add_argument("--port", type=int, default=8989, help="Gateway port")
    parser.add_argument("--api", default="http://localhost:8000", help="Monitoring API URL")
    parser.add_argument("--gateways", type=int, default=1, help="Concurrent gateway connections")
    parser.add_argument("--duration", type=int, default=60, help="Simulation duration in seconds")
    parser.add_argument("--rate", type=float, default=2.0, help="Instrument updates per second")
    parser.add_argument("--press-every", type=float, default=0,
                        help="Press a random button every N seconds (0 disables)")
    parser.add_argument("--center", type=str, default="50.7628,-1.2977",
                        help="Start lat,lon (default: Cowes)")

    args = parser.parse_args()

    lat, lon = args.center.split(",")
    args.center = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
