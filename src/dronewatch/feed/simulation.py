"""Simulated detection feed for demos and development.

Every interval a random detection is created through the detections API
(or its local fallback) and handed to the registered callbacks.
"""

import asyncio
import logging
import random
from datetime import UTC, datetime

from dronewatch.client.api import DroneApiClient
from dronewatch.feed.base import BaseFeed, DetectionCallback
from dronewatch.registry.models import CreateDetectionPayload, DetectionEvent

logger = logging.getLogger(__name__)

KNOWN_OUIS = [
    "60:60:1F",  # DJI Technology Co., Ltd.
    "AA:BB:CC",  # Test OUI 1
    "DD:EE:FF",  # Test OUI 2
    "00:11:22",  # Test OUI 3
]

LOCATIONS = [
    "Building A - Floor 3",
    "Building B - Rooftop",
    "Building A - Parking Lot",
    "Building C - Main Entrance",
    "Warehouse 1 - Storage Area",
    "Hangar 2 - Perimeter",
]


def random_payload(rng: random.Random | None = None) -> CreateDetectionPayload:
    """A random detection with a known OUI and RSSI in [-95, -30] dBm."""
    rng = rng or random.Random()
    oui = rng.choice(KNOWN_OUIS)
    tail = ":".join(f"{rng.randrange(256):02X}" for _ in range(3))
    return CreateDetectionPayload(
        mac=f"{oui}:{tail}",
        rssi=rng.randint(-95, -30),
        sensor_location=rng.choice(LOCATIONS),
        timestamp=datetime.now(UTC),
    )


class SimulationFeed(BaseFeed):
    """Generates a random detection every ``interval`` seconds."""

    def __init__(
        self,
        client: DroneApiClient,
        interval: float = 5.0,
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.interval = interval
        self._rng = rng or random.Random()
        self._callbacks: list[DetectionCallback] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Simulation already running")
            return
        logger.info("Starting simulation feed (interval=%.1fs)", self.interval)
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping simulation feed")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def on_event(self, callback: DetectionCallback) -> None:
        self._callbacks.append(callback)

    async def tick(self) -> DetectionEvent:
        """Create one simulated detection and deliver it to callbacks."""
        payload = random_payload(self._rng)
        result = await self.client.create_detection(payload)
        detection = result.data
        logger.debug("Simulated detection: %s at %s", detection.mac_address, detection.sensor_location)
        for cb in self._callbacks:
            await cb(detection)
        return detection

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Simulation error")
