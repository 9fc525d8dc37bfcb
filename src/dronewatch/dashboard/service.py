"""Dashboard service: the single owner of the detection registry.

All producers (page loads, the manual form, the simulation feed) go through
this service, which applies each mutation to the registry under one
``asyncio.Lock`` so no two ingests, loads or clears interleave.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from dronewatch.alerts.manager import AlertManager, build_webhook_payload, dispatch_webhook
from dronewatch.client.api import DetectionPage, DroneApiClient
from dronewatch.config import Settings
from dronewatch.feed.simulation import SimulationFeed
from dronewatch.registry.models import CreateDetectionPayload, DetectionEvent, IngestResult
from dronewatch.registry.store import DetectionRegistry, normalize_mac

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    detection: DetectionEvent
    was_blocked: bool
    is_fallback: bool


class DashboardService:
    def __init__(
        self,
        client: DroneApiClient,
        registry: DetectionRegistry,
        simulation: SimulationFeed | None = None,
        page_size: int = 20,
        webhook_url: str | None = None,
    ) -> None:
        self.client = client
        self.registry = registry
        self.simulation = simulation or SimulationFeed(client)
        self.page_size = page_size
        self.webhook_url = webhook_url
        self.is_fallback = False
        self._lock = asyncio.Lock()
        self.simulation.on_event(self.handle_detection)

    @property
    def alerts(self) -> AlertManager:
        return self.registry.alerts

    async def load_detections(self, page: int = 1, limit: int | None = None) -> DetectionPage:
        """Fetch a page and make it the registry's whole window."""
        result = await self.client.get_detections(page=page, limit=limit or self.page_size)
        async with self._lock:
            self.registry.replace(result.data.data)
            self.is_fallback = result.is_fallback
        logger.info(
            "Loaded %d detections (page %d%s)",
            len(result.data.data),
            page,
            ", fallback" if result.is_fallback else "",
        )
        return result.data

    async def submit_detection(self, payload: CreateDetectionPayload) -> SubmitResult:
        """Create a detection through the API, then ingest what it returns."""
        result = await self.client.create_detection(payload)
        ingest = await self.handle_detection(result.data)
        return SubmitResult(
            detection=result.data,
            was_blocked=ingest.was_blocked,
            is_fallback=result.is_fallback,
        )

    async def handle_detection(self, detection: DetectionEvent) -> IngestResult:
        async with self._lock:
            result = self.registry.ingest(detection)
            count = self.registry.detection_count(detection.mac_address)
            alert = self.alerts.current if result.was_blocked else None

        if result.was_blocked:
            logger.warning("Blocked drone detected: %s", detection.mac_address)
            if self.webhook_url and alert is not None:
                await dispatch_webhook(self.webhook_url, build_webhook_payload(alert, count))
        return result

    async def clear(self) -> None:
        async with self._lock:
            self.registry.clear()
        logger.info("Detections cleared")

    async def start_simulation(self) -> None:
        await self.simulation.start()

    async def stop_simulation(self) -> None:
        await self.simulation.stop()

    async def aclose(self) -> None:
        await self.simulation.stop()
        self.alerts.dismiss()
        await self.client.aclose()

    def view(self) -> dict[str, Any]:
        """Everything a presentation layer needs to render the dashboard."""
        return {
            "detections": [e.to_dict() for e in self.registry.events],
            "stats": self.registry.stats().to_dict(),
            "blocked": [s.to_dict() for s in self.registry.blocked_status_list()],
            "alert": self.alerts.message,
            "is_fallback": self.is_fallback,
            "simulation_running": self.simulation.is_running,
        }

    def drone(self, mac: str) -> dict[str, Any] | None:
        """Status of a single MAC, or None if it is not in the window."""
        mac = normalize_mac(mac)
        count = self.registry.detection_count(mac)
        if count == 0:
            return None
        return {
            "mac_address": mac,
            "detection_count": count,
            "is_blocked": self.registry.is_blocked(mac),
        }


def create_service(cfg: Settings) -> DashboardService:
    """Build a service and its collaborators from configuration."""
    client = DroneApiClient(cfg.api_base_url, timeout=cfg.api_timeout)
    registry = DetectionRegistry(AlertManager(expiry_seconds=cfg.alert_expiry_seconds))
    simulation = SimulationFeed(client, interval=cfg.simulation_interval)
    return DashboardService(
        client,
        registry,
        simulation=simulation,
        page_size=cfg.page_size,
        webhook_url=cfg.alert_webhook_url,
    )
