"""Locally generated detections used when the detections API is unreachable.

The dataset is plausible rather than real: a handful of known MACs seen at
a few sensor locations over the last minutes, so the dashboard always has
something to show.
"""

import random
from datetime import UTC, datetime, timedelta
from typing import Any

from dronewatch.registry.models import (
    UNKNOWN_MANUFACTURER,
    CreateDetectionPayload,
    DetectionEvent,
)
from dronewatch.registry.store import oui_prefix

LOCATIONS = [
    "Building A - Floor 3",
    "Building B - Rooftop",
    "Parking Lot",
    "Main Entrance",
    "Warehouse",
    "Perimeter",
]

MACS = [
    "60:60:1F:AA:BB:CC",
    "60:60:1F:DD:EE:FF",
    "60:60:1F:11:22:33",
    "60:60:1F:44:55:66",
    "AA:BB:CC:DD:EE:FF",
]

# (id, oui, name)
MANUFACTURERS = [
    (1, "60:60:1F", "DJI Technology Co., Ltd."),
    (2, "AA:BB:CC", "Test Manufacturer"),
]

RSSI_RANGE = (-95, -30)

_GENERATED_COUNT = 8
_FIRST_CREATED_ID = 100
_MANUFACTURERS_CREATED = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


class FallbackDataset:
    """In-memory stand-in for the detections API."""

    def __init__(self, now: datetime | None = None, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._last_id = _FIRST_CREATED_ID
        self.detections = self._generate(now or datetime.now(UTC))

    def _generate(self, now: datetime) -> list[DetectionEvent]:
        detections = []
        for i in range(_GENERATED_COUNT):
            detected = now - timedelta(minutes=i)
            # Every other detection has no resolved manufacturer
            resolved = i % 2 == 0
            detections.append(
                DetectionEvent(
                    id=i + 1,
                    mac_address=MACS[i % len(MACS)],
                    rssi=self._rng.randint(*RSSI_RANGE),
                    sensor_location=LOCATIONS[i % len(LOCATIONS)],
                    detected_at=detected,
                    created_at=detected - timedelta(seconds=5),
                    manufacturer_id=1 if resolved else None,
                    manufacturer_name=MANUFACTURERS[0][2] if resolved else None,
                )
            )
        return detections

    def page(self, page: int, limit: int) -> tuple[list[DetectionEvent], int]:
        start = (page - 1) * limit
        return self.detections[start : start + limit], len(self.detections)

    def latest(self, limit: int = 5) -> list[DetectionEvent]:
        return self.detections[:limit]

    def create(self, payload: CreateDetectionPayload) -> DetectionEvent:
        """Record a detection locally, newest first."""
        self._last_id += 1
        manufacturer_id, manufacturer_name = self.resolve(payload.mac)
        now = datetime.now(UTC)
        detection = DetectionEvent(
            id=self._last_id,
            mac_address=payload.mac,
            rssi=payload.rssi,
            sensor_location=payload.sensor_location,
            detected_at=payload.timestamp,
            created_at=now,
            manufacturer_id=manufacturer_id,
            manufacturer_name=manufacturer_name,
        )
        self.detections.insert(0, detection)
        return detection

    def resolve(self, mac: str) -> tuple[int | None, str | None]:
        prefix = oui_prefix(mac)
        for manufacturer_id, oui, name in MANUFACTURERS:
            if oui == prefix:
                return manufacturer_id, name
        return None, None

    def manufacturers(self) -> list[dict[str, Any]]:
        stamp = _MANUFACTURERS_CREATED.isoformat()
        return [
            {"id": mid, "oui": oui, "name": name, "created_at": stamp, "updated_at": stamp}
            for mid, oui, name in MANUFACTURERS
        ]

    def stats(self) -> dict[str, Any]:
        macs: dict[str, int] = {}
        names: dict[str, int] = {}
        for d in self.detections:
            macs[d.mac_address] = macs.get(d.mac_address, 0) + 1
            name = d.manufacturer_name or UNKNOWN_MANUFACTURER
            names[name] = names.get(name, 0) + 1
        top = sorted(names.items(), key=lambda item: item[1], reverse=True)
        return {
            "total_detections": len(self.detections),
            "unique_drones": len(macs),
            "blocked_drones": sum(1 for count in macs.values() if count > 1),
            "active_locations": len({d.sensor_location for d in self.detections}),
            "top_manufacturers": [{"name": n, "count": c} for n, c in top],
        }
