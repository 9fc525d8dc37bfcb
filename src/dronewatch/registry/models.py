"""Detection event, derived block status and the create-detection payload."""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")

UNKNOWN_MANUFACTURER = "Unknown"


def normalize_mac(mac: str) -> str:
    """Normalize a MAC address to uppercase colon-separated format."""
    cleaned = mac.strip().upper().replace("-", ":").replace(".", "")
    # Handle bare hex (e.g. "AABBCCDDEEFF")
    if ":" not in cleaned and len(cleaned) == 12:
        cleaned = ":".join(cleaned[i : i + 2] for i in range(0, 12, 2))
    return cleaned


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value))


@dataclass
class DetectionEvent:
    """A single drone sighting reported by a sensor."""

    id: int
    mac_address: str  # normalized XX:XX:XX:XX:XX:XX
    rssi: int  # dBm (negative, e.g. -50)
    sensor_location: str
    detected_at: datetime
    created_at: datetime
    manufacturer_name: str | None = None
    manufacturer_id: int | None = None

    def __post_init__(self) -> None:
        self.detected_at = ensure_utc(self.detected_at)
        self.created_at = ensure_utc(self.created_at)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DetectionEvent":
        """Build an event from the detections API JSON shape."""
        return cls(
            id=int(data["id"]),
            mac_address=normalize_mac(data["mac_address"]),
            rssi=int(data["rssi"]),
            sensor_location=data["sensor_location"],
            detected_at=parse_timestamp(data["detected_at"]),
            created_at=parse_timestamp(data["created_at"]),
            manufacturer_name=data.get("manufacturer_name"),
            manufacturer_id=data.get("manufacturer_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mac_address": self.mac_address,
            "manufacturer_id": self.manufacturer_id,
            "manufacturer_name": self.manufacturer_name,
            "rssi": self.rssi,
            "sensor_location": self.sensor_location,
            "detected_at": self.detected_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class BlockStatus:
    """Per-MAC summary derived from the events currently held."""

    mac_address: str
    detection_count: int
    is_blocked: bool
    last_detected: datetime
    manufacturer_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mac_address": self.mac_address,
            "detection_count": self.detection_count,
            "is_blocked": self.is_blocked,
            "last_detected": self.last_detected.isoformat(),
            "manufacturer_name": self.manufacturer_name,
        }


@dataclass
class IngestResult:
    was_blocked: bool


@dataclass
class RegistryStats:
    total_detections: int = 0
    unique_drones: int = 0
    blocked_drones: int = 0
    active_locations: int = 0
    top_manufacturers: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "unique_drones": self.unique_drones,
            "blocked_drones": self.blocked_drones,
            "active_locations": self.active_locations,
            "top_manufacturers": [
                {"name": name, "count": count} for name, count in self.top_manufacturers
            ],
        }


@dataclass(frozen=True)
class RegistrySnapshot:
    """Read-only view handed to registry subscribers after each mutation."""

    events: tuple[DetectionEvent, ...]
    blocked: frozenset[str]
    stats: RegistryStats


class CreateDetectionPayload(BaseModel):
    """Detection submitted by a producer (form, simulator or API caller)."""

    mac: str
    rssi: int
    sensor_location: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("mac")
    @classmethod
    def validate_mac(cls, v: str) -> str:
        v = v.strip()
        if not MAC_PATTERN.match(v):
            raise ValueError("Invalid MAC address format (use XX:XX:XX:XX:XX:XX)")
        return v.upper()

    @field_validator("rssi", mode="before")
    @classmethod
    def validate_rssi(cls, v: object) -> object:
        # Reject bools and floats with a fraction; pydantic would coerce them
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("RSSI must be a whole number of dBm")
        if v in (0, "0"):
            raise ValueError("RSSI must be non-zero")
        return v

    @field_validator("sensor_location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location is required")
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)
