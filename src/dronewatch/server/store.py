"""Mock backend CRUD: detections, manufacturers, stats and seed data."""

import asyncio
import logging
import math
from datetime import UTC, datetime
from typing import Any

from mac_vendor_lookup import AsyncMacLookup, VendorNotFoundError
from sqlalchemy import func
from sqlmodel import Session, col, select

from dronewatch.config import settings
from dronewatch.registry.models import UNKNOWN_MANUFACTURER, CreateDetectionPayload
from dronewatch.registry.store import normalize_mac, oui_prefix
from dronewatch.server.models import Detection, Manufacturer

logger = logging.getLogger(__name__)

_mac_lookup: AsyncMacLookup | None = None

_SEED_MANUFACTURERS = [
    ("60:60:1F", "DJI Technology Co., Ltd."),
    ("00:26:5F", "Parrot"),
]

# (mac, rssi, location, detected_at, created_at)
_SEED_DETECTIONS = [
    ("60:60:1F:AA:BB:CC", -50, "Building A - Floor 3", "2024-12-04T10:30:00", "2024-12-04T10:30:05"),
    ("AA:BB:CC:DD:EE:FF", -65, "Rooftop - Perimeter Zone", "2024-12-04T10:35:00", "2024-12-04T10:35:05"),
    ("00:26:5F:44:55:66", -75, "Parking Lot", "2024-12-04T10:40:00", "2024-12-04T10:40:05"),
]

_SEED_TIMESTAMP = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)


def lookup_vendor(mac: str) -> str | None:
    """Look up the device manufacturer from the mac-vendor-lookup OUI database.

    Synchronous callers only: the sync route handlers run in FastAPI's worker
    threads, which have no event loop of their own. Called from inside a
    running loop, the lookup is skipped and None is returned.
    """
    global _mac_lookup
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        logger.warning("Vendor lookup for %s skipped: called from a running event loop", mac)
        return None

    if _mac_lookup is None:
        _mac_lookup = AsyncMacLookup()
    try:
        return asyncio.run(_mac_lookup.lookup(normalize_mac(mac)))
    except VendorNotFoundError:
        return None
    except Exception:
        logger.debug("Vendor lookup failed for %s", mac, exc_info=True)
        return None


def seed_db(session: Session) -> None:
    """Load the initial manufacturers and detections into an empty database."""
    if session.exec(select(Manufacturer)).first() is not None:
        return
    for oui, name in _SEED_MANUFACTURERS:
        session.add(
            Manufacturer(oui=oui, name=name, created_at=_SEED_TIMESTAMP, updated_at=_SEED_TIMESTAMP)
        )
    session.commit()

    for mac, rssi, location, detected, created in _SEED_DETECTIONS:
        manufacturer = get_manufacturer_by_oui(session, oui_prefix(mac))
        session.add(
            Detection(
                mac_address=mac,
                manufacturer_id=manufacturer.id if manufacturer else None,
                manufacturer_name=manufacturer.name if manufacturer else None,
                rssi=rssi,
                sensor_location=location,
                detected_at=datetime.fromisoformat(detected).replace(tzinfo=UTC),
                created_at=datetime.fromisoformat(created).replace(tzinfo=UTC),
            )
        )
    session.commit()
    logger.info(
        "Seeded %d manufacturers and %d detections",
        len(_SEED_MANUFACTURERS),
        len(_SEED_DETECTIONS),
    )


# --- Manufacturers ---


def list_manufacturers(session: Session) -> list[Manufacturer]:
    stmt = select(Manufacturer).order_by(col(Manufacturer.id))
    return list(session.exec(stmt).all())


def get_manufacturer_by_oui(session: Session, oui: str) -> Manufacturer | None:
    stmt = select(Manufacturer).where(Manufacturer.oui == oui.upper())
    return session.exec(stmt).first()


def resolve_manufacturer(session: Session, mac: str) -> tuple[int | None, str | None]:
    """Resolve (manufacturer_id, manufacturer_name) from the MAC's OUI prefix."""
    manufacturer = get_manufacturer_by_oui(session, oui_prefix(mac))
    if manufacturer is not None:
        return manufacturer.id, manufacturer.name
    if settings.oui_lookup_fallback:
        return None, lookup_vendor(mac)
    return None, None


# --- Detections ---


def list_detections(
    session: Session,
    page: int = 1,
    limit: int = 10,
    manufacturer_id: int | None = None,
    location: str | None = None,
) -> tuple[list[Detection], int]:
    """One page of detections in insertion order, plus the filtered total."""
    stmt = select(Detection)
    count_stmt = select(func.count()).select_from(Detection)
    if manufacturer_id is not None:
        stmt = stmt.where(Detection.manufacturer_id == manufacturer_id)
        count_stmt = count_stmt.where(Detection.manufacturer_id == manufacturer_id)
    if location:
        stmt = stmt.where(Detection.sensor_location == location)
        count_stmt = count_stmt.where(Detection.sensor_location == location)

    total = session.exec(count_stmt).one()
    stmt = stmt.order_by(col(Detection.id)).offset((page - 1) * limit).limit(limit)
    return list(session.exec(stmt).all()), total


def paginate(
    detections: list[Detection], total: int, page: int, limit: int
) -> dict[str, Any]:
    return {
        "status": 200,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit),
        "data": detections,
    }


def latest_detections(session: Session, limit: int = 5) -> list[Detection]:
    """The last ``limit`` detections, oldest first."""
    stmt = select(Detection).order_by(col(Detection.id).desc()).limit(limit)
    return list(reversed(session.exec(stmt).all()))


def create_detection(session: Session, payload: CreateDetectionPayload) -> Detection:
    """Store a detection, stamping created_at and resolving its manufacturer."""
    manufacturer_id, manufacturer_name = resolve_manufacturer(session, payload.mac)
    detection = Detection(
        mac_address=payload.mac,
        manufacturer_id=manufacturer_id,
        manufacturer_name=manufacturer_name,
        rssi=payload.rssi,
        sensor_location=payload.sensor_location,
        detected_at=payload.timestamp,
        created_at=datetime.now(UTC),
    )
    session.add(detection)
    session.commit()
    session.refresh(detection)
    logger.info(
        "Created detection %s for %s at %s",
        detection.id,
        detection.mac_address,
        detection.sensor_location,
    )
    return detection


def delete_detection(session: Session, detection_id: int) -> Detection | None:
    """Delete a detection. Return the deleted row, or None if not found."""
    detection = session.get(Detection, detection_id)
    if detection is None:
        return None
    # Detached copy: the session expires the row's attributes on commit
    deleted = Detection(**detection.model_dump())
    session.delete(detection)
    session.commit()
    logger.info("Deleted detection %s", detection_id)
    return deleted


# --- Stats ---


def get_stats(session: Session) -> dict[str, Any]:
    detections = session.exec(select(Detection)).all()
    mac_counts: dict[str, int] = {}
    manufacturer_counts: dict[str, int] = {}
    for d in detections:
        mac_counts[d.mac_address] = mac_counts.get(d.mac_address, 0) + 1
        name = d.manufacturer_name or UNKNOWN_MANUFACTURER
        manufacturer_counts[name] = manufacturer_counts.get(name, 0) + 1

    top = sorted(manufacturer_counts.items(), key=lambda item: item[1], reverse=True)
    return {
        "total_detections": len(detections),
        "unique_drones": len(mac_counts),
        "blocked_drones": sum(1 for count in mac_counts.values() if count > 1),
        "active_locations": len({d.sensor_location for d in detections}),
        "top_manufacturers": [{"name": name, "count": count} for name, count in top],
    }
