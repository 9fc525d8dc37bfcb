"""In-memory detection registry and blocklist classification."""

import logging
from collections import Counter
from collections.abc import Callable, Iterable

from dronewatch.alerts.manager import AlertManager
from dronewatch.registry.models import (
    MAC_PATTERN,
    UNKNOWN_MANUFACTURER,
    BlockStatus,
    DetectionEvent,
    IngestResult,
    RegistrySnapshot,
    RegistryStats,
    normalize_mac,
)

logger = logging.getLogger(__name__)


def is_valid_mac(mac: str) -> bool:
    return bool(MAC_PATTERN.match(mac))


def oui_prefix(mac: str) -> str:
    """First three octets of a MAC, e.g. "60:60:1F"."""
    return ":".join(normalize_mac(mac).split(":")[:3])


class DetectionRegistry:
    """Observed detections plus the set of MACs classified as blocked.

    Events are held most-recent-first. A MAC is blocked once it has been seen
    more than once in the current window; ``clear()`` resets the window.
    The registry does no locking: callers must apply mutations one at a time.
    """

    def __init__(self, alerts: AlertManager | None = None) -> None:
        self.alerts = alerts if alerts is not None else AlertManager()
        self._events: list[DetectionEvent] = []
        self._counts: Counter[str] = Counter()
        self._blocked: set[str] = set()
        self._subscribers: list[Callable[[RegistrySnapshot], None]] = []

    @property
    def events(self) -> tuple[DetectionEvent, ...]:
        return tuple(self._events)

    @property
    def blocked_macs(self) -> frozenset[str]:
        return frozenset(self._blocked)

    def __len__(self) -> int:
        return len(self._events)

    def subscribe(self, callback: Callable[[RegistrySnapshot], None]) -> None:
        """Register a callback that receives a snapshot after every mutation."""
        self._subscribers.append(callback)

    # --- Mutations ---

    def ingest(self, event: DetectionEvent) -> IngestResult:
        """Add one event; a repeat MAC becomes blocked and raises an alert."""
        mac = event.mac_address
        is_repeat = self._counts[mac] > 0

        self._events.insert(0, event)
        self._counts[mac] += 1

        if is_repeat:
            self._blocked.add(mac)
            logger.info("Repeat sighting of %s (%d detections)", mac, self._counts[mac])
            self.alerts.raise_blocked(mac, event.manufacturer_name)

        self._publish()
        return IngestResult(was_blocked=is_repeat)

    def ingest_batch(self, events: Iterable[DetectionEvent]) -> None:
        """Prepend a batch and recompute block status over everything held.

        Batch loads never raise alerts, even for repeats.
        """
        batch = list(events)
        self._events[0:0] = batch
        self._counts.update(e.mac_address for e in batch)
        self._recompute_blocked()
        logger.debug("Ingested batch of %d (holding %d)", len(batch), len(self._events))
        self._publish()

    def replace(self, events: Iterable[DetectionEvent]) -> None:
        """Hold exactly ``events`` (e.g. a freshly loaded page) and recompute."""
        self._events = list(events)
        self._counts = Counter(e.mac_address for e in self._events)
        self._recompute_blocked()
        self._publish()

    def clear(self) -> None:
        """Empty the window: events, counts, block status and visible alert."""
        self._events = []
        self._counts = Counter()
        self._blocked = set()
        self.alerts.dismiss()
        self._publish()

    # --- Queries ---

    def is_blocked(self, mac: str) -> bool:
        return mac in self._blocked

    def detection_count(self, mac: str) -> int:
        return self._counts.get(mac, 0)

    def blocked_status_list(self) -> list[BlockStatus]:
        """Per-MAC status, most recently detected first.

        Groups appear in the order their MAC first occurs in the
        most-recent-first event list; the sort is stable so ties on
        ``last_detected`` keep that order.
        """
        groups: dict[str, BlockStatus] = {}
        for event in self._events:
            status = groups.get(event.mac_address)
            if status is None:
                status = BlockStatus(
                    mac_address=event.mac_address,
                    detection_count=0,
                    is_blocked=event.mac_address in self._blocked,
                    last_detected=event.detected_at,
                )
                groups[event.mac_address] = status
            status.detection_count += 1
            if event.detected_at > status.last_detected:
                status.last_detected = event.detected_at
            # Events are newest first, so the first name seen is the latest
            if status.manufacturer_name is None and event.manufacturer_name:
                status.manufacturer_name = event.manufacturer_name

        return sorted(groups.values(), key=lambda s: s.last_detected, reverse=True)

    def stats(self) -> RegistryStats:
        manufacturers = Counter(
            e.manufacturer_name or UNKNOWN_MANUFACTURER for e in self._events
        )
        return RegistryStats(
            total_detections=len(self._events),
            unique_drones=len(self._counts),
            blocked_drones=len(self._blocked),
            active_locations=len({e.sensor_location for e in self._events}),
            top_manufacturers=manufacturers.most_common(),
        )

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(
            events=self.events,
            blocked=self.blocked_macs,
            stats=self.stats(),
        )

    def _recompute_blocked(self) -> None:
        self._blocked = {mac for mac, count in self._counts.items() if count > 1}

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for cb in self._subscribers:
            try:
                cb(snapshot)
            except Exception:
                logger.exception("Registry subscriber failed")
