"""Blocked-drone alert model."""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass
class BlockedAlert:
    """The single visible alert raised on a repeat sighting."""

    mac_address: str
    message: str
    expires_at: float  # clock() value after which the alert is stale
    manufacturer_name: str | None = None
    raised_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.raised_at is None:
            self.raised_at = datetime.now(UTC)
