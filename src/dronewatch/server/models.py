"""Mock backend tables."""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Manufacturer(SQLModel, table=True):
    """A drone maker identified by its MAC OUI prefix."""

    id: int | None = Field(default=None, primary_key=True)
    oui: str = Field(index=True, unique=True)  # "60:60:1F"
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Detection(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    mac_address: str = Field(index=True)
    manufacturer_id: int | None = Field(default=None, foreign_key="manufacturer.id")
    manufacturer_name: str | None = None
    rssi: int
    sensor_location: str = Field(index=True)
    detected_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
