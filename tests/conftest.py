"""Shared test fixtures."""

import random
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import dronewatch.database as db_module
import dronewatch.server.models  # noqa: F401
from dronewatch.alerts.manager import AlertManager
from dronewatch.client.api import DroneApiClient
from dronewatch.client.fallback import FallbackDataset
from dronewatch.dashboard.service import DashboardService
from dronewatch.database import get_session
from dronewatch.feed.simulation import SimulationFeed
from dronewatch.registry.models import DetectionEvent
from dronewatch.registry.store import DetectionRegistry
from dronewatch.server.main import app as server_app

BASE_TIME = datetime(2024, 12, 4, 10, 30, tzinfo=UTC)


@pytest.fixture
def make_event() -> Callable[..., DetectionEvent]:
    """Factory for DetectionEvents with sequential ids and timestamps."""
    counter = {"id": 0}

    def _make(
        mac: str = "AA:BB:CC:DD:EE:01",
        rssi: int = -50,
        location: str = "Gate",
        manufacturer: str | None = None,
        detected_at: datetime | None = None,
    ) -> DetectionEvent:
        counter["id"] += 1
        when = detected_at or BASE_TIME + timedelta(seconds=counter["id"])
        return DetectionEvent(
            id=counter["id"],
            mac_address=mac,
            rssi=rssi,
            sensor_location=location,
            detected_at=when,
            created_at=when + timedelta(seconds=5),
            manufacturer_name=manufacturer,
        )

    return _make


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created.

    StaticPool ensures every session uses the same connection,
    so the in-memory database is shared across the test.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture
def server_client(engine) -> Generator[TestClient, None, None]:
    """Mock API TestClient with overridden DB engine and session.

    The lifespan seeds the patched engine, so every test starts with the
    seed manufacturers and detections.
    """
    original_engine = db_module.engine
    db_module.engine = engine

    def _override_session() -> Generator[Session, None, None]:
        with Session(engine) as s:
            yield s

    server_app.dependency_overrides[get_session] = _override_session
    with TestClient(server_app) as c:
        yield c
    server_app.dependency_overrides.clear()
    db_module.engine = original_engine


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def offline_transport() -> httpx.MockTransport:
    """Transport that fails every request, forcing the fallback path."""
    return httpx.MockTransport(_unreachable)


@pytest.fixture
def offline_service(offline_transport) -> DashboardService:
    """Dashboard service whose backend is unreachable."""
    client = DroneApiClient(
        "http://backend.test/api/v1",
        fallback=FallbackDataset(now=BASE_TIME, rng=random.Random(0)),
        transport=offline_transport,
    )
    registry = DetectionRegistry(AlertManager(expiry_seconds=5.0))
    simulation = SimulationFeed(client, interval=0.05, rng=random.Random(1))
    return DashboardService(client, registry, simulation=simulation, page_size=20)


@pytest.fixture
def dashboard_client(offline_service) -> Generator[TestClient, None, None]:
    """Dashboard TestClient running against the offline service."""
    from dronewatch.main import app

    with patch("dronewatch.main.create_service", return_value=offline_service):
        with TestClient(app) as c:
            yield c
