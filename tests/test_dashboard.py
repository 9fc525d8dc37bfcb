"""Tests for the dashboard service and its JSON routes."""

import asyncio
from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

import dronewatch.database as db_module
from dronewatch.alerts.manager import AlertManager
from dronewatch.client.api import DroneApiClient
from dronewatch.dashboard.service import DashboardService
from dronewatch.database import get_session
from dronewatch.registry.models import CreateDetectionPayload
from dronewatch.registry.store import DetectionRegistry
from dronewatch.server.main import app as server_app
from dronewatch.server.store import seed_db

NEW_MAC = "60:60:1F:99:88:77"


def _payload(mac: str = NEW_MAC, rssi: int = -55) -> CreateDetectionPayload:
    return CreateDetectionPayload(mac=mac, rssi=rssi, sensor_location="Main Entrance")


class TestDashboardService:
    @pytest.mark.asyncio
    async def test_load_uses_fallback_without_alert(self, offline_service):
        page = await offline_service.load_detections()

        assert len(page.data) == 8
        assert offline_service.is_fallback is True
        assert len(offline_service.registry) == 8
        assert offline_service.registry.stats().blocked_drones == 3
        assert offline_service.alerts.message is None

    @pytest.mark.asyncio
    async def test_load_replaces_window(self, offline_service):
        await offline_service.submit_detection(_payload("DE:AD:BE:EF:00:01"))
        await offline_service.load_detections()
        assert offline_service.registry.detection_count("DE:AD:BE:EF:00:01") == 1

    @pytest.mark.asyncio
    async def test_repeat_submission_blocks_and_alerts(self, offline_service):
        first = await offline_service.submit_detection(_payload())
        second = await offline_service.submit_detection(_payload(rssi=-80))

        assert first.was_blocked is False
        assert second.was_blocked is True
        assert second.is_fallback is True
        assert offline_service.registry.detection_count(NEW_MAC) == 2
        assert NEW_MAC in offline_service.alerts.message

    @pytest.mark.asyncio
    async def test_submission_matching_loaded_mac_blocks(self, offline_service):
        await offline_service.load_detections()
        result = await offline_service.submit_detection(_payload("AA:BB:CC:DD:EE:FF"))
        assert result.was_blocked is True

    @pytest.mark.asyncio
    async def test_clear_resets_view(self, offline_service):
        await offline_service.submit_detection(_payload())
        await offline_service.submit_detection(_payload())
        await offline_service.clear()

        view = offline_service.view()
        assert view["detections"] == []
        assert view["blocked"] == []
        assert view["alert"] is None
        assert view["stats"]["total_detections"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_ingests_are_serialized(self, offline_service, make_event):
        events = [make_event(mac=NEW_MAC) for _ in range(5)]
        results = await asyncio.gather(*(offline_service.handle_detection(e) for e in events))

        assert [r.was_blocked for r in results] == [False, True, True, True, True]
        assert offline_service.registry.detection_count(NEW_MAC) == 5

    @pytest.mark.asyncio
    async def test_webhook_dispatched_on_block(self, offline_service, make_event):
        offline_service.webhook_url = "https://hooks.example.com/drone"
        with patch(
            "dronewatch.dashboard.service.dispatch_webhook", new_callable=AsyncMock
        ) as dispatch:
            await offline_service.handle_detection(make_event(mac=NEW_MAC, manufacturer="DJI"))
            dispatch.assert_not_awaited()
            await offline_service.handle_detection(make_event(mac=NEW_MAC, manufacturer="DJI"))

        dispatch.assert_awaited_once()
        url, payload = dispatch.await_args.args
        assert url == "https://hooks.example.com/drone"
        assert payload["drone"]["mac_address"] == NEW_MAC
        assert payload["drone"]["detection_count"] == 2
        assert payload["drone"]["manufacturer_name"] == "DJI"

    @pytest.mark.asyncio
    async def test_simulation_feeds_registry(self, offline_service):
        await offline_service.start_simulation()
        await asyncio.sleep(0.2)
        await offline_service.stop_simulation()

        assert len(offline_service.registry) > 0
        assert offline_service.view()["simulation_running"] is False

    def test_drone_lookup(self, offline_service, make_event):
        offline_service.registry.ingest(make_event(mac=NEW_MAC))
        assert offline_service.drone(NEW_MAC.lower()) == {
            "mac_address": NEW_MAC,
            "detection_count": 1,
            "is_blocked": False,
        }
        assert offline_service.drone("00:00:00:00:00:01") is None


@pytest.fixture
def live_service(engine) -> Generator[DashboardService, None, None]:
    """Dashboard service talking to the mock API app in-process."""
    original_engine = db_module.engine
    db_module.engine = engine
    with Session(engine) as s:
        seed_db(s)

    def _override_session() -> Generator[Session, None, None]:
        with Session(engine) as s:
            yield s

    server_app.dependency_overrides[get_session] = _override_session
    client = DroneApiClient(
        "http://mock.test/api/v1", transport=httpx.ASGITransport(app=server_app)
    )
    yield DashboardService(client, DetectionRegistry(AlertManager()))
    server_app.dependency_overrides.clear()
    db_module.engine = original_engine


class TestAgainstMockServer:
    @pytest.mark.asyncio
    async def test_load_and_submit(self, live_service):
        page = await live_service.load_detections()
        assert live_service.is_fallback is False
        assert page.total == 3
        assert live_service.registry.stats().blocked_drones == 0

        result = await live_service.submit_detection(_payload("60:60:1F:AA:BB:CC"))
        assert result.is_fallback is False
        assert result.was_blocked is True
        assert result.detection.id == 4
        assert result.detection.manufacturer_name == "DJI Technology Co., Ltd."

        [top] = [s for s in live_service.registry.blocked_status_list() if s.is_blocked]
        assert top.mac_address == "60:60:1F:AA:BB:CC"
        assert top.detection_count == 2
        await live_service.aclose()


class TestDashboardRoutes:
    def test_health(self, dashboard_client: TestClient):
        resp = dashboard_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_view_after_startup_load(self, dashboard_client: TestClient):
        resp = dashboard_client.get("/api/dashboard")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["detections"]) == 8
        assert data["is_fallback"] is True
        assert data["alert"] is None
        assert data["stats"]["blocked_drones"] == 3
        assert data["simulation_running"] is False

    def test_submit_invalid_detection(self, dashboard_client: TestClient):
        resp = dashboard_client.post(
            "/api/dashboard/detections",
            json={"mac": "60:60:1F", "rssi": -50, "sensor_location": "Gate"},
        )
        assert resp.status_code == 422

    def test_submit_repeat_detection(self, dashboard_client: TestClient):
        body = {"mac": NEW_MAC, "rssi": -50, "sensor_location": "Gate"}
        first = dashboard_client.post("/api/dashboard/detections", json=body)
        assert first.status_code == 201
        assert first.json()["was_blocked"] is False

        second = dashboard_client.post("/api/dashboard/detections", json=body).json()
        assert second["was_blocked"] is True
        assert second["alert"] == f"BLOCKED DRONE DETECTED! MAC: {NEW_MAC} (DJI Technology Co., Ltd.)"

        drone = dashboard_client.get(f"/api/dashboard/drones/{NEW_MAC.lower()}").json()
        assert drone == {"mac_address": NEW_MAC, "detection_count": 2, "is_blocked": True}

    def test_blocked_only_filter(self, dashboard_client: TestClient):
        everything = dashboard_client.get("/api/dashboard/blocked").json()
        blocked = dashboard_client.get("/api/dashboard/blocked?blocked_only=true").json()
        assert len(everything) == 5
        assert len(blocked) == 3
        assert all(s["is_blocked"] for s in blocked)
        last = [s["last_detected"] for s in everything]
        assert last == sorted(last, reverse=True)

    def test_clear(self, dashboard_client: TestClient):
        resp = dashboard_client.post("/api/dashboard/clear")
        assert resp.status_code == 200
        data = dashboard_client.get("/api/dashboard").json()
        assert data["detections"] == []
        assert data["blocked"] == []

    def test_refresh(self, dashboard_client: TestClient):
        dashboard_client.post("/api/dashboard/clear")
        resp = dashboard_client.post("/api/dashboard/refresh?limit=4")
        assert resp.status_code == 200
        assert resp.json() == {
            "total": 8,
            "page": 1,
            "pages": 2,
            "loaded": 4,
            "is_fallback": True,
        }

    def test_drone_not_found(self, dashboard_client: TestClient):
        assert dashboard_client.get("/api/dashboard/drones/00:00:00:00:00:01").status_code == 404

    def test_simulation_toggle(self, dashboard_client: TestClient):
        started = dashboard_client.post("/api/dashboard/simulation/start").json()
        assert started == {"simulation_running": True}
        stopped = dashboard_client.post("/api/dashboard/simulation/stop").json()
        assert stopped == {"simulation_running": False}
