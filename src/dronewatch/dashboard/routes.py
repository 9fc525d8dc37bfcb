"""Dashboard JSON endpoints read by the presentation layer."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from dronewatch.dashboard.service import DashboardService
from dronewatch.registry.models import CreateDetectionPayload

router = APIRouter(prefix="/api/dashboard")


def get_service(request: Request) -> DashboardService:
    return request.app.state.service


@router.get("")
async def dashboard_view(
    service: DashboardService = Depends(get_service),
) -> dict[str, Any]:
    return service.view()


@router.get("/blocked")
async def blocked_list(
    blocked_only: bool = False,
    service: DashboardService = Depends(get_service),
) -> list[dict[str, Any]]:
    statuses = service.registry.blocked_status_list()
    if blocked_only:
        statuses = [s for s in statuses if s.is_blocked]
    return [s.to_dict() for s in statuses]


@router.get("/drones/{mac}")
async def drone_detail(
    mac: str,
    service: DashboardService = Depends(get_service),
) -> dict[str, Any]:
    drone = service.drone(mac)
    if drone is None:
        raise HTTPException(status_code=404, detail="Drone not found")
    return drone


@router.post("/refresh")
async def refresh_detections(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    service: DashboardService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.load_detections(page=page, limit=limit)
    return {
        "total": result.total,
        "page": result.page,
        "pages": result.pages,
        "loaded": len(result.data),
        "is_fallback": service.is_fallback,
    }


@router.post("/detections", status_code=201)
async def submit_detection(
    payload: CreateDetectionPayload,
    service: DashboardService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.submit_detection(payload)
    return {
        "detection": result.detection.to_dict(),
        "was_blocked": result.was_blocked,
        "is_fallback": result.is_fallback,
        "alert": service.alerts.message,
    }


@router.post("/clear")
async def clear_detections(
    service: DashboardService = Depends(get_service),
) -> dict[str, str]:
    await service.clear()
    return {"status": "cleared"}


@router.post("/simulation/start")
async def start_simulation(
    service: DashboardService = Depends(get_service),
) -> dict[str, bool]:
    await service.start_simulation()
    return {"simulation_running": service.simulation.is_running}


@router.post("/simulation/stop")
async def stop_simulation(
    service: DashboardService = Depends(get_service),
) -> dict[str, bool]:
    await service.stop_simulation()
    return {"simulation_running": service.simulation.is_running}
