"""Mock backend REST endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from dronewatch.database import get_session
from dronewatch.registry.models import CreateDetectionPayload
from dronewatch.server.models import Detection, Manufacturer
from dronewatch.server.store import (
    create_detection,
    delete_detection,
    get_stats,
    latest_detections,
    list_detections,
    list_manufacturers,
    paginate,
)

router = APIRouter(prefix="/api/v1")


@router.get("/manufacturers")
def list_all_manufacturers(
    session: Session = Depends(get_session),
) -> list[Manufacturer]:
    return list_manufacturers(session)


@router.get("/detections")
def list_all_detections(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    manufacturer_id: int | None = None,
    location: str | None = None,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    detections, total = list_detections(
        session, page=page, limit=limit, manufacturer_id=manufacturer_id, location=location
    )
    return paginate(detections, total, page, limit)


@router.get("/detections/latest")
def list_latest_detections(
    limit: int = Query(5, ge=1),
    session: Session = Depends(get_session),
) -> list[Detection]:
    return latest_detections(session, limit=limit)


@router.post("/detections", status_code=201)
def create_new_detection(
    payload: CreateDetectionPayload,
    session: Session = Depends(get_session),
) -> Detection:
    return create_detection(session, payload)


@router.delete("/detections/{detection_id}")
def delete_existing_detection(
    detection_id: int,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    deleted = delete_detection(session, detection_id)
    if deleted is None:
        raise HTTPException(status_code=404, detail="Detection not found")
    return {
        "status": 200,
        "message": "Detection deleted successfully",
        "deleted": deleted,
    }


@router.get("/stats")
def stats_summary(
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    return get_stats(session)
