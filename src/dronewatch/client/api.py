"""Async client for the detections API with local fallback.

Every read falls back to a :class:`FallbackDataset` when the backend cannot
be reached or answers with an error, and marks the result ``is_fallback``
so callers can tell generated data from real data.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from dronewatch.client.fallback import FallbackDataset
from dronewatch.registry.models import CreateDetectionPayload, DetectionEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that trigger the fallback: transport/HTTP errors and malformed bodies.
# Anything else (e.g. TypeError) is a bug and propagates.
_FALLBACK_ERRORS = (httpx.HTTPError, ValueError, KeyError)


def _log_fallback(what: str, exc: Exception) -> None:
    if isinstance(exc, httpx.HTTPError):
        logger.warning("API unavailable, using fallback %s: %s", what, exc)
    else:
        logger.exception("Malformed API response, using fallback %s", what)


@dataclass
class ApiResult(Generic[T]):
    data: T
    is_fallback: bool = False


@dataclass
class DetectionPage:
    data: list[DetectionEvent] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    pages: int = 0


class DroneApiClient:
    """Talks to ``/api/v1`` of the detections backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        fallback: FallbackDataset | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.fallback = fallback or FallbackDataset()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DroneApiClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self._client.get(path, params=params)
        resp.raise_for_status()
        return resp.json()

    async def get_detections(
        self,
        page: int = 1,
        limit: int = 20,
        manufacturer_id: int | None = None,
        location: str | None = None,
    ) -> ApiResult[DetectionPage]:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if manufacturer_id:
            params["manufacturer_id"] = manufacturer_id
        if location:
            params["location"] = location
        try:
            body = await self._get_json("/detections", params=params)
            detections = [DetectionEvent.from_api(d) for d in body["data"]]
            return ApiResult(
                DetectionPage(
                    data=detections,
                    total=int(body["total"]),
                    page=int(body["page"]),
                    limit=int(body["limit"]),
                    pages=int(body["pages"]),
                )
            )
        except _FALLBACK_ERRORS as e:
            _log_fallback("detections", e)
            data, total = self.fallback.page(page, limit)
            return ApiResult(
                DetectionPage(
                    data=data,
                    total=total,
                    page=page,
                    limit=limit,
                    pages=math.ceil(total / limit),
                ),
                is_fallback=True,
            )

    async def get_latest_detections(self, limit: int = 5) -> ApiResult[list[DetectionEvent]]:
        try:
            body = await self._get_json("/detections/latest", params={"limit": limit})
            return ApiResult([DetectionEvent.from_api(d) for d in body])
        except _FALLBACK_ERRORS as e:
            _log_fallback("latest detections", e)
            return ApiResult(self.fallback.latest(limit), is_fallback=True)

    async def create_detection(
        self, payload: CreateDetectionPayload
    ) -> ApiResult[DetectionEvent]:
        try:
            resp = await self._client.post("/detections", json=payload.model_dump(mode="json"))
            resp.raise_for_status()
            return ApiResult(DetectionEvent.from_api(resp.json()))
        except _FALLBACK_ERRORS as e:
            _log_fallback("detection store", e)
            return ApiResult(self.fallback.create(payload), is_fallback=True)

    async def get_manufacturers(self) -> ApiResult[list[dict[str, Any]]]:
        try:
            return ApiResult(list(await self._get_json("/manufacturers")))
        except _FALLBACK_ERRORS as e:
            _log_fallback("manufacturers", e)
            return ApiResult(self.fallback.manufacturers(), is_fallback=True)

    async def get_stats(self) -> ApiResult[dict[str, Any]]:
        try:
            return ApiResult(dict(await self._get_json("/stats")))
        except _FALLBACK_ERRORS as e:
            _log_fallback("stats", e)
            return ApiResult(self.fallback.stats(), is_fallback=True)

    async def delete_detection(self, detection_id: int) -> dict[str, Any]:
        """Delete a detection on the backend. Errors propagate (no fallback)."""
        resp = await self._client.delete(f"/detections/{detection_id}")
        resp.raise_for_status()
        return resp.json()
