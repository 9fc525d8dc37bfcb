"""Blocked-drone alert lifecycle and webhook dispatch."""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from dronewatch.alerts.models import BlockedAlert

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 5.0


def format_alert_message(mac_address: str, manufacturer_name: str | None = None) -> str:
    """One-line alert text for a blocked MAC."""
    message = f"BLOCKED DRONE DETECTED! MAC: {mac_address}"
    if manufacturer_name:
        message += f" ({manufacturer_name})"
    return message


class AlertManager:
    """Holds at most one visible alert and its expiry timer.

    Raising a new alert replaces the current one and restarts the timer.
    When an event loop is running the expiry is an ``asyncio`` timer handle
    that is cancelled whenever the alert is superseded or dismissed; without
    a running loop the alert still expires lazily when read.
    """

    def __init__(
        self,
        expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.expiry_seconds = expiry_seconds
        self._clock = clock
        self._alert: BlockedAlert | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._observers: list[Callable[[BlockedAlert | None], None]] = []

    @property
    def current(self) -> BlockedAlert | None:
        if self._alert is not None and self._clock() >= self._alert.expires_at:
            self._expire(self._alert)
        return self._alert

    @property
    def message(self) -> str | None:
        alert = self.current
        return alert.message if alert else None

    @property
    def has_pending_expiry(self) -> bool:
        return self._handle is not None

    def subscribe(self, callback: Callable[[BlockedAlert | None], None]) -> None:
        """Register a callback for alert changes (``None`` means cleared)."""
        self._observers.append(callback)

    def raise_blocked(
        self, mac_address: str, manufacturer_name: str | None = None
    ) -> BlockedAlert:
        self._cancel_timer()
        alert = BlockedAlert(
            mac_address=mac_address,
            manufacturer_name=manufacturer_name,
            message=format_alert_message(mac_address, manufacturer_name),
            expires_at=self._clock() + self.expiry_seconds,
        )
        self._alert = alert
        self._schedule_expiry(alert)
        logger.warning("%s", alert.message)
        self._notify(alert)
        return alert

    def dismiss(self) -> None:
        """Drop the visible alert and its pending expiry, if any."""
        self._cancel_timer()
        if self._alert is not None:
            self._alert = None
            self._notify(None)

    def _schedule_expiry(self, alert: BlockedAlert) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expiry is checked on read
            return
        self._handle = loop.call_later(self.expiry_seconds, self._expire, alert)

    def _expire(self, alert: BlockedAlert) -> None:
        # A superseded alert's timer must not clear its replacement
        if self._alert is not alert:
            return
        self._cancel_timer()
        self._alert = None
        logger.debug("Alert expired for %s", alert.mac_address)
        self._notify(None)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _notify(self, alert: BlockedAlert | None) -> None:
        for cb in self._observers:
            try:
                cb(alert)
            except Exception:
                logger.exception("Alert observer failed")


def build_webhook_payload(alert: BlockedAlert, detection_count: int) -> dict[str, Any]:
    """Webhook body for a blocked-drone alert."""
    return {
        "event": "blocked",
        "timestamp": datetime.now(UTC).isoformat(),
        "drone": {
            "mac_address": alert.mac_address,
            "manufacturer_name": alert.manufacturer_name,
            "detection_count": detection_count,
        },
        "message": alert.message,
    }


async def dispatch_webhook(
    url: str,
    payload: dict[str, Any],
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """POST a payload to a webhook URL. Return a result record, never raise.

    Returns:
        Dict with keys: url, status_code, success, error (if failed)
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=10.0) as own_client:
                response = await own_client.post(url, json=payload)
        else:
            response = await client.post(url, json=payload)
    except Exception as e:
        logger.error("Webhook dispatch error: %s → %s: %s", payload["event"], url, e)
        return {"url": url, "status_code": None, "success": False, "error": str(e)}

    if response.is_success:
        logger.info(
            "Webhook delivered: %s → %s (HTTP %d)", payload["event"], url, response.status_code
        )
    else:
        logger.warning(
            "Webhook failed: %s → %s (HTTP %d)", payload["event"], url, response.status_code
        )
    return {
        "url": url,
        "status_code": response.status_code,
        "success": response.is_success,
    }
