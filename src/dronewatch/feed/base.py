"""Base interface for detection producers."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from dronewatch.registry.models import DetectionEvent

DetectionCallback = Callable[[DetectionEvent], Awaitable[object]]


class BaseFeed(ABC):
    """Abstract base for anything that delivers detections over time."""

    @abstractmethod
    async def start(self) -> None:
        """Start producing detections."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop producing."""

    @abstractmethod
    def on_event(self, callback: DetectionCallback) -> None:
        """Register a coroutine callback for new detections."""
