"""Dronewatch dashboard backend entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dronewatch.config import load_config, settings
from dronewatch.dashboard.service import create_service

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup/shutdown lifecycle."""
    service = create_service(load_config())
    app.state.service = service
    await service.load_detections()

    yield

    await service.aclose()
    logger.info("Dashboard service stopped")


app = FastAPI(
    title="Dronewatch",
    description="Drone detection dashboard with repeat-offender blocking",
    version="0.1.0",
    lifespan=lifespan,
)


from dronewatch.dashboard.routes import router as dashboard_router  # noqa: E402

app.include_router(dashboard_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    logger.info("Starting Dronewatch on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
