"""Mock detections API server entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from dronewatch import database
from dronewatch.config import settings
from dronewatch.server.store import seed_db

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create and seed the in-memory database on startup."""
    # Import models to register them with SQLModel before init_db()
    import dronewatch.server.models  # noqa: F401

    database.init_db()
    with Session(database.engine) as session:
        seed_db(session)
    logger.info("Mock database initialized")

    yield


app = FastAPI(
    title="Dronewatch Mock API",
    description="In-memory drone detections backend for development",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

from dronewatch.server.routes import router as api_router  # noqa: E402

app.include_router(api_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    logger.info("Starting mock API on %s:%d", settings.mock_host, settings.mock_port)
    uvicorn.run(app, host=settings.mock_host, port=settings.mock_port)


if __name__ == "__main__":
    main()
