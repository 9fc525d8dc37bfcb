"""Application configuration via environment variables and .env file."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings.sources import DotEnvSettingsSource, PydanticBaseSettingsSource

# Path to .env file (patch in tests to use tmp_path / ".env")
_ENV_FILE: Path = Path(".env")


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "DRONEWATCH_",
        "env_file_encoding": "utf-8",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Load .env from _ENV_FILE (patchable in tests)
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(
                settings_cls,
                env_file=_ENV_FILE,
                env_file_encoding="utf-8",
            ),
            file_secret_settings,
        )

    # Logging
    log_level: str = "info"

    # Dashboard server
    host: str = "0.0.0.0"
    port: int = 8000

    # Mock backend server
    mock_host: str = "0.0.0.0"
    mock_port: int = 8080

    # Detections API the dashboard talks to
    api_base_url: str = "http://localhost:8080/api/v1"
    api_timeout: float = 10.0
    page_size: int = 20

    # Simulation feed
    simulation_interval: float = 5.0  # seconds between simulated detections

    # Alerts
    alert_expiry_seconds: float = 5.0
    alert_webhook_url: str | None = None

    # Mock backend: fall back to the mac-vendor-lookup OUI database for
    # prefixes missing from the manufacturers table (may download on first use)
    oui_lookup_fallback: bool = False

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("page_size")
    @classmethod
    def positive_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page_size must be a positive integer")
        return v


def load_config() -> Settings:
    """Load configuration from .env and environment (env overrides .env)."""
    return Settings()


settings = Settings()
