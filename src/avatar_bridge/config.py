import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings

from avatar_bridge.avatar.codec import DEFAULT_SKELETON


class AppSettings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    app_name: str = Field(default="avatar-driver")
    log_level: str = Field(default="INFO")
    skeleton: str = Field(default=DEFAULT_SKELETON, description="JSON list of bone descriptors")
    skeleton_file: Optional[Path] = None
    sensor_driver_name: str = Field(default="org.unbiquitous.unbihealth.IMUDriver")
    sensor_devices: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Sensor driver instance id -> sensor ids it serves",
    )

    model_config = {
        "env_file": (".env", ".env.local", str(Path(__file__).parent.parent.parent / ".env")),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def skeleton_json(self) -> str:
        """Return the skeleton description, preferring ``skeleton_file`` when set."""
        if self.skeleton_file is not None:
            return self.skeleton_file.read_text(encoding="utf-8")
        return self.skeleton


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached application settings."""

    return AppSettings()


def configure_logging(settings: AppSettings) -> None:
    """Route loguru output to stderr at the configured level."""

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())
