"""Configuration management."""

import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

# Values from a local .env only fill in what the environment does not set
BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    for key, value in file_env.items():
        if key not in os.environ and value is not None:
            os.environ[key] = value


class Settings(BaseSettings):
    """Power diagram settings pulled from POWERCELL_* environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console", description="Logging format (console or json)"
    )

    # Clipping
    clip_tolerance: float = Field(
        default=1e-4, gt=0, description="Distance under which clipped points are merged"
    )
    far_factor: float = Field(
        default=4.0,
        ge=2.0,
        description="Multiplier for the length used to realize unbounded rays",
    )

    # Triangulation
    lift_epsilon: float = Field(
        default=1e-12, ge=0, description="Facets with |Nz| at or below this are skipped"
    )
    validation_tolerance: float = Field(
        default=1e-6, gt=0, description="Tolerance for regular triangulation checks"
    )

    class Config:
        env_prefix = "POWERCELL_"


settings = Settings()
