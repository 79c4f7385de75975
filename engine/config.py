"""Configuration management for the Galaxy Piano engine.

Loads and validates environment variables using Pydantic settings.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class GalaxyConfig(BaseSettings):
    """Galaxy Piano engine configuration loaded from environment variables."""

    # Server settings
    env: Literal["development", "production", "test"] = Field(
        default="development", alias="GALAXY_ENV"
    )
    host: str = Field(default="0.0.0.0", alias="GALAXY_HOST")
    port: int = Field(default=8000, alias="GALAXY_PORT", ge=1024, le=65535)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="GALAXY_LOG_LEVEL"
    )

    # Sequencer settings
    default_bpm: float = Field(default=120.0, gt=0)
    quantization: int = Field(default=16, ge=1, le=64)
    max_steps_per_track: int = Field(default=64, ge=1, le=512)
    total_steps: int = Field(default=16, ge=1)
    max_tracks: int = Field(default=8, ge=1, le=64)
    default_track_count: int = Field(default=4, ge=1)
    loop: bool = Field(default=True)
    analyze_steps: bool = Field(default=True)

    # Input defaults
    default_velocity: float = Field(default=0.7, ge=0.0, le=1.0)
    default_duration: float = Field(default=0.5, gt=0)
    default_octave: int = Field(default=4, ge=0, le=8)

    # Harmony analysis
    suggestion_limit: int = Field(default=5, ge=1, le=20)
    progression_history_size: int = Field(default=8, ge=1, le=64)

    # Metrics
    metrics_window: int = Field(default=1000, ge=10)

    @field_validator("total_steps")
    @classmethod
    def validate_total_steps(cls, v: int, info) -> int:
        """Playback length cannot exceed the step storage of a track."""
        max_steps = info.data.get("max_steps_per_track")
        if max_steps is not None and v > max_steps:
            raise ValueError(f"total_steps ({v}) exceeds max_steps_per_track ({max_steps})")
        return v

    @field_validator("default_track_count")
    @classmethod
    def validate_track_count(cls, v: int, info) -> int:
        max_tracks = info.data.get("max_tracks")
        if max_tracks is not None and v > max_tracks:
            raise ValueError(f"default_track_count ({v}) exceeds max_tracks ({max_tracks})")
        return v

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Singleton configuration instance
_config: GalaxyConfig | None = None


def get_config() -> GalaxyConfig:
    """Get the global configuration instance.

    Returns:
        GalaxyConfig: Configuration singleton
    """
    global _config
    if _config is None:
        _config = GalaxyConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
