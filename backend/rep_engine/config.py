"""Engine configuration."""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from rep_engine.errors import ConfigurationError


class EngineSettings(BaseSettings):
    """Process-wide settings loaded from environment variables (REP_ENGINE_*)."""

    model_config = SettingsConfigDict(env_prefix="REP_ENGINE_", env_file=".env", extra="ignore")

    # Application
    app_name: str = "Rep Engine"
    debug: bool = False
    api_prefix: str = "/api"

    # Positioning
    stability_window_seconds: float = 1.5  # Readiness must hold this long before countdown
    countdown_seconds: int = 3

    # Readiness thresholds
    min_joint_confidence: float = 0.5
    min_mean_confidence: float = 0.7

    # Counting
    min_dwell_seconds: float = 0.15  # Phase must be seen this long to become stable
    smoothing_window: int = 5  # Savitzky-Golay window (frames), <= 1 disables smoothing

    # Holds pause when frames stop arriving for this long
    frame_timeout_seconds: float = 1.0


class SessionConfig(BaseModel):
    """Per-session overrides validated at start()."""

    model_config = ConfigDict(extra="forbid")

    stability_window_seconds: float = Field(1.5, ge=0)
    countdown_seconds: int = Field(3, ge=0)
    min_joint_confidence: float = Field(0.5, ge=0, le=1)
    min_mean_confidence: float = Field(0.7, ge=0, le=1)
    min_dwell_seconds: float = Field(0.15, ge=0)
    smoothing_window: int = Field(5, ge=0)
    frame_timeout_seconds: float = Field(1.0, gt=0)

    # None keeps the exercise's own break policy
    reset_on_break: Optional[bool] = None

    @classmethod
    def from_settings(cls, settings: EngineSettings, **overrides) -> "SessionConfig":
        """Build a config from engine defaults, applying overrides on top."""
        values = {
            name: getattr(settings, name)
            for name in cls.model_fields
            if hasattr(settings, name)
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.validated(**values)

    @classmethod
    def validated(cls, **values) -> "SessionConfig":
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid session config: {e}") from e


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
