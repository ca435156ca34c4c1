"""
CueScore Configuration

Environment-based configuration for the cue engine, plus the named design
constants the scheduler, selectors and simulator share.
"""
import logging
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _app_version_from_package() -> str:
    """Read version from the installed distribution metadata."""
    try:
        from importlib.metadata import PackageNotFoundError, version
        return version("cuescore")
    except PackageNotFoundError:
        pass
    # Fallback: parse pyproject.toml directly (dev / non-installed mode)
    from pathlib import Path
    import re
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    if pyproject.exists():
        match = re.search(r'^version\s*=\s*"([^"]+)"', pyproject.read_text(), re.MULTILINE)
        if match:
            return match.group(1)
    return "0.0.0-unknown"


class EngineTuning(BaseModel):
    """Fixed design parameters of the scheduling engine.

    These values are musical choices, not derived quantities. They are grouped
    here so every threshold the selectors and scheduler compare against has a
    name and a single definition.

    Attributes:
        preroll_secs: Gap between ``start_piece`` and musical time zero.
        countdown_secs: Length of every cue-change countdown.
        tick_secs: Period of the countdown render tick.
        max_play_streak: Consecutive Play rounds before a performer is skipped.
        max_rest_streak: Consecutive Rest rounds before a performer is forced in.
        play_cap_contrast: Play-streak cap applies strictly above this contrast.
        rest_cap_contrast: Rest-streak cap applies strictly below this contrast.
        bell_contrast: Contrast from which ensemble sizes follow the bell curve.
        blend_contrast: Contrast from which the bell curve blends with activity.
        small_ensemble: Largest ensemble treated as a "small group".
        tutti_epsilon: Contrast at or below which every round is tutti.
        interval_jitter: Relative uniform jitter applied to prompt intervals.
        sim_acceleration: Default clock multiplier for the simulator.
        sim_safety_buffer_secs: Real seconds added to the simulator timeout.
    """

    model_config = ConfigDict(frozen=True)

    preroll_secs: float = Field(default=5.0, ge=0)
    countdown_secs: float = Field(default=5.0, gt=0)
    tick_secs: float = Field(default=0.2, gt=0)
    max_play_streak: int = Field(default=3, ge=1)
    max_rest_streak: int = Field(default=3, ge=1)
    play_cap_contrast: float = Field(default=0.6, ge=0, le=1)
    rest_cap_contrast: float = Field(default=0.4, ge=0, le=1)
    bell_contrast: float = Field(default=0.7, ge=0, le=1)
    blend_contrast: float = Field(default=0.4, ge=0, le=1)
    small_ensemble: int = Field(default=5, ge=2)
    tutti_epsilon: float = Field(default=0.0001, ge=0)
    interval_jitter: float = Field(default=0.15, ge=0, lt=1)
    sim_acceleration: float = Field(default=60.0, gt=0)
    sim_safety_buffer_secs: float = Field(default=5.0, ge=0)

    @model_validator(mode="after")
    def _check_contrast_bands(self) -> "EngineTuning":
        """The rest-cap band must sit below the play-cap band."""
        if self.rest_cap_contrast > self.play_cap_contrast:
            raise ValueError("rest_cap_contrast must not exceed play_cap_contrast")
        if self.blend_contrast > self.bell_contrast:
            raise ValueError("blend_contrast must not exceed bell_contrast")
        return self


DEFAULT_TUNING = EngineTuning()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "CueScore"
    app_version: str = _app_version_from_package()
    debug: bool = False
    log_level: str = "INFO"

    # Engine design constants; override with e.g. CUESCORE_TUNING__COUNTDOWN_SECS=3
    tuning: EngineTuning = DEFAULT_TUNING

    @model_validator(mode="after")
    def _check_log_level(self) -> "Settings":
        """Fall back to INFO for unknown log level names."""
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            logging.getLogger(__name__).warning(
                f"Unknown log level {self.log_level!r}, using INFO"
            )
            self.log_level = "INFO"
        return self

    model_config = SettingsConfigDict(
        env_prefix="CUESCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
