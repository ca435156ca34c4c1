"""
Tests for application config (Settings) and the engine design constants.

Ensures settings load from the environment and defaults are sane.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from cuescore.config import DEFAULT_TUNING, EngineTuning, Settings, get_settings


def test_settings_loads_with_env() -> None:
    """Settings load from environment (or defaults)."""
    from cuescore.config import settings

    assert settings.app_name == "CueScore"
    assert settings.app_version
    assert hasattr(settings, "debug")


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_tuning_defaults() -> None:
    assert DEFAULT_TUNING.preroll_secs == 5.0
    assert DEFAULT_TUNING.countdown_secs == 5.0
    assert DEFAULT_TUNING.tick_secs == 0.2
    assert DEFAULT_TUNING.max_play_streak == 3
    assert DEFAULT_TUNING.max_rest_streak == 3
    assert DEFAULT_TUNING.bell_contrast == 0.7


def test_tuning_override_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUESCORE_TUNING__COUNTDOWN_SECS", "3")
    monkeypatch.setenv("CUESCORE_DEBUG", "true")
    s = Settings()
    assert s.tuning.countdown_secs == 3.0
    assert s.tuning.tick_secs == 0.2
    assert s.debug is True


def test_unknown_log_level_falls_back_to_info() -> None:
    assert Settings(log_level="chatty").log_level == "INFO"
    assert Settings(log_level="debug").log_level == "debug"


def test_tuning_rejects_overlapping_cap_bands() -> None:
    with pytest.raises(ValidationError):
        EngineTuning(rest_cap_contrast=0.8, play_cap_contrast=0.6)


def test_tuning_is_frozen() -> None:
    with pytest.raises(ValidationError):
        DEFAULT_TUNING.countdown_secs = 1.0  # type: ignore[misc]
