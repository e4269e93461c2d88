"""
reptrack configuration

Tracker settings loaded from environment variables (prefix REPTRACK_) or a .env file.
"""
from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Runtime knobs for the tracking engine."""

    model_config = SettingsConfigDict(
        env_prefix="REPTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    # Visibility gate
    strict_landmark_visibility: bool = False
    visibility_threshold: float = Field(0.7, gt=0.0, lt=1.0)
    use_confidence_as_fallback: bool = True
    confidence_threshold: float = Field(0.8, gt=0.0, lt=1.0)
    visibility_grace_period_ms: float = Field(300.0, ge=0.0)

    # Smoothing / history
    smoothing_factor: int = Field(15, ge=0)
    use_smoothed_rep_counting: bool = False
    display_window_seconds: float = Field(8.0, gt=0.0)
    smoothing_buffer_seconds: float = Field(2.0, ge=0.0)
    max_history_entries: int = Field(200, ge=1)

    # Rep counting
    rep_debounce_duration: float = Field(200.0, ge=0.0, description="ms")
    use_three_phases: bool = False

    # Frame scheduling
    frame_sampling_rate: int = Field(1, ge=1)
    latency_budget_ms: float = Field(33.0, gt=0.0)
    max_skip_factor: int = Field(6, ge=1)

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> TrackerSettings:
    return TrackerSettings()
