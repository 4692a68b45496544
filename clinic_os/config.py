"""Configuration management for ClinicOS."""

from datetime import time
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Slot generation
    slot_granularity_minutes: int = Field(
        default=15,
        gt=0,
        description="Length of one candidate slot in minutes",
    )
    default_working_hours_start: time = Field(
        default=time(8, 0),
        description="Working day start used when no constraints are supplied",
    )
    default_working_hours_end: time = Field(
        default=time(17, 0),
        description="Working day end used when no constraints are supplied",
    )

    # Scoring
    prime_hours: list[int] = Field(
        default=[9, 10, 14, 15],
        description="High-demand hours used when no historical peak hours exist",
    )
    early_day_hours: int = Field(
        default=2,
        description="Hours after opening that count as early-day slots",
    )
    high_risk_threshold: float = Field(
        default=0.5,
        description="No-show risk above which anti-no-show placement applies",
    )

    # Assignment
    max_alternative_slots: int = Field(default=3)
    default_max_suggestions: int = Field(default=5)

    # Forecasting (configurable band, not a statistical model)
    forecast_optimistic_factor: float = Field(default=1.1)
    forecast_pessimistic_factor: float = Field(default=0.85)
    default_revenue_per_appointment: float = Field(
        default=150.0,
        description="Flat revenue used when no pricing table is injected",
    )

    # Capacity planning
    default_target_utilization: float = Field(default=0.85)
    overbooking_percentage_cap: float = Field(default=25.0)
    high_risk_bucket_multiplier: float = Field(
        default=1.5,
        description="Bucket no-show rate multiple of the average that flags a slot",
    )

    # Batch runs
    batch_max_workers: int = Field(default=4, ge=1)

    # Observability
    observability_enabled: bool = Field(
        default=False,
        description="Write run telemetry as JSON Lines",
    )
    observability_log_dir: Path = Field(default=Path("./data/logs"))

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins",
    )

    # Debug
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (exposes error details in responses)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
