"""Engine configuration and tunable constants."""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="TERRITORY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    run_buffer_meters: float = Field(default=50.0, gt=0.0, description="Corridor half-width for runs.")
    ride_buffer_meters: float = Field(default=100.0, gt=0.0, description="Corridor half-width for rides.")
    buffer_quad_segs: int = Field(
        default=8,
        ge=1,
        description="Arc steps per quarter circle used for rounded buffer joins.",
    )
    simplify_ratio: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Simplification tolerance as a fraction of the buffer half-width.",
    )
    min_area_sqm: float = Field(
        default=100.0,
        ge=0.0,
        description="Geometric results below this area are treated as empty.",
    )
    loop_closure_tolerance_meters: float = Field(
        default=100.0,
        ge=0.0,
        description="Maximum start/end gap for a route to count as a closed loop.",
    )
    decay_grace_days: float = Field(default=7.0, ge=0.0)
    decay_rate_per_day: float = Field(default=0.01, ge=0.0)
    decay_floor: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Territories whose decay factor reaches this value are deleted.",
    )
    polyline_precision: int = Field(default=5, ge=1, le=7)

    @field_validator("buffer_quad_segs", "polyline_precision", mode="before")
    @classmethod
    def _parse_int(cls, value: Any) -> int:
        if isinstance(value, str):
            return int(float(value.strip()))
        return value


settings = Settings()
