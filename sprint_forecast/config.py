from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _expand(path: str) -> Path:
    return Path(os.path.expanduser(path)).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    return tomllib.loads(path.read_text(encoding="utf-8"))


class WindowConfig(BaseModel):
    """Which past sprints feed the forecast."""

    sprints_to_analyze: int = Field(default=6, ge=1, description="Number of completed sprints to analyze.")
    review_sprint: int | None = Field(
        default=None,
        ge=1,
        description="Sprint currently under review; the forecast targets the one after it.",
    )


class SimulationConfig(BaseModel):
    """Options of the bottom-up contributor resampling model."""

    model_config = ConfigDict(frozen=True)

    iterations: int = Field(default=10_000, ge=1)
    excluded_contributors: tuple[str, ...] = Field(
        default=(),
        description="Contributors absent next sprint (holidays, leave).",
    )
    sampling_mode: Literal["historical", "normal"] = Field(
        default="historical",
        description="historical | normal",
    )
    chunk_size: int = Field(
        default=2_000,
        ge=1,
        description="Trials drawn per block; bounds peak memory of the simulation.",
    )


class HorizonConfig(BaseModel):
    """Options of the top-down analytical "how many" model."""

    model_config = ConfigDict(frozen=True)

    use_weighting: bool = Field(default=False, description="Give the most recent sprints half the weight.")
    exclude_outliers: bool = Field(default=False, description="Drop unusually low sprints first.")
    horizons: tuple[int, ...] = Field(default=(1, 2, 3, 4, 6), description="Horizons in sprints.")
    percentiles: tuple[int, ...] = Field(default=(50, 85, 95))
    z_scores: dict[int, float] = Field(default_factory=lambda: {50: 0.0, 85: 1.036, 95: 1.645})
    safety_factors: dict[int, float] = Field(default_factory=lambda: {50: 1.00, 85: 0.95, 95: 0.90})
    trend_decay: float = Field(default=0.85, gt=0.0, lt=1.0)
    strong_trend_boost: float = Field(default=0.75, ge=0.0)
    moderate_trend_boost: float = Field(default=0.5, ge=0.0)
    recent_sprints: int = Field(default=2, ge=1)
    recent_weight_ratio: float = Field(default=0.5, gt=0.0, lt=1.0)
    min_sprints: int = Field(default=2, ge=2)
    sprint_length_weeks: int = Field(default=2, ge=1)

    @field_validator("horizons")
    @classmethod
    def _positive_horizons(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v or any(h < 1 for h in v):
            raise ValueError("horizons must be a non-empty list of positive sprint counts")
        return tuple(sorted(set(v)))

    @model_validator(mode="after")
    def _percentiles_are_calibrated(self) -> "HorizonConfig":
        missing = [p for p in self.percentiles if p not in self.z_scores or p not in self.safety_factors]
        if missing:
            raise ValueError(f"No z-score or safety factor for percentiles {missing}")
        return self


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    log_dir: str | None = Field(default=None, description="Also write '<log_dir>/run.log'.")

    def resolved_log_dir(self) -> str | None:
        return str(_expand(self.log_dir)) if self.log_dir else None


class ForecastConfig(BaseModel):
    seed: int | None = Field(default=None, description="Seed for reproducible simulations.")
    window: WindowConfig = Field(default_factory=WindowConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    horizon: HorizonConfig = Field(default_factory=HorizonConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> "ForecastConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)


EXAMPLE_CONFIG_TOML = """\
# sprint-forecast configuration

# seed = 42

[window]
sprints_to_analyze = 6
# review_sprint = 18

[simulation]
iterations = 10000
excluded_contributors = []
sampling_mode = "historical"  # historical | normal
chunk_size = 2000

[horizon]
use_weighting = false
exclude_outliers = false
horizons = [1, 2, 3, 4, 6]
trend_decay = 0.85
strong_trend_boost = 0.75
moderate_trend_boost = 0.5

[logging]
level = "INFO"
# log_dir = "~/.sprint_forecast/logs"
"""
