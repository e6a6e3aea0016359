from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep logs and drill reports in backend/out by default to avoid polluting source assets.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping routing policy constants out of code."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Empty path means the bundled Dehradun seed shipped in evac_router/assets.
    graph_seed_path: str = Field(default="", alias="GRAPH_SEED_PATH")
    apply_seed_hazards: bool = Field(default=True, alias="APPLY_SEED_HAZARDS")

    hazard_weight_multiplier: float = Field(default=2.0, ge=1.0, le=100.0, alias="HAZARD_WEIGHT_MULTIPLIER")
    traffic_multiplier_low: float = Field(default=1.0, ge=1.0, le=100.0, alias="TRAFFIC_MULTIPLIER_LOW")
    traffic_multiplier_medium: float = Field(default=1.5, ge=1.0, le=100.0, alias="TRAFFIC_MULTIPLIER_MEDIUM")
    traffic_multiplier_high: float = Field(default=2.0, ge=1.0, le=100.0, alias="TRAFFIC_MULTIPLIER_HIGH")
    # "integer" mirrors the field app's round-half-up of traffic-adjusted weights.
    weight_rounding: str = Field(default="integer", alias="WEIGHT_ROUNDING")

    route_compute_timeout_s: float = Field(default=2.0, gt=0.0, le=120.0, alias="ROUTE_COMPUTE_TIMEOUT_S")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    @model_validator(mode="after")
    def _normalise_policy(self) -> "Settings":
        mode = str(self.weight_rounding or "integer").strip().lower()
        if mode not in {"integer", "none"}:
            mode = "integer"
        self.weight_rounding = mode
        if not (
            self.traffic_multiplier_low
            <= self.traffic_multiplier_medium
            <= self.traffic_multiplier_high
        ):
            raise ValueError("traffic multipliers must be non-decreasing from low to high")
        return self

    def cors_origins(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]


settings = Settings()
