"""Configuration: weights, thresholds, contract rules, collaborator settings."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class ScoringWeights(BaseModel):
    attribute_overlap: float = Field(default=0.40, ge=0.0, le=1.0)
    budget_value_fit: float = Field(default=0.30, ge=0.0, le=1.0)
    timeline_compatibility: float = Field(default=0.15, ge=0.0, le=1.0)
    location_fit: float = Field(default=0.10, ge=0.0, le=1.0)
    reputation: float = Field(default=0.05, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_total(self) -> ScoringWeights:
        if not math.isclose(self.total(), 1.0, abs_tol=1e-9):
            raise ValueError(f"scoring weights must sum to 1.0 (got {self.total()})")
        return self

    def total(self) -> float:
        return (
            self.attribute_overlap
            + self.budget_value_fit
            + self.timeline_compatibility
            + self.location_fit
            + self.reputation
        )


class AttributeWeights(BaseModel):
    skills: float = 0.60
    category: float = 0.25
    experience: float = 0.15


class Settings(BaseSettings):
    weights: ScoringWeights = ScoringWeights()
    attribute_weights: AttributeWeights = AttributeWeights()

    match_threshold: int = 80
    evaluation_blend: float = 0.10
    neutral_score: float = 50.0

    timeline_grace_days: int = 30
    timeline_decay_per_day: float = 0.5
    budget_tolerance_pct: float = 20.0

    share_tolerance: float = 0.01
    spv_min_value: float = 50_000_000
    max_board_seats: int = 7
    default_currency: str = "SAR"

    store_timeout_seconds: float = 2.0
    candidate_index_enabled: bool = True

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_fast_model: str = "claude-3-haiku-20240307"
    narrate_matches: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
