"""Matchengine configuration settings."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


def _optional_path_env(var_name: str) -> Path | None:
    raw = os.getenv(var_name, "").strip()
    return Path(raw) if raw else None


class VertexConfig(BaseModel):
    """Vertex AI configuration for the vision collaborators."""

    project_id: str = Field(default_factory=lambda: os.getenv("VERTEX_PROJECT_ID", ""))
    location: str = Field(default_factory=lambda: os.getenv("VERTEX_LOCATION", "us-central1"))
    credentials_path: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "")
    )
    vision_model: str = "gemini-2.5-flash"
    comparison_model: str = "gemini-2.5-flash"
    temperature: float = 0.1


class ShoppingConfig(BaseModel):
    """Shopping search (SerpAPI Google Shopping) configuration."""

    serp_api_key: str = Field(default_factory=lambda: os.getenv("SERP_API_KEY", ""))
    serp_api_url: str = "https://serpapi.com/search.json"
    country: str = "us"
    language: str = "en"
    max_results: int = 100

    @property
    def is_configured(self) -> bool:
        return bool(self.serp_api_key)


class TimeoutConfig(BaseModel):
    """Timeout budgets per collaborator call, in seconds."""

    search_timeout_s: float = 15
    extraction_timeout_s: float = 45
    tiebreak_timeout_s: float = 45
    image_fetch_timeout_s: float = 10


class ImageURLPolicyConfig(BaseModel):
    """Policy for fetching third-party candidate thumbnails."""

    allowed_schemes: list[str] = Field(default_factory=lambda: ["http", "https"])
    block_private_ips: bool = True
    block_local_hostnames: bool = True
    max_image_bytes: int = 8 * 1024 * 1024


class MatchingConfig(BaseModel):
    """Scoring, tiebreak and verification constants.

    These are tuned globally and apply to every rubric.
    """

    score_cap: float = 65
    reference_unknown_credit: float = 0.5
    candidate_unknown_credit: float = 0.4
    tiebreak_min_score: float = 75
    tiebreak_max_gap: float = 5
    auto_high_threshold: float = 85
    confirmation_bonus: float = 10
    max_candidates: int = 10
    max_query_terms: int = 6
    extraction_concurrency: int = 4

    @field_validator("reference_unknown_credit", "candidate_unknown_credit")
    @classmethod
    def _validate_credit(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("neutral credit must be within [0, 1]")
        return value

    @field_validator("score_cap", "tiebreak_min_score", "auto_high_threshold")
    @classmethod
    def _validate_score_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 100.0:
            raise ValueError("score thresholds must be within [0, 100]")
        return value

    @field_validator("max_candidates", "max_query_terms", "extraction_concurrency")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @model_validator(mode="after")
    def _validate_credit_order(self) -> MatchingConfig:
        if self.candidate_unknown_credit > self.reference_unknown_credit:
            raise ValueError(
                "candidate_unknown_credit cannot exceed reference_unknown_credit"
            )
        return self


class APIConfig(BaseModel):
    """API/security controls from environment."""

    api_token: str = Field(default_factory=lambda: os.getenv("MATCHENGINE_API_TOKEN", ""))


class EngineConfig(BaseModel):
    """Root configuration for the matching engine."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    vertex: VertexConfig = Field(default_factory=VertexConfig)
    shopping: ShoppingConfig = Field(default_factory=ShoppingConfig)
    image_policy: ImageURLPolicyConfig = Field(default_factory=ImageURLPolicyConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    signals_dir: Path | None = Field(
        default_factory=lambda: _optional_path_env("MATCHENGINE_SIGNALS_DIR")
    )
    log_level: str = Field(default_factory=lambda: os.getenv("MATCHENGINE_LOG_LEVEL", "INFO"))
