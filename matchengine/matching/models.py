"""Matching data models — fused profiles, candidates, scored results and verification state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from matchengine.pipeline.extraction import ExtractionRecord, Scalar


class VerificationTier(str, Enum):
    """Trust tier of a match."""

    AUTO = "auto"
    AUTO_HIGH = "auto_high"
    CREATOR_CONFIRMED = "creator_confirmed"
    BRAND_VERIFIED = "brand_verified"
    DISPUTED = "disputed"


class VerificationState(BaseModel):
    """Tier plus confidence on the 0-100 score scale.

    Each transition produces a new state; the previous one is discarded.
    """

    tier: VerificationTier
    confidence: float = Field(ge=0.0, le=100.0)
    verified_by: str | None = None
    verified_at: datetime | None = None
    dispute_reason: str | None = None

    model_config = {"frozen": True}


class FusedAttribute(BaseModel):
    """Best-estimate value for one rubric attribute and where it came from."""

    name: str
    value: Scalar | None = None
    source: str | int | None = None
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)

    model_config = {"frozen": True}

    @property
    def is_known(self) -> bool:
        return self.value is not None


class FusedProfile(BaseModel):
    """One reference item's fused attribute set.

    ``attributes`` follows the rubric's declaration order. ``completeness`` is
    the fraction of rubric attributes with a known value and
    ``overall_confidence`` the mean confidence over those (0-1 scale).
    """

    rubric_key: str
    attributes: dict[str, FusedAttribute]
    completeness: float = Field(ge=0.0, le=1.0)
    overall_confidence: float = Field(ge=0.0, le=1.0)
    observation_count: int = 0

    model_config = {"frozen": True}

    def value_of(self, name: str) -> Scalar | None:
        attribute = self.attributes.get(name)
        return attribute.value if attribute is not None else None

    def known_values(self) -> dict[str, Scalar]:
        return {
            name: attribute.value
            for name, attribute in self.attributes.items()
            if attribute.value is not None
        }


class Candidate(BaseModel):
    """A shopping listing returned by the search collaborator."""

    title: str
    price: str | None = None
    source: str | None = None
    link: str | None = None
    thumbnail: str | None = None
    position: int = 0


class AttributeComparison(BaseModel):
    """One row of a match's per-attribute breakdown."""

    attribute: str
    label: str
    reference_value: Scalar | None = None
    candidate_value: Scalar | None = None
    points: float
    max_points: float
    reason: str
    is_critical: bool = False


class MatchResult(BaseModel):
    """Outcome of scoring one candidate against a fused profile.

    ``score`` is the final score after the critical-mismatch cap; ``raw_score``
    is the uncapped sum of awarded points. ``rank`` is assigned by the
    ranking pipeline after sorting.
    """

    candidate: Candidate
    extraction: ExtractionRecord | None = None
    raw_score: float = Field(ge=0.0, le=100.0)
    score: float = Field(ge=0.0, le=100.0)
    was_capped: bool = False
    capped_reason: str | None = None
    breakdown: list[AttributeComparison] = Field(default_factory=list)
    critical_mismatches: list[str] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    tiebreaker_used: bool = False
    visual_score: float | None = None
    rank: int | None = None
    verification: VerificationState


class VisualComparison(BaseModel):
    """Visual comparison collaborator response; scores are 0-100."""

    score_a: float = Field(ge=0.0, le=100.0, default=50.0)
    score_b: float = Field(ge=0.0, le=100.0, default=50.0)
    winner: Literal["A", "B"] | None = None
    reasoning: str = ""


class ScoredCandidateInput(BaseModel):
    """A candidate whose attributes were extracted before ranking."""

    candidate: Candidate
    extraction: ExtractionRecord
    image: str | None = None


class MatchingOutput(BaseModel):
    """Result of one ranking run. Empty ``candidates`` means no match found."""

    product_name: str
    search_query: str
    category: str
    subcategory: str
    rubric_key: str
    reference_profile: FusedProfile
    candidates: list[MatchResult] = Field(default_factory=list)
    top_match: MatchResult | None = None
    tiebreaker_used: bool = False
    processing_time_ms: float = 0.0
    frames_analyzed: int = 0
    candidates_found: int = 0
    candidates_skipped: int = 0
    verification: VerificationState | None = None


class ProductDescriptor(BaseModel):
    """The reference item being matched."""

    name: str
    category: str
    subcategory: str | None = None
