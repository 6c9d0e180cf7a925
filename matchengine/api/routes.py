"""REST API routes for matchengine.

Provides endpoints for:
- Browsing the rubric catalog
- Inferring a subcategory from a product name
- Ranking pre-extracted candidates against reference observations
- Searching, extracting and ranking shopping candidates end to end
- Confirming and disputing matches
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from matchengine.api.auth import require_api_auth
from matchengine.config.settings import EngineConfig
from matchengine.matching.errors import InsufficientObservations
from matchengine.matching.fusion import fuse
from matchengine.matching.models import (
    Candidate,
    MatchingOutput,
    MatchResult,
    ProductDescriptor,
    ScoredCandidateInput,
    VerificationTier,
)
from matchengine.matching.ranking import RankingPipeline, RankOptions, rank_candidates
from matchengine.matching.verification import confirm_match, dispute_match
from matchengine.pipeline.extraction import parse_extraction
from matchengine.schema.models import Rubric
from matchengine.schema.registry import SchemaRegistry, get_registry

router = APIRouter()


def _config(request: Request) -> EngineConfig:
    return getattr(request.app.state, "config", None) or EngineConfig()


async def get_pipeline(request: Request) -> RankingPipeline:
    return await request.app.state.rank_service.pipeline()


# --- Request/Response Models ---


class RubricSummary(BaseModel):
    key: str
    category: str
    subcategory: str
    attributes: list[str]
    critical_attributes: list[str]


class SubcategoryRequest(BaseModel):
    product_name: str
    category: str


class SubcategoryResponse(BaseModel):
    category: str
    subcategory: str
    rubric_key: str


class Observation(BaseModel):
    """Raw attribute map for one frame, as returned by the extraction service."""

    source: str | int
    attributes: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


class CandidateObservation(BaseModel):
    candidate: Candidate
    attributes: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


class ScoreRequest(BaseModel):
    product: ProductDescriptor
    observations: list[Observation]
    candidates: list[CandidateObservation] = Field(default_factory=list)


class RankRequest(BaseModel):
    product: ProductDescriptor
    observations: list[Observation]
    options: RankOptions | None = None


class ConfirmRequest(BaseModel):
    match: MatchResult
    tier: VerificationTier
    verified_by: str


class DisputeRequest(BaseModel):
    match: MatchResult
    reason: str
    disputed_by: str


# --- Endpoints ---


@router.get("/rubrics", response_model=list[RubricSummary])
async def list_rubrics(
    _: str = Depends(require_api_auth),
    registry: SchemaRegistry = Depends(get_registry),
) -> list[RubricSummary]:
    return [
        RubricSummary(
            key=rubric.key,
            category=rubric.category,
            subcategory=rubric.subcategory,
            attributes=rubric.attribute_names,
            critical_attributes=rubric.critical_attributes,
        )
        for rubric in registry.rubrics()
    ]


@router.get("/rubrics/{category}/{subcategory}", response_model=Rubric)
async def get_rubric(
    category: str,
    subcategory: str,
    _: str = Depends(require_api_auth),
    registry: SchemaRegistry = Depends(get_registry),
) -> Rubric:
    rubric = registry.get(category, subcategory)
    if rubric is None:
        raise HTTPException(status_code=404, detail=f"No rubric for {category}:{subcategory}")
    return rubric


@router.post("/subcategory", response_model=SubcategoryResponse)
async def infer_subcategory(
    request: SubcategoryRequest,
    _: str = Depends(require_api_auth),
    registry: SchemaRegistry = Depends(get_registry),
) -> SubcategoryResponse:
    rubric = registry.resolve(request.category, None, request.product_name)
    return SubcategoryResponse(
        category=rubric.category, subcategory=rubric.subcategory, rubric_key=rubric.key
    )


@router.post("/matches/score", response_model=MatchingOutput)
async def score_matches(
    body: ScoreRequest,
    request: Request,
    _: str = Depends(require_api_auth),
    registry: SchemaRegistry = Depends(get_registry),
) -> MatchingOutput:
    """Rank already-extracted candidates against reference observations.

    No collaborators are called, so no tiebreak is attempted.
    """
    started = time.monotonic()
    config = _config(request)
    product = body.product
    rubric = registry.resolve(product.category, product.subcategory, product.name)

    records = [
        parse_extraction({**obs.attributes, "confidence": obs.confidence}, obs.source, rubric)
        for obs in body.observations
    ]
    try:
        profile = fuse(records, rubric)
    except InsufficientObservations as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    inputs = [
        ScoredCandidateInput(
            candidate=item.candidate,
            extraction=parse_extraction(
                {**item.attributes, "confidence": item.confidence}, index, rubric
            ),
        )
        for index, item in enumerate(body.candidates)
    ]
    ranked = await rank_candidates(profile, inputs, rubric, config=config.matching)
    top = ranked[0] if ranked else None

    return MatchingOutput(
        product_name=product.name,
        search_query="",
        category=rubric.category,
        subcategory=rubric.subcategory,
        rubric_key=rubric.key,
        reference_profile=profile,
        candidates=ranked,
        top_match=top,
        processing_time_ms=round((time.monotonic() - started) * 1000, 2),
        frames_analyzed=len(records),
        candidates_found=len(inputs),
        verification=top.verification if top else None,
    )


@router.post("/matches/rank", response_model=MatchingOutput)
async def rank_matches(
    body: RankRequest,
    _: str = Depends(require_api_auth),
    registry: SchemaRegistry = Depends(get_registry),
    pipeline: RankingPipeline = Depends(get_pipeline),
) -> MatchingOutput:
    """Search the shopping index for the product and rank what comes back.

    Collaborator failures are recovered by the pipeline; the response then
    simply carries fewer (or no) candidates.
    """
    product = body.product
    rubric = registry.resolve(product.category, product.subcategory, product.name)
    records = [
        parse_extraction({**obs.attributes, "confidence": obs.confidence}, obs.source, rubric)
        for obs in body.observations
    ]
    try:
        return await pipeline.rank(product, records, body.options)
    except InsufficientObservations as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/matches/confirm", response_model=MatchResult)
async def confirm(
    body: ConfirmRequest, request: Request, _: str = Depends(require_api_auth)
) -> MatchResult:
    try:
        return confirm_match(
            body.match,
            body.tier,
            body.verified_by,
            bonus=_config(request).matching.confirmation_bonus,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/matches/dispute", response_model=MatchResult)
async def dispute(body: DisputeRequest, _: str = Depends(require_api_auth)) -> MatchResult:
    try:
        return dispute_match(body.match, body.reason, body.disputed_by)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
