"""Ranking pipeline: Orchestrates fusion, search, candidate extraction, scoring and tiebreak.

One ``rank`` call per reference item. The pipeline holds no per-run state, so
a single instance can serve concurrent runs; each run gets its own signal
emitter. Collaborator failures degrade the run (a candidate is skipped, the
search yields nothing) instead of aborting it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from typing import Any, Sequence

from pydantic import BaseModel, Field

from matchengine.config.settings import EngineConfig, MatchingConfig
from matchengine.matching.fusion import fuse
from matchengine.matching.models import (
    Candidate,
    FusedProfile,
    MatchingOutput,
    MatchResult,
    ProductDescriptor,
    ScoredCandidateInput,
)
from matchengine.matching.ports import (
    AttributeExtractor,
    ImageFetcher,
    ShoppingSearch,
    VisualComparator,
)
from matchengine.matching.scoring import score
from matchengine.matching.tiebreak import TiebreakResolver, should_tiebreak
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.models import Rubric
from matchengine.schema.registry import SchemaRegistry, get_registry
from matchengine.signals.emitter import SignalEmitter
from matchengine.signals.types import SignalType
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({"the", "and", "for"})
NAME_TERMS = 3
_TYPE_HINTS = ("material", "fabric", "type", "style", "texture", "silhouette")


class RankOptions(BaseModel):
    """Per-run options. ``None`` means "use the engine configuration"."""

    max_candidates: int | None = Field(default=None, ge=1)
    search_terms: list[str] | None = None
    attempt_tiebreak: bool = True
    reference_image: str | None = None
    search_timeout_s: float | None = Field(default=None, gt=0)
    extraction_timeout_s: float | None = Field(default=None, gt=0)
    tiebreak_timeout_s: float | None = Field(default=None, gt=0)
    concurrency: int | None = Field(default=None, ge=1)


def _words(value: Any) -> list[str]:
    if isinstance(value, bool) or value is None:
        return []
    return [w for w in re.split(r"[\s_\-/]+", str(value).lower()) if w]


def build_search_query(
    profile: FusedProfile, rubric: Rubric, product_name: str, max_terms: int = 6
) -> str:
    """Deterministic query from the most distinctive known attributes.

    Color first, then the primary material/type attribute, then up to three
    name terms (letters only, longer than two characters, no stop words).
    Words are de-duplicated and the query is capped at ``max_terms`` words.
    """
    parts: list[str] = []

    color = next(
        (n for n in rubric.attribute_names if "color" in n.lower() and profile.value_of(n) is not None),
        None,
    )
    if color:
        parts.extend(_words(profile.value_of(color)))

    kind = next(
        (
            n
            for n in rubric.attribute_names
            if n.lower().endswith(_TYPE_HINTS) and profile.value_of(n) is not None
        ),
        None,
    )
    if kind:
        parts.extend(_words(profile.value_of(kind)))

    cleaned = re.sub(r"[^a-z\s]", "", product_name.lower())
    name_terms = [t for t in cleaned.split() if len(t) > 2 and t not in STOP_WORDS]
    parts.extend(name_terms[:NAME_TERMS])

    query: list[str] = []
    for word in parts:
        if word not in query:
            query.append(word)
    return " ".join(query[:max_terms])


def _assign_ranks(results: Sequence[MatchResult]) -> list[MatchResult]:
    return [result.model_copy(update={"rank": i}) for i, result in enumerate(results, start=1)]


async def rank_candidates(
    profile: FusedProfile,
    inputs: Sequence[ScoredCandidateInput],
    rubric: Rubric,
    reference_image: str | None = None,
    comparator: VisualComparator | None = None,
    config: MatchingConfig | None = None,
    tiebreak_timeout_s: float = 45,
    emitter: SignalEmitter | None = None,
) -> list[MatchResult]:
    """Score pre-extracted candidates, sort them, tiebreak, and assign ranks.

    Sorting is stable, so exact ties keep input order.
    """
    config = config or MatchingConfig()
    scored = [
        (score(profile, item.extraction, rubric, item.candidate, config), item.image)
        for item in inputs
    ]
    scored.sort(key=lambda pair: pair[0].score, reverse=True)
    results = [result for result, _ in scored]

    if emitter is not None:
        await emitter.emit(
            SignalType.CANDIDATES_SCORED,
            {"count": len(results), "scores": [r.score for r in results]},
        )

    can_compare = comparator is not None and reference_image and len(scored) >= 2
    if can_compare and should_tiebreak(results, config):
        (first, first_image), (second, second_image) = scored[0], scored[1]
        if first_image and second_image:
            resolver = TiebreakResolver(comparator, tiebreak_timeout_s)
            outcome = await resolver.resolve(
                reference_image,
                first,
                first_image,
                second,
                second_image,
                rank_id=emitter.rank_id if emitter else None,
            )
            if outcome.used:
                results[0], results[1] = outcome.winner, outcome.loser
            if emitter is not None:
                await emitter.emit(
                    SignalType.TIEBREAK_RESOLVED,
                    {
                        "used": outcome.used,
                        "swapped": outcome.swapped,
                        "visual_scores": list(outcome.visual_scores or ()),
                    },
                )
        else:
            logger.info("Tiebreak skipped: top candidates have no image")

    return _assign_ranks(results)


class RankingPipeline:
    """Finds and ranks shopping candidates for one reference item.

    Collaborators are injected; ``comparator`` and ``image_fetcher`` are
    optional. Without a comparator no tiebreak is attempted; without an image
    fetcher candidate thumbnails are handed to the extractor as URLs.
    """

    def __init__(
        self,
        extractor: AttributeExtractor,
        search: ShoppingSearch,
        comparator: VisualComparator | None = None,
        image_fetcher: ImageFetcher | None = None,
        registry: SchemaRegistry | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._extractor = extractor
        self._search = search
        self._comparator = comparator
        self._image_fetcher = image_fetcher
        self._registry = registry or get_registry()
        self._config = config or EngineConfig()

    def _new_emitter(self) -> SignalEmitter:
        rank_id = uuid.uuid4().hex[:12]
        ledger = None
        if self._config.signals_dir is not None:
            ledger = self._config.signals_dir / f"{rank_id}.jsonl"
        return SignalEmitter(rank_id, ledger_path=ledger)

    async def rank(
        self,
        product: ProductDescriptor,
        observations: Sequence[ExtractionRecord],
        options: RankOptions | None = None,
        emitter: SignalEmitter | None = None,
    ) -> MatchingOutput:
        """Rank shopping candidates for ``product``.

        Raises InsufficientObservations when ``observations`` is empty. Every
        other failure is recovered; no usable candidate yields an output
        with ``candidates == []`` and ``top_match is None``.
        """
        options = options or RankOptions()
        emitter = emitter or self._new_emitter()
        matching = self._config.matching
        timeouts = self._config.timeouts
        started = time.monotonic()

        rubric = self._registry.resolve(product.category, product.subcategory, product.name)
        await emitter.emit(
            SignalType.RANK_STARTED,
            {"product_name": product.name, "rubric_key": rubric.key},
        )

        profile = fuse(observations, rubric)
        await emitter.emit(
            SignalType.PROFILE_FUSED,
            {
                "completeness": profile.completeness,
                "overall_confidence": profile.overall_confidence,
                "observations": len(observations),
            },
        )

        if options.search_terms:
            query = " ".join(t.strip() for t in options.search_terms if t.strip())
        else:
            query = build_search_query(profile, rubric, product.name, matching.max_query_terms)

        limit = options.max_candidates or matching.max_candidates
        candidates = await self._search_candidates(
            query, limit, options.search_timeout_s or timeouts.search_timeout_s, emitter
        )
        await emitter.emit(SignalType.SEARCH_COMPLETE, {"query": query, "found": len(candidates)})

        extracted = await self._extract_candidates(
            candidates,
            rubric,
            options.extraction_timeout_s or timeouts.extraction_timeout_s,
            options.concurrency or matching.extraction_concurrency,
            emitter,
        )

        ranked = await rank_candidates(
            profile,
            extracted,
            rubric,
            reference_image=options.reference_image if options.attempt_tiebreak else None,
            comparator=self._comparator if options.attempt_tiebreak else None,
            config=matching,
            tiebreak_timeout_s=options.tiebreak_timeout_s or timeouts.tiebreak_timeout_s,
            emitter=emitter,
        )

        top = ranked[0] if ranked else None
        duration_ms = (time.monotonic() - started) * 1000
        await emitter.emit_rank_complete(len(ranked), top.score if top else None, duration_ms)

        if top is None:
            logger.info("No scorable candidates for '%s' (query '%s')", product.name, query)

        return MatchingOutput(
            product_name=product.name,
            search_query=query,
            category=rubric.category,
            subcategory=rubric.subcategory,
            rubric_key=rubric.key,
            reference_profile=profile,
            candidates=ranked,
            top_match=top,
            tiebreaker_used=bool(top and top.tiebreaker_used),
            processing_time_ms=round(duration_ms, 2),
            frames_analyzed=len(observations),
            candidates_found=len(candidates),
            candidates_skipped=len(candidates) - len(extracted),
            verification=top.verification if top else None,
        )

    async def _search_candidates(
        self, query: str, limit: int, timeout_s: float, emitter: SignalEmitter
    ) -> list[Candidate]:
        if not query:
            logger.warning("Empty search query; skipping shopping search")
            return []
        try:
            found = await asyncio.wait_for(self._search.search(query, limit), timeout=timeout_s)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.SEARCH_FAILED,
                message=str(exc) or type(exc).__name__,
                suppressed=True,
                rank_id=emitter.rank_id,
                step="search",
                details={"query": query},
            )
            return []
        return list(found)[:limit]

    async def _extract_candidates(
        self,
        candidates: Sequence[Candidate],
        rubric: Rubric,
        timeout_s: float,
        concurrency: int,
        emitter: SignalEmitter,
    ) -> list[ScoredCandidateInput]:
        semaphore = asyncio.Semaphore(concurrency)

        async def process(index: int, candidate: Candidate) -> ScoredCandidateInput | None:
            async with semaphore:
                return await self._extract_one(index, candidate, rubric, timeout_s, emitter)

        outcomes = await asyncio.gather(
            *(process(i, c) for i, c in enumerate(candidates))
        )
        return [item for item in outcomes if item is not None]

    async def _extract_one(
        self,
        index: int,
        candidate: Candidate,
        rubric: Rubric,
        timeout_s: float,
        emitter: SignalEmitter,
    ) -> ScoredCandidateInput | None:
        if not candidate.thumbnail:
            await emitter.emit_candidate_skipped(index, candidate.title, "no image")
            return None

        image: str | None = candidate.thumbnail
        if self._image_fetcher is not None:
            try:
                image = await asyncio.wait_for(
                    self._image_fetcher.fetch(candidate.thumbnail),
                    timeout=self._config.timeouts.image_fetch_timeout_s,
                )
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.IMAGE_FETCH_FAILED,
                    message=str(exc) or type(exc).__name__,
                    suppressed=True,
                    rank_id=emitter.rank_id,
                    step="image_fetch",
                    details={"candidate_index": index},
                )
                image = None
            if image is None:
                await emitter.emit_candidate_skipped(index, candidate.title, "image unavailable")
                return None

        context = {"role": "candidate", "title": candidate.title, "candidate_index": index}
        try:
            record = await asyncio.wait_for(
                self._extractor.extract(image, rubric, context), timeout=timeout_s
            )
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.CANDIDATE_EXTRACTION_FAILED,
                message=str(exc) or type(exc).__name__,
                suppressed=True,
                rank_id=emitter.rank_id,
                step="candidate_extraction",
                details={"candidate_index": index, "title": candidate.title},
            )
            record = None

        if record is None:
            await emitter.emit_candidate_skipped(index, candidate.title, "extraction failed")
            return None
        if record.known_count == 0:
            await emitter.emit_candidate_skipped(index, candidate.title, "no attributes extracted")
            return None

        await emitter.emit(
            SignalType.CANDIDATE_EXTRACTED,
            {"candidate_index": index, "attributes": record.known_count},
        )
        return ScoredCandidateInput(candidate=candidate, extraction=record, image=image)
