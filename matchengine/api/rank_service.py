"""Service layer that builds the production ranking pipeline.

The pipeline wires Vertex AI extraction and comparison, SerpAPI shopping
search and the thumbnail fetcher from one EngineConfig. It is built once per
application on first use; Vertex initialization happens at that point.
"""

from __future__ import annotations

import asyncio
import logging

from matchengine.ai_engine.engine import VisionEngine
from matchengine.config.settings import EngineConfig
from matchengine.matching.ranking import RankingPipeline
from matchengine.schema.registry import SchemaRegistry
from matchengine.shopping.images import HttpImageFetcher
from matchengine.shopping.serpapi import SerpShoppingSearch

logger = logging.getLogger(__name__)


async def build_pipeline(
    config: EngineConfig, registry: SchemaRegistry | None = None
) -> RankingPipeline:
    fetcher = HttpImageFetcher(
        config.image_policy, timeout_s=config.timeouts.image_fetch_timeout_s
    )
    vision = VisionEngine(config.vertex, image_fetcher=fetcher)
    if not await vision.initialize():
        logger.warning("Vertex AI unavailable; candidates will be skipped and no tiebreak run")

    return RankingPipeline(
        extractor=vision,
        search=SerpShoppingSearch(config.shopping),
        comparator=vision,
        image_fetcher=fetcher,
        registry=registry,
        config=config,
    )


class RankService:
    def __init__(self, config: EngineConfig) -> None:
        self._config = config
        self._pipeline: RankingPipeline | None = None
        self._lock = asyncio.Lock()

    async def pipeline(self) -> RankingPipeline:
        async with self._lock:
            if self._pipeline is None:
                self._pipeline = await build_pipeline(self._config)
        return self._pipeline
