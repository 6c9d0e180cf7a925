"""Tests for wiring the production ranking pipeline from configuration."""

from __future__ import annotations

import pytest

from matchengine.ai_engine.engine import VisionEngine
from matchengine.api.rank_service import RankService, build_pipeline
from matchengine.config.settings import EngineConfig, ShoppingConfig, VertexConfig
from matchengine.matching.models import ProductDescriptor
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.registry import get_registry
from matchengine.shopping.images import HttpImageFetcher
from matchengine.shopping.serpapi import SerpShoppingSearch


def _config(tmp_path):
    return EngineConfig(
        vertex=VertexConfig(project_id=""),
        shopping=ShoppingConfig(serp_api_key=""),
        signals_dir=tmp_path,
    )


class TestBuildPipeline:
    @pytest.mark.asyncio
    async def test_wires_real_adapters(self, tmp_path):
        pipeline = await build_pipeline(_config(tmp_path))
        assert isinstance(pipeline._extractor, VisionEngine)
        assert pipeline._comparator is pipeline._extractor
        assert isinstance(pipeline._search, SerpShoppingSearch)
        assert isinstance(pipeline._image_fetcher, HttpImageFetcher)
        assert not pipeline._extractor.is_available

    @pytest.mark.asyncio
    async def test_unconfigured_pipeline_ranks_nothing(self, tmp_path):
        pipeline = await build_pipeline(_config(tmp_path))
        tops = get_registry().require("Clothing", "Tops")
        observations = [ExtractionRecord.from_values(0, tops, {"primaryColor": "navy"}, 0.9)]

        product = ProductDescriptor(name="Navy Crew Sweater", category="Clothing", subcategory="Tops")

        output = await pipeline.rank(product, observations)

        assert output.candidates == []
        assert output.top_match is None
        assert output.search_query == "navy crew sweater"


class TestRankService:
    @pytest.mark.asyncio
    async def test_pipeline_is_built_once(self, tmp_path):
        service = RankService(_config(tmp_path))
        first = await service.pipeline()
        assert await service.pipeline() is first
