"""Tests for the Vertex AI vision engine adapter."""

from __future__ import annotations

import json

import pytest

from matchengine.ai_engine.engine import (
    VisionEngine,
    build_extraction_prompt,
    extraction_schema,
    parse_comparison,
)
from matchengine.config.settings import VertexConfig
from matchengine.matching.errors import CollaboratorUnavailable
from matchengine.schema.registry import get_registry

IMAGE = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def tops():
    return get_registry().require("Clothing", "Tops")


class _Response:
    def __init__(self, payload):
        self.text = payload if isinstance(payload, str) else json.dumps(payload)


class FakeModel:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append(contents)
        if self.error:
            raise self.error
        return _Response(self.payload)


def _engine(model):
    engine = VisionEngine(VertexConfig(project_id="test-project"))
    engine._vision_model = model
    engine._comparison_model = model
    engine._initialized = True
    return engine


class TestPromptAndSchema:
    def test_prompt_lists_every_attribute(self, tops):
        prompt = build_extraction_prompt(tops, {"title": "Olive Sweater"})
        for name in tops.attribute_names:
            assert name in prompt
        assert "neckline: Neckline (critical)" in prompt
        assert "Listing title: Olive Sweater" in prompt

    def test_schema(self, tops):
        schema = extraction_schema(tops)
        assert set(schema["properties"]) == set(tops.attribute_names) | {"confidence"}
        assert schema["required"] == ["confidence"]


class TestParseComparison:
    def test_full_payload(self):
        result = parse_comparison(
            {"candidateA": {"visualScore": 72}, "candidateB": {"visualScore": 91}, "winner": "B"}
        )
        assert (result.score_a, result.score_b, result.winner) == (72, 91, "B")

    def test_defaults_and_clamping(self):
        result = parse_comparison({"candidateA": {"visualScore": 140}, "winner": "C"})
        assert result.score_a == 100
        assert result.score_b == 50
        assert result.winner is None


class TestUnavailableEngine:
    @pytest.mark.asyncio
    async def test_initialize_without_project(self):
        assert not await VisionEngine(VertexConfig(project_id="")).initialize()

    @pytest.mark.asyncio
    async def test_extract_returns_none(self, tops):
        engine = VisionEngine(VertexConfig(project_id=""))
        assert not engine.is_available
        assert await engine.extract(IMAGE, tops, {}) is None

    @pytest.mark.asyncio
    async def test_compare_raises(self):
        engine = VisionEngine(VertexConfig(project_id=""))
        with pytest.raises(CollaboratorUnavailable):
            await engine.compare(IMAGE, IMAGE, IMAGE)


class TestWithModel:
    @pytest.mark.asyncio
    async def test_extract_parses_response(self, tops):
        model = FakeModel({"primaryColor": "sage", "neckline": "unknown", "confidence": 0.8})
        record = await _engine(model).extract(IMAGE, tops, {"candidate_index": 4})
        assert record.source == 4
        assert record.value_of("primaryColor") == "sage"
        assert record.value_of("neckline") is None
        assert record.confidence == 0.8
        assert len(model.calls) == 1

    @pytest.mark.asyncio
    async def test_extract_failure_returns_none(self, tops):
        model = FakeModel(error=RuntimeError("quota exceeded"))
        assert await _engine(model).extract(IMAGE, tops, {}) is None

    @pytest.mark.asyncio
    async def test_extract_non_object_returns_none(self, tops):
        assert await _engine(FakeModel("[1, 2]")).extract(IMAGE, tops, {}) is None

    @pytest.mark.asyncio
    async def test_compare(self):
        model = FakeModel(
            {"candidateA": {"visualScore": 60}, "candidateB": {"visualScore": 80}, "winner": "B"}
        )
        result = await _engine(model).compare(IMAGE, IMAGE, IMAGE)
        assert result.winner == "B"
        assert result.score_b == 80

    @pytest.mark.asyncio
    async def test_compare_failure_raises_unavailable(self):
        with pytest.raises(CollaboratorUnavailable):
            await _engine(FakeModel(error=RuntimeError("boom"))).compare(IMAGE, IMAGE, IMAGE)
