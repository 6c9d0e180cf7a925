"""Tests for the SerpAPI Google Shopping adapter."""

from __future__ import annotations

import httpx
import pytest

from matchengine.config.settings import ShoppingConfig
from matchengine.matching.errors import CollaboratorUnavailable
from matchengine.shopping.serpapi import SerpShoppingSearch, parse_shopping_results

RESPONSE = {
    "shopping_results": [
        {
            "title": "Ribbed Crew Sweater",
            "source": "Shop A",
            "link": "https://a.example/1",
            "extracted_price": 49.5,
            "thumbnail": "https://img.example/1.jpg",
        },
        {"title": "Cable Knit Pullover", "price": "$60.00", "product_link": "https://b.example/2"},
        {"source": "No title"},
        {"title": "Olive Jumper", "extracted_price": 30},
    ]
}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParseShoppingResults:
    def test_maps_fields(self):
        candidates = parse_shopping_results(RESPONSE, 10)
        assert [c.title for c in candidates] == [
            "Ribbed Crew Sweater",
            "Cable Knit Pullover",
            "Olive Jumper",
        ]
        first = candidates[0]
        assert first.price == "$49.50"
        assert first.source == "Shop A"
        assert first.thumbnail == "https://img.example/1.jpg"
        assert candidates[1].price == "$60.00"
        assert candidates[1].link == "https://b.example/2"
        assert candidates[2].price == "$30"
        assert [c.position for c in candidates] == [0, 1, 2]

    def test_limit(self):
        assert len(parse_shopping_results(RESPONSE, 1)) == 1

    def test_missing_results(self):
        assert parse_shopping_results({}, 10) == []


class TestSerpShoppingSearch:
    @pytest.mark.asyncio
    async def test_without_key_returns_nothing(self):
        search = SerpShoppingSearch(ShoppingConfig(serp_api_key=""))
        assert await search.search("green sweater", 10) == []

    @pytest.mark.asyncio
    async def test_sends_google_shopping_query(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(200, json=RESPONSE)

        config = ShoppingConfig(serp_api_key="k")
        async with _client(handler) as client:
            candidates = await SerpShoppingSearch(config, client).search("olive sweater", 2)

        assert seen["engine"] == "google_shopping"
        assert seen["q"] == "olive sweater"
        assert seen["api_key"] == "k"
        assert seen["num"] == "2"
        assert seen["gl"] == "us"
        assert seen["hl"] == "en"
        assert len(candidates) == 2

    @pytest.mark.asyncio
    async def test_http_error_raises_unavailable(self):
        def handler(request):
            return httpx.Response(503, text="busy")

        async with _client(handler) as client:
            search = SerpShoppingSearch(ShoppingConfig(serp_api_key="k"), client)
            with pytest.raises(CollaboratorUnavailable):
                await search.search("q", 5)

    @pytest.mark.asyncio
    async def test_api_error_payload_raises_unavailable(self):
        def handler(request):
            return httpx.Response(200, json={"error": "Invalid API key."})

        async with _client(handler) as client:
            search = SerpShoppingSearch(ShoppingConfig(serp_api_key="k"), client)
            with pytest.raises(CollaboratorUnavailable, match="Invalid API key"):
                await search.search("q", 5)
