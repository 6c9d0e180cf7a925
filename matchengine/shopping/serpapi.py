"""Shopping search over SerpAPI's Google Shopping engine."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from matchengine.config.settings import ShoppingConfig
from matchengine.matching.errors import CollaboratorUnavailable
from matchengine.matching.models import Candidate
from matchengine.matching.ports import ShoppingSearch

logger = logging.getLogger(__name__)


def _price(item: dict[str, Any]) -> str | None:
    extracted = item.get("extracted_price")
    if isinstance(extracted, (int, float)) and not isinstance(extracted, bool):
        return f"${extracted:.2f}" if extracted != int(extracted) else f"${int(extracted)}"
    price = item.get("price")
    return str(price) if price else None


def parse_shopping_results(data: dict[str, Any], limit: int) -> list[Candidate]:
    """Map ``shopping_results`` entries to candidates; entries without a title are dropped."""
    candidates: list[Candidate] = []
    for item in data.get("shopping_results") or []:
        if not isinstance(item, dict) or not item.get("title"):
            continue
        candidates.append(
            Candidate(
                title=str(item["title"]),
                price=_price(item),
                source=item.get("source"),
                link=item.get("link") or item.get("product_link"),
                thumbnail=item.get("thumbnail"),
                position=len(candidates),
            )
        )
        if len(candidates) >= limit:
            break
    return candidates


class SerpShoppingSearch(ShoppingSearch):
    """Google Shopping search. Without an API key every search returns nothing."""

    def __init__(self, config: ShoppingConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    async def search(self, query: str, limit: int) -> list[Candidate]:
        if not self._config.is_configured:
            logger.warning("SERP_API_KEY not set; shopping search disabled")
            return []

        params = {
            "engine": "google_shopping",
            "q": query,
            "api_key": self._config.serp_api_key,
            "num": min(limit, self._config.max_results),
            "gl": self._config.country,
            "hl": self._config.language,
        }
        try:
            if self._client is not None:
                response = await self._client.get(self._config.serp_api_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.get(self._config.serp_api_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CollaboratorUnavailable("shopping_search", str(exc)) from exc

        if not isinstance(data, dict):
            raise CollaboratorUnavailable("shopping_search", "unexpected response shape")
        if data.get("error"):
            raise CollaboratorUnavailable("shopping_search", str(data["error"]))

        candidates = parse_shopping_results(data, limit)
        logger.info("Shopping search '%s' returned %d candidates", query, len(candidates))
        return candidates
