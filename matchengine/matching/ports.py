"""Collaborator interfaces consumed by the ranking pipeline.

Concrete adapters live in ``matchengine.ai_engine`` and ``matchengine.shopping``;
tests pass in fakes. Adapters signal failure by returning None (extraction,
image fetch) or raising ``CollaboratorUnavailable``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from matchengine.matching.models import Candidate, VisualComparison
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.models import Rubric


class AttributeExtractor(ABC):
    @abstractmethod
    async def extract(
        self, image: str, rubric: Rubric, context: dict[str, Any]
    ) -> ExtractionRecord | None:
        """Extract rubric attributes from one image (URL or data URL)."""


class ShoppingSearch(ABC):
    @abstractmethod
    async def search(self, query: str, limit: int) -> list[Candidate]:
        """Return at most ``limit`` listings; possibly none."""


class VisualComparator(ABC):
    @abstractmethod
    async def compare(self, reference_image: str, image_a: str, image_b: str) -> VisualComparison:
        """Score two candidate images against the reference on a 0-100 scale."""


class ImageFetcher(ABC):
    @abstractmethod
    async def fetch(self, url: str) -> str | None:
        """Download an image and return it as a data URL, or None."""
