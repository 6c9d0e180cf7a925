"""Vision engine: Attribute extraction and visual comparison via Vertex AI Gemini.

The engine is optional. When Vertex is not configured or fails to initialize,
extraction returns None (the candidate is skipped) and comparison raises
CollaboratorUnavailable (the tiebreak keeps the score order).
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any

from matchengine.config.settings import VertexConfig
from matchengine.matching.errors import CollaboratorUnavailable
from matchengine.matching.models import VisualComparison
from matchengine.matching.ports import AttributeExtractor, ImageFetcher, VisualComparator
from matchengine.pipeline.extraction import ExtractionRecord, parse_extraction
from matchengine.schema.models import Rubric, attribute_label
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

COMPARISON_SCHEMA = {
    "type": "object",
    "properties": {
        "candidateA": {
            "type": "object",
            "properties": {"visualScore": {"type": "number"}},
        },
        "candidateB": {
            "type": "object",
            "properties": {"visualScore": {"type": "number"}},
        },
        "winner": {"type": "string", "enum": ["A", "B"]},
        "reasoning": {"type": "string"},
    },
    "required": ["candidateA", "candidateB", "winner"],
}


def extraction_schema(rubric: Rubric) -> dict[str, Any]:
    """JSON response schema: one nullable string per rubric attribute plus confidence."""
    properties: dict[str, Any] = {
        name: {"type": "string", "nullable": True} for name in rubric.attribute_names
    }
    properties["confidence"] = {"type": "number"}
    return {"type": "object", "properties": properties, "required": ["confidence"]}


def build_extraction_prompt(rubric: Rubric, context: dict[str, Any]) -> str:
    lines = [
        f"Identify the {rubric.subcategory.lower()} ({rubric.category.lower()}) in the image "
        "and describe it using exactly these attributes:",
    ]
    for weight in rubric.attributes:
        marker = " (critical)" if weight.is_critical else ""
        lines.append(f"  - {weight.name}: {attribute_label(weight.name)}{marker}")
    lines.append(
        'Use "unknown" for anything not visible. Set confidence between 0 and 1 '
        "for how clearly the item is shown."
    )
    title = context.get("title")
    if title:
        lines.append(f"Listing title: {title}")
    return "\n".join(lines)


def _clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 50.0
    return min(max(score, 0.0), 100.0)


def parse_comparison(data: dict[str, Any]) -> VisualComparison:
    """Flatten the comparison JSON; missing scores default to 50."""
    score_a = _clamp_score((data.get("candidateA") or {}).get("visualScore", 50))
    score_b = _clamp_score((data.get("candidateB") or {}).get("visualScore", 50))
    winner = data.get("winner")
    return VisualComparison(
        score_a=score_a,
        score_b=score_b,
        winner=winner if winner in ("A", "B") else None,
        reasoning=str(data.get("reasoning") or ""),
    )


class VisionEngine(AttributeExtractor, VisualComparator):
    """Vertex AI Gemini client for the vision collaborators.

    Stateless per call; the ranking pipeline owns all run state.
    """

    def __init__(self, config: VertexConfig, image_fetcher: ImageFetcher | None = None) -> None:
        self._config = config
        self._image_fetcher = image_fetcher
        self._vision_model: Any = None
        self._comparison_model: Any = None
        self._initialized = False

    async def initialize(self) -> bool:
        """Initialize the Vertex AI client. Returns False when unavailable."""
        if not self._config.project_id:
            return False

        try:
            import vertexai
            from vertexai.generative_models import GenerativeModel

            vertexai.init(
                project=self._config.project_id,
                location=self._config.location,
            )
            self._vision_model = GenerativeModel(self._config.vision_model)
            self._comparison_model = GenerativeModel(self._config.comparison_model)
            self._initialized = True
            return True
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.AI_INITIALIZATION_FAILED,
                message=str(exc),
                suppressed=True,
            )
            self._initialized = False
            return False

    @property
    def is_available(self) -> bool:
        return self._initialized and self._vision_model is not None

    async def _image_part(self, image: str) -> Any:
        from vertexai.generative_models import Part

        if not image.startswith("data:") and self._image_fetcher is not None:
            fetched = await self._image_fetcher.fetch(image)
            if fetched is None:
                raise CollaboratorUnavailable("image", f"could not fetch {image[:80]}")
            image = fetched

        match = _DATA_URL.match(image)
        if match:
            try:
                data = base64.b64decode(match.group("data"), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise CollaboratorUnavailable("image", f"invalid data URL: {exc}") from exc
            return Part.from_data(data=data, mime_type=match.group("mime"))
        return Part.from_uri(image, mime_type="image/jpeg")

    async def extract(
        self, image: str, rubric: Rubric, context: dict[str, Any]
    ) -> ExtractionRecord | None:
        """Extract rubric attributes from one image; None on any failure."""
        if not self.is_available:
            return None

        try:
            from vertexai.generative_models import GenerationConfig

            part = await self._image_part(image)
            response = await self._vision_model.generate_content_async(
                [part, build_extraction_prompt(rubric, context)],
                generation_config=GenerationConfig(
                    temperature=self._config.temperature,
                    response_mime_type="application/json",
                    response_schema=extraction_schema(rubric),
                ),
            )
            data = json.loads(response.text)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            source = context.get("candidate_index", context.get("frame_index", "image"))
            return parse_extraction(data, source, rubric)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.AI_EXTRACTION_FAILED,
                message=str(exc),
                suppressed=True,
                details={"rubric": rubric.key},
            )
            return None

    async def compare(self, reference_image: str, image_a: str, image_b: str) -> VisualComparison:
        """Score two candidate images against the reference (0-100 each)."""
        if not self.is_available:
            raise CollaboratorUnavailable("vision", "Vertex AI is not initialized")

        try:
            from vertexai.generative_models import GenerationConfig

            parts = [
                "Reference product:",
                await self._image_part(reference_image),
                "Candidate A:",
                await self._image_part(image_a),
                "Candidate B:",
                await self._image_part(image_b),
                "Score how closely each candidate matches the reference product "
                "(0-100) and name the closer one as winner.",
            ]
            response = await self._comparison_model.generate_content_async(
                parts,
                generation_config=GenerationConfig(
                    temperature=self._config.temperature,
                    response_mime_type="application/json",
                    response_schema=COMPARISON_SCHEMA,
                ),
            )
            return parse_comparison(json.loads(response.text))
        except CollaboratorUnavailable:
            raise
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.AI_COMPARISON_FAILED,
                message=str(exc),
                suppressed=False,
            )
            raise CollaboratorUnavailable("vision", str(exc)) from exc
