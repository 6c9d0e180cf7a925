"""Extraction data models — per-observation attribute records with confidence and provenance."""

from __future__ import annotations

import logging
from typing import Any, Union

from pydantic import BaseModel, Field

from matchengine.matching.errors import MalformedExtraction
from matchengine.schema.models import Rubric

logger = logging.getLogger(__name__)

Scalar = Union[bool, int, float, str]

PLACEHOLDER_VALUES = frozenset({"unknown", "not_visible", "not_applicable", ""})
DEFAULT_EXTRACTION_CONFIDENCE = 0.5


def is_placeholder(value: Any) -> bool:
    """True when a value carries no information about the attribute."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in PLACEHOLDER_VALUES
    return False


class AttributeValue(BaseModel):
    """A single extracted value, stamped with its observation's confidence."""

    value: Scalar
    confidence: float = Field(ge=0.0, le=1.0)

    model_config = {"frozen": True}


class ExtractionRecord(BaseModel):
    """One observation of one item: a video frame or a candidate image.

    ``source`` identifies the observation (frame index or candidate id) and is
    carried into the fused profile as provenance.
    """

    source: str | int
    category: str
    subcategory: str
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0, default=DEFAULT_EXTRACTION_CONFIDENCE)

    model_config = {"frozen": True}

    def value_of(self, name: str) -> Scalar | None:
        """The attribute's value, or None when absent or a placeholder."""
        attribute = self.attributes.get(name)
        if attribute is None or is_placeholder(attribute.value):
            return None
        return attribute.value

    @property
    def known_count(self) -> int:
        return sum(1 for name in self.attributes if self.value_of(name) is not None)

    @classmethod
    def from_values(
        cls,
        source: str | int,
        rubric: Rubric,
        values: dict[str, Any],
        confidence: float = DEFAULT_EXTRACTION_CONFIDENCE,
    ) -> ExtractionRecord:
        """Build a record from a plain attribute map; placeholders are dropped."""
        return cls(
            source=source,
            category=rubric.category,
            subcategory=rubric.subcategory,
            attributes={
                name: AttributeValue(value=value, confidence=confidence)
                for name, value in values.items()
                if not is_placeholder(value)
            },
            confidence=confidence,
        )


def _coerce_scalar(name: str, value: Any) -> Scalar:
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return value.strip()
    raise MalformedExtraction(f"{name}: cannot flatten {type(value).__name__} to a scalar")


def _read_confidence(raw: dict[str, Any]) -> float:
    for key in ("confidence", "CONFIDENCE"):
        if key in raw:
            try:
                confidence = float(raw[key])
            except (TypeError, ValueError):
                return DEFAULT_EXTRACTION_CONFIDENCE
            return min(max(confidence, 0.0), 1.0)
    return DEFAULT_EXTRACTION_CONFIDENCE


def parse_extraction(raw: dict[str, Any], source: str | int, rubric: Rubric) -> ExtractionRecord:
    """Flatten a collaborator's JSON attribute map into an ExtractionRecord.

    Only rubric attributes are kept. Values that cannot be flattened (lists,
    nested objects) are logged and treated as unknown.
    """
    confidence = _read_confidence(raw)
    attributes: dict[str, AttributeValue] = {}

    for name in rubric.attribute_names:
        value = raw.get(name)
        if is_placeholder(value):
            continue
        try:
            scalar = _coerce_scalar(name, value)
        except MalformedExtraction as exc:
            logger.debug("Treating attribute as unknown: %s", exc)
            continue
        if is_placeholder(scalar):
            continue
        attributes[name] = AttributeValue(value=scalar, confidence=confidence)

    return ExtractionRecord(
        source=source,
        category=rubric.category,
        subcategory=rubric.subcategory,
        attributes=attributes,
        confidence=confidence,
    )
