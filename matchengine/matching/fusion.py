"""Observation fuser: Combine per-frame extractions into one FusedProfile."""

from __future__ import annotations

import logging
from typing import Sequence

from matchengine.matching.errors import InsufficientObservations
from matchengine.matching.models import FusedAttribute, FusedProfile
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.models import Rubric

logger = logging.getLogger(__name__)


def fuse(records: Sequence[ExtractionRecord], rubric: Rubric) -> FusedProfile:
    """Pick the highest-confidence known value for every rubric attribute.

    Ties on confidence go to the earliest record (``sorted`` is stable).
    Placeholder values never count as observations.
    """
    if not records:
        raise InsufficientObservations(f"Cannot fuse zero observations for {rubric.key}")

    attributes: dict[str, FusedAttribute] = {}
    known_confidences: list[float] = []

    for name in rubric.attribute_names:
        observed = []
        for record in records:
            value = record.value_of(name)
            if value is not None:
                observed.append((record.attributes[name].confidence, record.source, value))

        if not observed:
            attributes[name] = FusedAttribute(name=name)
            continue

        confidence, source, value = sorted(observed, key=lambda item: item[0], reverse=True)[0]
        attributes[name] = FusedAttribute(
            name=name, value=value, source=source, confidence=confidence
        )
        known_confidences.append(confidence)

    total = len(rubric.attribute_names)
    completeness = len(known_confidences) / total
    overall = sum(known_confidences) / len(known_confidences) if known_confidences else 0.0

    logger.debug(
        "Fused %d observations for %s: completeness=%.2f confidence=%.2f",
        len(records),
        rubric.key,
        completeness,
        overall,
    )
    return FusedProfile(
        rubric_key=rubric.key,
        attributes=attributes,
        completeness=completeness,
        overall_confidence=overall,
        observation_count=len(records),
    )
