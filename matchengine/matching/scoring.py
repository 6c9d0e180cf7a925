"""Scoring engine: One generic weighted routine driven entirely by the rubric.

Per attribute, in weight order:

- reference unknown: neutral ``reference_unknown_credit`` of max points
- candidate unknown: smaller neutral ``candidate_unknown_credit``
- otherwise: ``max_points * similarity``

A critical attribute with zero similarity is a deal-breaker. If any exist and
the raw score is above ``score_cap``, the final score is clamped to the cap.
"""

from __future__ import annotations

import logging

from matchengine.config.settings import MatchingConfig
from matchengine.matching.fuzzy import similarity
from matchengine.matching.models import AttributeComparison, Candidate, FusedProfile, MatchResult
from matchengine.matching.verification import initial_state
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.models import AttributeWeight, Rubric, attribute_label

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = MatchingConfig()


def _fmt(value: object) -> str:
    return str(value).lower() if isinstance(value, bool) else str(value)


def _format_points(value: float) -> str:
    return f"{value:g}"


def score_attribute(
    weight: AttributeWeight,
    profile: FusedProfile,
    record: ExtractionRecord,
    rubric: Rubric,
    config: MatchingConfig = _DEFAULT_CONFIG,
) -> tuple[AttributeComparison, str | None]:
    """Score one attribute. Returns the breakdown row and a critical mismatch, if any."""
    reference = profile.value_of(weight.name)
    candidate = record.value_of(weight.name)
    label = attribute_label(weight.name)
    mismatch = None

    if reference is None:
        credit = config.reference_unknown_credit
        points = weight.max_points * credit
        reason = f"Unknown in reference (neutral {credit:.0%})"
    elif candidate is None:
        credit = config.candidate_unknown_credit
        points = weight.max_points * credit
        reason = f"Not detected in candidate (neutral {credit:.0%})"
    else:
        result = similarity(weight.name, reference, candidate, rubric)
        points = weight.max_points * result.score
        reason = result.reason
        if result.score == 0 and weight.is_critical:
            mismatch = f"{label}: {_fmt(reference)} ≠ {_fmt(candidate)}"
            reason = f"Critical mismatch: {_fmt(reference)} ≠ {_fmt(candidate)}"

    row = AttributeComparison(
        attribute=weight.name,
        label=label,
        reference_value=reference,
        candidate_value=candidate,
        points=round(points, 2),
        max_points=weight.max_points,
        reason=reason,
        is_critical=weight.is_critical,
    )
    return row, mismatch


def score(
    profile: FusedProfile,
    record: ExtractionRecord,
    rubric: Rubric,
    candidate: Candidate | None = None,
    config: MatchingConfig = _DEFAULT_CONFIG,
) -> MatchResult:
    """Score one candidate's extraction against the fused reference profile."""
    breakdown: list[AttributeComparison] = []
    mismatches: list[str] = []
    flags: list[str] = []
    total = 0.0

    for weight in rubric.by_weight():
        row, mismatch = score_attribute(weight, profile, record, rubric, config)
        breakdown.append(row)
        total += row.points
        if mismatch is not None:
            mismatches.append(mismatch)
            flags.append(f"Critical mismatch: {row.label}")

    raw_score = round(min(max(total, 0.0), 100.0), 2)
    final_score = raw_score
    was_capped = False
    capped_reason = None

    if mismatches and raw_score > config.score_cap:
        final_score = config.score_cap
        was_capped = True
        capped_reason = f"Capped at {_format_points(config.score_cap)}: {'; '.join(mismatches)}"
        logger.debug("Capped %s from %.2f: %s", record.source, raw_score, capped_reason)

    return MatchResult(
        candidate=candidate or Candidate(title=str(record.source)),
        extraction=record,
        raw_score=raw_score,
        score=final_score,
        was_capped=was_capped,
        capped_reason=capped_reason,
        breakdown=breakdown,
        critical_mismatches=mismatches,
        flags=flags,
        verification=initial_state(final_score, config.auto_high_threshold),
    )
