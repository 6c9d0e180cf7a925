"""Verification tiers and the confirm/dispute transitions.

Transitions are pure: they return a new MatchResult carrying a new
VerificationState and leave the input untouched. Persisting a transition is
the caller's job.
"""

from __future__ import annotations

from datetime import datetime, timezone

from matchengine.config.settings import MatchingConfig
from matchengine.matching.models import MatchResult, VerificationState, VerificationTier

_DEFAULTS = MatchingConfig()

CONFIRMATION_TIERS = frozenset({VerificationTier.CREATOR_CONFIRMED, VerificationTier.BRAND_VERIFIED})


def initial_state(score: float, threshold: float = _DEFAULTS.auto_high_threshold) -> VerificationState:
    tier = VerificationTier.AUTO_HIGH if score >= threshold else VerificationTier.AUTO
    return VerificationState(tier=tier, confidence=score)


def confirm_match(
    match: MatchResult,
    tier: VerificationTier | str,
    verified_by: str,
    bonus: float = _DEFAULTS.confirmation_bonus,
    now: datetime | None = None,
) -> MatchResult:
    """Mark a match as confirmed by its creator or brand.

    Confidence becomes the match score plus ``bonus``, capped at 100.
    """
    try:
        tier = VerificationTier(tier)
    except ValueError:
        raise ValueError(f"Unknown verification tier: {tier!r}") from None
    if tier not in CONFIRMATION_TIERS:
        raise ValueError(f"Cannot confirm a match with tier '{tier.value}'")
    if not verified_by.strip():
        raise ValueError("verified_by must not be empty")

    state = VerificationState(
        tier=tier,
        confidence=min(match.score + bonus, 100.0),
        verified_by=verified_by,
        verified_at=now or datetime.now(timezone.utc),
    )
    return match.model_copy(update={"verification": state})


def dispute_match(
    match: MatchResult,
    reason: str,
    disputed_by: str,
    now: datetime | None = None,
) -> MatchResult:
    """Mark a match as disputed, keeping its current confidence."""
    if not reason.strip():
        raise ValueError("A dispute needs a reason")

    state = VerificationState(
        tier=VerificationTier.DISPUTED,
        confidence=match.verification.confidence,
        verified_by=disputed_by,
        verified_at=now or datetime.now(timezone.utc),
        dispute_reason=reason.strip(),
    )
    return match.model_copy(update={"verification": state})
