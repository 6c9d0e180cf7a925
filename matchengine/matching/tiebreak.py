"""Tiebreak resolver: Visual comparison between two close, strong candidates.

Visual comparison is expensive and only discriminates between two plausible
matches; it is never used to rescue a weak one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from matchengine.config.settings import MatchingConfig
from matchengine.matching.models import MatchResult
from matchengine.matching.ports import VisualComparator
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

TIEBREAK_FLAG = "Tiebreaker used: visual verification"


def should_tiebreak(results: Sequence[MatchResult], config: MatchingConfig = MatchingConfig()) -> bool:
    """True when the top two sorted results are both strong and within the gap."""
    if len(results) < 2:
        return False
    top, second = results[0].score, results[1].score
    return top >= config.tiebreak_min_score and (top - second) <= config.tiebreak_max_gap


@dataclass(frozen=True)
class TiebreakOutcome:
    winner: MatchResult
    loser: MatchResult
    visual_scores: tuple[float, float] | None
    used: bool
    swapped: bool = False


class TiebreakResolver:
    """Runs the visual comparison and decides the order of the top two."""

    def __init__(self, comparator: VisualComparator, timeout_s: float = 45) -> None:
        self._comparator = comparator
        self._timeout_s = timeout_s

    async def resolve(
        self,
        reference_image: str,
        first: MatchResult,
        first_image: str,
        second: MatchResult,
        second_image: str,
        rank_id: str | None = None,
    ) -> TiebreakOutcome:
        """Compare ``first`` (current rank 1) and ``second`` visually.

        On any collaborator failure the current order is kept and neither
        result is modified.
        """
        try:
            comparison = await asyncio.wait_for(
                self._comparator.compare(reference_image, first_image, second_image),
                timeout=self._timeout_s,
            )
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.TIEBREAK_FAILED,
                message=str(exc) or type(exc).__name__,
                suppressed=True,
                rank_id=rank_id,
                step="tiebreak",
            )
            return TiebreakOutcome(winner=first, loser=second, visual_scores=None, used=False)

        winner_label = comparison.winner
        if winner_label not in ("A", "B"):
            winner_label = "B" if comparison.score_b > comparison.score_a else "A"

        updated_first = first.model_copy(
            update={"tiebreaker_used": True, "visual_score": comparison.score_a}
        )
        updated_second = second.model_copy(
            update={"tiebreaker_used": True, "visual_score": comparison.score_b}
        )

        if winner_label == "A":
            winner, loser = updated_first, updated_second
        else:
            winner, loser = updated_second, updated_first
        winner = winner.model_copy(update={"flags": [*winner.flags, TIEBREAK_FLAG]})

        logger.info(
            "Tiebreak winner %s (visual %.1f vs %.1f)",
            winner_label,
            comparison.score_a,
            comparison.score_b,
        )
        return TiebreakOutcome(
            winner=winner,
            loser=loser,
            visual_scores=(comparison.score_a, comparison.score_b),
            used=True,
            swapped=winner_label == "B",
        )
