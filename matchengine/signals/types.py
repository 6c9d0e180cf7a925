"""Signal type definitions for ranking-run observability."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """Every step boundary of a ranking run emits one of these."""

    RANK_STARTED = "RANK_STARTED"
    PROFILE_FUSED = "PROFILE_FUSED"
    SEARCH_COMPLETE = "SEARCH_COMPLETE"
    CANDIDATE_EXTRACTED = "CANDIDATE_EXTRACTED"
    CANDIDATE_SKIPPED = "CANDIDATE_SKIPPED"
    CANDIDATES_SCORED = "CANDIDATES_SCORED"
    TIEBREAK_RESOLVED = "TIEBREAK_RESOLVED"
    RANK_COMPLETE = "RANK_COMPLETE"


class Signal(BaseModel):
    """An immutable signal emitted during a ranking run."""

    sequence: int = Field(description="Monotonic sequence number within the run")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    rank_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
