"""Signal emitter for ranking runs.

Each ``RankingPipeline.rank`` call owns one emitter, so emitters are never
shared between concurrent runs.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from matchengine.signals.types import Signal, SignalType
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SignalEmitter:
    """Emits, optionally persists, and broadcasts signals for a single run.

    Signals are:
    - Immutable once emitted
    - Assigned monotonic sequence numbers
    - Appended to a JSONL ledger when a ledger path is given
    - Pushed to subscribers; a failing subscriber is logged and skipped
    """

    def __init__(self, rank_id: str, ledger_path: Path | None = None) -> None:
        self._rank_id = rank_id
        self._sequence = 0
        self._ledger_path = ledger_path
        self._subscribers: list[Callable[[Signal], Any]] = []
        self._signals: list[Signal] = []
        self._lock = asyncio.Lock()

        if self._ledger_path:
            self._ledger_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def rank_id(self) -> str:
        return self._rank_id

    @property
    def signals(self) -> list[Signal]:
        return list(self._signals)

    def subscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        async with self._lock:
            self._sequence += 1
            signal = Signal(
                sequence=self._sequence,
                signal_type=signal_type,
                timestamp=datetime.now(timezone.utc),
                rank_id=self._rank_id,
                payload=payload or {},
            )
            self._signals.append(signal)
            if self._ledger_path:
                with open(self._ledger_path, "a") as f:
                    f.write(signal.model_dump_json() + "\n")

        await self._broadcast(signal)
        return signal

    async def _broadcast(self, signal: Signal) -> None:
        for subscriber in self._subscribers:
            try:
                result = subscriber(signal)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    rank_id=self._rank_id,
                    details={"signal_type": signal.signal_type.value},
                )

    async def emit_candidate_skipped(self, candidate_index: int, title: str, reason: str) -> Signal:
        return await self.emit(
            SignalType.CANDIDATE_SKIPPED,
            {"candidate_index": candidate_index, "title": title, "reason": reason},
        )

    async def emit_rank_complete(
        self, candidates_ranked: int, top_score: float | None, duration_ms: float
    ) -> Signal:
        return await self.emit(
            SignalType.RANK_COMPLETE,
            {
                "candidates_ranked": candidates_ranked,
                "top_score": top_score,
                "duration_ms": duration_ms,
            },
        )

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        signals = []
        if ledger_path.exists():
            with open(ledger_path) as f:
                for line in f:
                    line = line.strip()
                    if line:
                        signals.append(Signal.model_validate_json(line))
        return signals
