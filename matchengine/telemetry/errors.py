"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    SEARCH_FAILED = "SEARCH_FAILED"
    IMAGE_FETCH_FAILED = "IMAGE_FETCH_FAILED"
    CANDIDATE_EXTRACTION_FAILED = "CANDIDATE_EXTRACTION_FAILED"
    TIEBREAK_FAILED = "TIEBREAK_FAILED"
    RUBRIC_FALLBACK = "RUBRIC_FALLBACK"
    AI_INITIALIZATION_FAILED = "AI_INITIALIZATION_FAILED"
    AI_EXTRACTION_FAILED = "AI_EXTRACTION_FAILED"
    AI_COMPARISON_FAILED = "AI_COMPARISON_FAILED"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    rank_id: str | None = None,
    step: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging.

    Suppressed errors are logged at WARNING: the engine recovered and kept
    going. Unsuppressed ones are logged at ERROR.
    """
    level = logging.WARNING if suppressed else logging.ERROR
    logger.log(
        level,
        "matchengine_error",
        extra={
            "error_code": code.value,
            "error_message": message,
            "suppressed": suppressed,
            "rank_id": rank_id,
            "step": step,
            "details": details or {},
        },
    )
