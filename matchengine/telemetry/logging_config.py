"""Shared logging configuration.

Call ``configure_logging()`` once at an entry point (the API app factory does).
The function is idempotent: if the root logger already has handlers it only
adjusts the level.
"""

from __future__ import annotations

import logging

_STRUCTURED_FIELDS = (
    "error_code",
    "error_message",
    "suppressed",
    "rank_id",
    "step",
    "details",
)


class StructuredFormatter(logging.Formatter):
    """Appends the structured ``extra`` fields used by telemetry to each line."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts = [
            f"{name}={getattr(record, name)!r}"
            for name in _STRUCTURED_FIELDS
            if getattr(record, name, None) not in (None, {}, "")
        ]
        if not parts:
            return base
        return f"{base} | {' '.join(parts)}"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with a console handler."""
    root = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if root.handlers:
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(level)
