"""Error taxonomy for fusion, scoring and ranking."""

from __future__ import annotations


class MatchingError(Exception):
    """Base class for matching engine errors."""


class InsufficientObservations(MatchingError):
    """Raised when fusion is asked to fuse zero observations."""


class CollaboratorUnavailable(MatchingError):
    """Raised by a collaborator adapter when its service fails or times out.

    The ranking pipeline catches this and drops the affected candidate.
    """

    def __init__(self, collaborator: str, reason: str) -> None:
        super().__init__(f"{collaborator} unavailable: {reason}")
        self.collaborator = collaborator
        self.reason = reason


class UnknownRubric(MatchingError):
    """Raised when no rubric exists for a category/subcategory pair."""

    def __init__(self, category: str, subcategory: str | None) -> None:
        super().__init__(f"No rubric for {category}:{subcategory}")
        self.category = category
        self.subcategory = subcategory


class MalformedExtraction(MatchingError):
    """Raised when an extracted attribute value cannot be flattened to a scalar."""
