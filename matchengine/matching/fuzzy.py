"""Fuzzy attribute comparator.

Vision extraction produces near-synonymous free text ("olive green" vs "sage")
for the same physical trait. Comparison is graduated: exact, shade variation
(one value contains the other), shared semantic family, or no match.
Booleans and numbers compare by plain equality.

The comparator is symmetric: ``similarity(attr, a, b, rubric)`` equals
``similarity(attr, b, a, rubric)``, reason included.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from matchengine.schema.models import FamilyTable, Rubric, attribute_label

EXACT = 1.0
SHADE = 0.9
FAMILY = 0.7
NONE = 0.0

_SEPARATORS = re.compile(r"[_\-]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Similarity:
    score: float
    reason: str


def normalize(value: str) -> str:
    """Trim, lower-case, and fold ``_``/``-`` to spaces."""
    folded = _SEPARATORS.sub(" ", value.strip().lower())
    return _WHITESPACE.sub(" ", folded).strip()


def families_of(value: str, table: FamilyTable) -> set[str]:
    """Families of the longest member phrase found in the value as whole words.

    "rose gold" belongs to ``rose_gold`` only, not also to ``gold``. Members of
    equal length in different families all count.
    """
    needle = normalize(value)
    if not needle:
        return set()
    best = 0
    found: set[str] = set()
    for family, members in table.items():
        for member in members:
            phrase = normalize(member)
            if not phrase or len(phrase) < best:
                continue
            if phrase == needle or re.search(rf"\b{re.escape(phrase)}\b", needle):
                if len(phrase) > best:
                    best = len(phrase)
                    found = set()
                found.add(family)
    return found


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False
    return None


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _equality(matched: bool) -> Similarity:
    return Similarity(EXACT, "Exact match") if matched else Similarity(NONE, "No match")


def compare_strings(attribute: str, reference: str, candidate: str, table: FamilyTable) -> Similarity:
    a = normalize(reference)
    b = normalize(candidate)
    if a == b:
        return Similarity(EXACT, "Exact match")
    if a and b and (a in b or b in a):
        return Similarity(SHADE, "Shade variation (90%)")

    shared = families_of(a, table) & families_of(b, table)
    if shared:
        # table order keeps the reported family independent of argument order
        family = next(name for name in table if name in shared)
        label = attribute_label(attribute).lower()
        return Similarity(FAMILY, f"Same {label} family: {family} (70%)")
    return Similarity(NONE, "No match")


def similarity(attribute: str, reference: Any, candidate: Any, rubric: Rubric) -> Similarity:
    """Similarity in [0, 1] between two known values of one attribute."""
    if isinstance(reference, bool) or isinstance(candidate, bool):
        left, right = _as_bool(reference), _as_bool(candidate)
        return _equality(left is not None and left == right)

    if isinstance(reference, (int, float)) or isinstance(candidate, (int, float)):
        left_num, right_num = _as_number(reference), _as_number(candidate)
        return _equality(left_num is not None and left_num == right_num)

    return compare_strings(attribute, str(reference), str(candidate), rubric.families_for(attribute))
