"""Rubric data models: Category-specific scoring contracts."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, model_validator

FamilyTable = dict[str, list[str]]


class AttributeWeight(BaseModel):
    """One weighted rubric attribute."""

    name: str
    max_points: float = Field(gt=0)
    is_critical: bool = False

    model_config = {"frozen": True}


class Rubric(BaseModel):
    """Scoring contract for one (category, subcategory).

    Attributes are kept in declaration order; ``fuzzy_families`` maps an
    attribute name to the semantic family table used to compare its values.
    The weights always add up to ``total_points``.
    """

    category: str
    subcategory: str
    attributes: list[AttributeWeight]
    total_points: float = 100
    fuzzy_families: dict[str, FamilyTable] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _validate_weights(self) -> Rubric:
        names = [a.name for a in self.attributes]
        if not names:
            raise ValueError(f"{self.key}: rubric has no attributes")
        if len(set(names)) != len(names):
            raise ValueError(f"{self.key}: duplicate attribute names")
        total = sum(a.max_points for a in self.attributes)
        if abs(total - self.total_points) > 1e-6:
            raise ValueError(
                f"{self.key}: weights sum to {total}, expected {self.total_points}"
            )
        unknown = set(self.fuzzy_families) - set(names)
        if unknown:
            raise ValueError(f"{self.key}: fuzzy tables for unknown attributes {sorted(unknown)}")
        return self

    @property
    def key(self) -> str:
        return f"{self.category}:{self.subcategory}"

    @property
    def attribute_names(self) -> list[str]:
        return [a.name for a in self.attributes]

    @property
    def critical_attributes(self) -> list[str]:
        return [a.name for a in self.attributes if a.is_critical]

    def weight(self, name: str) -> AttributeWeight | None:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None

    def families_for(self, name: str) -> FamilyTable:
        return self.fuzzy_families.get(name, {})

    def by_weight(self) -> list[AttributeWeight]:
        """Attributes ordered by max points, heaviest first (stable)."""
        return sorted(self.attributes, key=lambda a: a.max_points, reverse=True)


def attribute_label(name: str) -> str:
    """Human label for a camelCase attribute name: ``sleeveLength`` -> ``Sleeve Length``."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name).replace("_", " ")
    return spaced[:1].upper() + spaced[1:]
