"""Schema Registry: Static catalog of category/subcategory rubrics.

The catalog is a single declarative document (``rubrics.json``). Adding a new
product type means adding an entry there; nothing in the scoring code branches
on category.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from typing import Any

from pydantic import BaseModel, Field, model_validator

from matchengine.matching.errors import UnknownRubric
from matchengine.schema.inference import match_subcategory
from matchengine.schema.models import AttributeWeight, FamilyTable, Rubric
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

RUBRICS_RESOURCE = "rubrics.json"


class RubricEntry(BaseModel):
    """A rubric as written in the catalog: fuzzy tables referenced by name."""

    category: str
    subcategory: str
    total_points: float = 100
    attributes: list[AttributeWeight]
    fuzzy_families: dict[str, str] = Field(default_factory=dict)


class RubricCatalog(BaseModel):
    """The catalog document."""

    version: int
    fallback: str
    default_subcategories: dict[str, str]
    families: dict[str, FamilyTable]
    rubrics: list[RubricEntry]

    @model_validator(mode="after")
    def _validate_references(self) -> RubricCatalog:
        for entry in self.rubrics:
            for attribute, table in entry.fuzzy_families.items():
                if table not in self.families:
                    raise ValueError(
                        f"{entry.category}:{entry.subcategory}.{attribute} "
                        f"references unknown family table '{table}'"
                    )
        return self


def _norm_key(category: str, subcategory: str) -> str:
    return f"{category.strip().lower()}:{subcategory.strip().lower()}"


class SchemaRegistry:
    """Read-only lookup of rubrics keyed by (category, subcategory).

    Built once from a catalog and never mutated afterwards, so a single
    instance can be shared by any number of concurrent ranking runs.
    Lookups are case-insensitive.
    """

    def __init__(self, catalog: RubricCatalog) -> None:
        self._catalog = catalog
        self._rubrics: dict[str, Rubric] = {}
        self._categories: dict[str, str] = {}

        for entry in catalog.rubrics:
            rubric = Rubric(
                category=entry.category,
                subcategory=entry.subcategory,
                total_points=entry.total_points,
                attributes=entry.attributes,
                fuzzy_families={
                    attribute: catalog.families[table]
                    for attribute, table in entry.fuzzy_families.items()
                },
            )
            key = _norm_key(rubric.category, rubric.subcategory)
            if key in self._rubrics:
                raise ValueError(f"Duplicate rubric {rubric.key}")
            self._rubrics[key] = rubric
            self._categories.setdefault(rubric.category.lower(), rubric.category)

        self._defaults = {
            category.lower(): subcategory
            for category, subcategory in catalog.default_subcategories.items()
        }
        for category, subcategory in catalog.default_subcategories.items():
            if self.get(category, subcategory) is None:
                raise ValueError(f"Default subcategory {category}:{subcategory} has no rubric")

        fallback = self.get_by_key(catalog.fallback)
        if fallback is None:
            raise ValueError(f"Fallback rubric {catalog.fallback} does not exist")
        self._fallback = fallback

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaRegistry:
        return cls(RubricCatalog.model_validate(data))

    @classmethod
    def load_default(cls) -> SchemaRegistry:
        text = resources.files("matchengine.schema").joinpath(RUBRICS_RESOURCE).read_text(
            encoding="utf-8"
        )
        return cls.from_dict(json.loads(text))

    @property
    def version(self) -> int:
        return self._catalog.version

    @property
    def fallback(self) -> Rubric:
        return self._fallback

    def __len__(self) -> int:
        return len(self._rubrics)

    def get(self, category: str, subcategory: str | None) -> Rubric | None:
        if not subcategory:
            return None
        return self._rubrics.get(_norm_key(category, subcategory))

    def get_by_key(self, key: str) -> Rubric | None:
        category, sep, subcategory = key.partition(":")
        if not sep:
            return None
        return self.get(category, subcategory)

    def require(self, category: str, subcategory: str | None) -> Rubric:
        rubric = self.get(category, subcategory)
        if rubric is None:
            raise UnknownRubric(category, subcategory)
        return rubric

    def default_subcategory(self, category: str) -> str | None:
        return self._defaults.get(category.strip().lower())

    def infer_subcategory(self, product_name: str, category: str) -> str:
        """Infer a subcategory from a product name; never fails.

        Unknown categories get the global fallback's subcategory.
        """
        matched = match_subcategory(product_name, self._canonical_category(category))
        if matched is not None:
            return matched
        default = self.default_subcategory(category)
        if default is not None:
            return default
        return self._fallback.subcategory

    def resolve(
        self, category: str, subcategory: str | None = None, product_name: str = ""
    ) -> Rubric:
        """Return the best rubric for an item, falling back instead of failing."""
        if not subcategory:
            subcategory = self.infer_subcategory(product_name, category)

        try:
            return self.require(category, subcategory)
        except UnknownRubric as exc:
            default = self.default_subcategory(category)
            rubric = self.get(category, default) if default else None
            if rubric is None:
                rubric = self._fallback
            emit_structured_error(
                logger,
                code=ErrorCode.RUBRIC_FALLBACK,
                message=str(exc),
                suppressed=True,
                step="resolve_rubric",
                details={"requested": f"{category}:{subcategory}", "resolved": rubric.key},
            )
            return rubric

    def keys(self) -> list[str]:
        return [rubric.key for rubric in self._rubrics.values()]

    def rubrics(self) -> list[Rubric]:
        return list(self._rubrics.values())

    def categories(self) -> list[str]:
        return list(self._categories.values())

    def subcategories(self, category: str) -> list[str]:
        wanted = category.strip().lower()
        return [
            rubric.subcategory
            for rubric in self._rubrics.values()
            if rubric.category.lower() == wanted
        ]

    def _canonical_category(self, category: str) -> str:
        return self._categories.get(category.strip().lower(), category.strip())


@lru_cache(maxsize=1)
def get_registry() -> SchemaRegistry:
    """Process-wide registry, loaded on first use."""
    registry = SchemaRegistry.load_default()
    logger.info("Loaded %d rubrics (catalog v%d)", len(registry), registry.version)
    return registry


def infer_subcategory(product_name: str, category: str) -> str:
    return get_registry().infer_subcategory(product_name, category)
