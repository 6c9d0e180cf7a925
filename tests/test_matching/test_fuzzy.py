"""Tests for the graduated fuzzy attribute comparator."""

from __future__ import annotations

import itertools

import pytest

from matchengine.matching.fuzzy import EXACT, FAMILY, NONE, SHADE, families_of, normalize, similarity
from matchengine.schema.registry import get_registry


@pytest.fixture
def tops():
    return get_registry().require("Clothing", "Tops")


@pytest.fixture
def earrings():
    return get_registry().require("Jewelry", "Earrings")


@pytest.fixture
def sunglasses():
    return get_registry().require("Accessories", "Sunglasses")


class TestNormalize:
    def test_folds_case_and_separators(self):
        assert normalize("  V-Neck ") == "v neck"
        assert normalize("off_shoulder") == "off shoulder"
        assert normalize("Olive  Green") == "olive green"


class TestStringSimilarity:
    def test_exact_is_case_insensitive(self, tops):
        result = similarity("primaryColor", "Olive Green", "olive green", tops)
        assert result.score == EXACT
        assert result.reason == "Exact match"

    def test_separator_variants_are_exact(self, tops):
        assert similarity("neckline", "v-neck", "V Neck", tops).score == EXACT

    def test_containment_is_shade_variation(self, tops):
        result = similarity("primaryColor", "green", "olive green", tops)
        assert result.score == SHADE
        assert result.reason == "Shade variation (90%)"

    def test_family_match(self, tops):
        result = similarity("primaryColor", "olive green", "sage", tops)
        assert result.score == FAMILY
        assert result.reason == "Same primary color family: green (70%)"

    def test_family_match_uses_word_boundaries(self, tops):
        # "tan" must not match inside "tangerine"
        assert "brown" not in families_of("tangerine", tops.families_for("primaryColor"))

    def test_garment_families(self, tops):
        assert similarity("neckline", "crew neck", "round", tops).score == FAMILY
        assert similarity("sleeveLength", "full length", "long", tops).score == FAMILY
        assert similarity("texture", "cable knit", "popcorn", tops).score == FAMILY

    def test_different_families_do_not_match(self, tops):
        result = similarity("neckline", "crew", "v-neck", tops)
        assert result.score == NONE
        assert result.reason == "No match"

    def test_attribute_without_table_has_no_family_tier(self, tops):
        assert similarity("fit", "relaxed", "oversized", tops).score == NONE

    def test_metal_table(self, earrings):
        assert similarity("metalColor", "14k gold", "gold-tone", earrings).score == FAMILY
        assert similarity("metalColor", "gold", "silver", earrings).score == NONE

    def test_longest_member_decides_family(self, earrings):
        metals = earrings.families_for("metalColor")
        assert families_of("rose gold", metals) == {"rose_gold"}
        assert families_of("dark silver", metals) == {"gunmetal"}
        assert families_of("yellow gold", metals) == {"gold"}

    def test_rose_gold_is_not_yellow_gold(self, earrings):
        result = similarity("metalColor", "rose gold", "yellow gold", earrings)
        assert result.score == NONE
        assert similarity("metalColor", "yellow gold", "rose gold", earrings) == result

    def test_gold_and_silver_frames_differ(self, sunglasses):
        assert similarity("frameColor", "gold", "silver", sunglasses).score == NONE
        assert similarity("frameColor", "silver", "gray", sunglasses).score == FAMILY


class TestScalarSimilarity:
    def test_booleans(self, earrings):
        assert similarity("hasGemstones", True, True, earrings).score == EXACT
        assert similarity("hasGemstones", True, False, earrings).score == NONE

    def test_boolean_strings_are_coerced(self, earrings):
        assert similarity("hasGemstones", True, "true", earrings).score == EXACT
        assert similarity("hasGemstones", "false", False, earrings).score == EXACT

    def test_bool_never_equals_number(self, earrings):
        assert similarity("hasGemstones", True, 1, earrings).score == NONE

    def test_numbers_have_no_fuzziness(self, earrings):
        assert similarity("size", 12, 12.0, earrings).score == EXACT
        assert similarity("size", 12, 13, earrings).score == NONE


class TestSymmetry:
    VALUES = [
        "olive green",
        "sage",
        "green",
        "navy",
        "dark blue",
        "blue",
        "crew",
        "v-neck",
        "gold",
        "rose gold",
        "",
        True,
        False,
        "true",
        3,
        3.0,
    ]

    @pytest.mark.parametrize("attribute", ["primaryColor", "neckline", "fit"])
    def test_similarity_is_symmetric(self, tops, attribute):
        for a, b in itertools.product(self.VALUES, repeat=2):
            assert similarity(attribute, a, b, tops) == similarity(attribute, b, a, tops), (a, b)
