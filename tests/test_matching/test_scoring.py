"""Tests for rubric-driven scoring and the critical-mismatch cap."""

from __future__ import annotations

import itertools

import pytest

from matchengine.config.settings import MatchingConfig
from matchengine.matching.fusion import fuse
from matchengine.matching.models import Candidate, VerificationTier
from matchengine.matching.scoring import score
from matchengine.pipeline.extraction import ExtractionRecord
from matchengine.schema.registry import get_registry

MATCHING_TOP = {
    "colorTone": "warm",
    "bodyLength": "regular",
    "fit": "relaxed",
    "fabric": "cotton",
    "texture": "ribbed",
    "pattern": "solid",
    "details": "buttons",
}


@pytest.fixture
def tops():
    return get_registry().require("Clothing", "Tops")


def _profile(rubric, **values):
    return fuse([ExtractionRecord.from_values("frame-0", rubric, values, confidence=0.9)], rubric)


def _candidate(rubric, **values):
    return ExtractionRecord.from_values("cand-0", rubric, values, confidence=0.8)


def _row(result, attribute):
    return next(row for row in result.breakdown if row.attribute == attribute)


class TestOliveSweaterScenario:
    def test_three_attribute_scenario(self, tops):
        profile = _profile(tops, primaryColor="olive green", neckline="crew", sleeveLength="long")
        candidate = _candidate(tops, primaryColor="sage", neckline="v-neck", sleeveLength="long")
        result = score(profile, candidate, tops)

        assert _row(result, "primaryColor").points == pytest.approx(0.7 * 20)
        neckline = _row(result, "neckline")
        assert neckline.points == 0
        assert neckline.is_critical
        assert _row(result, "sleeveLength").points == 12
        assert result.critical_mismatches == ["Neckline: crew ≠ v-neck"]
        assert "Critical mismatch: Neckline" in result.flags
        # the seven unknown reference attributes each earn half credit
        assert result.raw_score == pytest.approx(52.5)
        assert not result.was_capped
        assert result.score == result.raw_score

    def test_capped_when_remaining_attributes_match(self, tops):
        profile = _profile(
            tops, primaryColor="olive green", neckline="crew", sleeveLength="long", **MATCHING_TOP
        )
        candidate = _candidate(
            tops, primaryColor="sage", neckline="v-neck", sleeveLength="long", **MATCHING_TOP
        )
        result = score(profile, candidate, tops)

        assert result.raw_score == pytest.approx(79)
        assert result.score == 65
        assert result.was_capped
        assert result.capped_reason == "Capped at 65: Neckline: crew ≠ v-neck"
        assert result.verification.tier == VerificationTier.AUTO


class TestMetalColorMismatch:
    SUNGLASSES = {
        "framePattern": "solid",
        "frameShape": "aviator",
        "frameMaterial": "metal",
        "lensColor": "green",
        "lensTint": "dark",
        "lensType": "polarized",
        "templeStyle": "thin",
        "style": "classic",
    }

    def test_gold_frame_against_silver_frame_is_capped(self):
        rubric = get_registry().require("Accessories", "Sunglasses")
        profile = _profile(rubric, frameColor="gold", **self.SUNGLASSES)
        candidate = _candidate(rubric, frameColor="silver", **self.SUNGLASSES)
        result = score(profile, candidate, rubric)

        assert result.raw_score == pytest.approx(82)
        assert result.critical_mismatches == ["Frame Color: gold ≠ silver"]
        assert result.was_capped
        assert result.score == 65
        assert result.verification.tier == VerificationTier.AUTO

    def test_rose_gold_against_yellow_gold_is_critical(self):
        rubric = get_registry().require("Jewelry", "Earrings")
        profile = _profile(rubric, metalColor="rose gold", earringType="hoop")
        candidate = _candidate(rubric, metalColor="yellow gold", earringType="hoop")
        result = score(profile, candidate, rubric)

        assert result.critical_mismatches == ["Metal Color: rose gold ≠ yellow gold"]
        assert "Critical mismatch: Metal Color" in result.flags


class TestScoring:
    def test_perfect_match(self, tops):
        values = {"primaryColor": "navy", "neckline": "crew", "sleeveLength": "long", **MATCHING_TOP}
        result = score(_profile(tops, **values), _candidate(tops, **values), tops)
        assert result.raw_score == 100
        assert result.score == 100
        assert result.flags == []
        assert result.verification.tier == VerificationTier.AUTO_HIGH
        assert result.verification.confidence == 100

    def test_breakdown_is_in_weight_order(self, tops):
        result = score(_profile(tops, fit="slim"), _candidate(tops), tops)
        assert [row.attribute for row in result.breakdown] == [a.name for a in tops.by_weight()]
        assert result.breakdown[0].label == "Primary Color"

    def test_reference_unknown_gets_half_credit(self, tops):
        result = score(_profile(tops), _candidate(tops, primaryColor="red"), tops)
        row = _row(result, "primaryColor")
        assert row.points == 10
        assert row.reference_value is None
        assert result.raw_score == 50

    def test_candidate_unknown_gets_smaller_credit(self, tops):
        result = score(_profile(tops, primaryColor="red"), _candidate(tops), tops)
        assert _row(result, "primaryColor").points == 8
        assert "neutral 40%" in _row(result, "primaryColor").reason

    def test_unknown_candidate_on_critical_is_not_a_mismatch(self, tops):
        result = score(_profile(tops, neckline="crew"), _candidate(tops), tops)
        assert result.critical_mismatches == []

    def test_non_critical_zero_is_not_flagged(self, tops):
        result = score(_profile(tops, fit="slim"), _candidate(tops, fit="oversized"), tops)
        assert _row(result, "fit").points == 0
        assert result.flags == []

    def test_not_capped_at_or_below_cap(self, tops):
        profile = _profile(tops, neckline="crew")
        result = score(profile, _candidate(tops, neckline="v-neck"), tops)
        assert result.critical_mismatches
        assert result.raw_score <= 65
        assert not result.was_capped

    def test_multiple_mismatches_listed_in_reason(self, tops):
        values = dict(MATCHING_TOP, primaryColor="red")
        profile = _profile(tops, neckline="crew", sleeveLength="long", **values)
        candidate = _candidate(tops, neckline="turtleneck", sleeveLength="sleeveless", **values)
        result = score(profile, candidate, tops)
        assert result.raw_score > 65
        assert result.capped_reason == (
            "Capped at 65: Neckline: crew ≠ turtleneck; Sleeve Length: long ≠ sleeveless"
        )

    def test_custom_config(self, tops):
        config = MatchingConfig(score_cap=50, candidate_unknown_credit=0.25)
        values = {"primaryColor": "navy", "neckline": "crew", **MATCHING_TOP}
        result = score(
            _profile(tops, sleeveLength="long", **values),
            _candidate(tops, neckline="v-neck", **{k: v for k, v in values.items() if k != "neckline"}),
            tops,
            config=config,
        )
        assert _row(result, "sleeveLength").points == 3
        assert result.score == 50

    def test_candidate_listing_is_attached(self, tops):
        listing = Candidate(title="Ribbed Crew Sweater", price="$40")
        result = score(_profile(tops), _candidate(tops), tops, candidate=listing)
        assert result.candidate.title == "Ribbed Crew Sweater"
        assert result.rank is None

    def test_boolean_attribute(self):
        earrings = get_registry().require("Jewelry", "Earrings")
        result = score(
            _profile(earrings, hasGemstones=True),
            _candidate(earrings, hasGemstones="true"),
            earrings,
        )
        assert _row(result, "hasGemstones").points == 8


class TestInvariants:
    COLORS = ["olive green", "sage", "navy", None]
    NECKLINES = ["crew", "v-neck", "scoop", None]
    SLEEVES = ["long", "short", None]

    def _values(self, color, neckline, sleeve):
        values = dict(MATCHING_TOP)
        for key, value in (("primaryColor", color), ("neckline", neckline), ("sleeveLength", sleeve)):
            if value is not None:
                values[key] = value
        return values

    def test_score_bounds_and_cap(self, tops):
        grid = list(itertools.product(self.COLORS, self.NECKLINES, self.SLEEVES))
        for ref in grid[::3]:
            profile = _profile(tops, **self._values(*ref))
            for cand in grid:
                result = score(profile, _candidate(tops, **self._values(*cand)), tops)
                assert 0 <= result.score <= result.raw_score <= 100
                if result.critical_mismatches and result.raw_score > 65:
                    assert result.score == 65
                    assert result.was_capped
                else:
                    assert not result.was_capped

    def test_unknown_never_beats_exact(self, tops):
        profile = _profile(tops, primaryColor="navy", neckline="crew")
        exact = score(profile, _candidate(tops, primaryColor="navy", neckline="crew"), tops)
        unknown = score(profile, _candidate(tops, neckline="crew"), tops)
        assert _row(unknown, "primaryColor").points <= _row(exact, "primaryColor").points
        assert unknown.score <= exact.score
