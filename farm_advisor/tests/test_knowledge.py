"""Tests for the agronomic knowledge base."""
from types import MappingProxyType

import pytest

from farm_advisor.errors import UnknownCrop
from farm_advisor.knowledge import (
    CROPS, GROWTH_STAGE_IDS, CropProfile, KnowledgeBase, PhRange, Variety,
)

from conftest import fixed_clock


class TestCrops:
    def test_supported_crops(self, kb):
        assert kb.supported_crops() == ["maize", "beans", "potatoes", "bananas"]

    def test_crop_lookup_is_case_insensitive(self, kb):
        assert kb.crop("MAIZE").id == "maize"

    def test_unknown_crop_raises(self, kb):
        with pytest.raises(UnknownCrop) as exc:
            kb.crop("cassava")
        assert str(exc.value) == "Unknown crop: cassava"
        assert isinstance(exc.value, KeyError)

    @pytest.mark.parametrize("crop_id", list(CROPS))
    def test_profile_invariants(self, kb, crop_id):
        profile = kb.crop(crop_id)
        assert profile.growth_stages == GROWTH_STAGE_IDS
        assert len(profile.varieties) >= 1
        for variety in profile.varieties.values():
            assert variety.drought_resistance in ("low", "medium", "high")
        assert profile.ph_range.min < profile.ph_range.max

    def test_find_variety_ignores_case(self, kb):
        assert kb.crop("maize").find_variety("zm607").name == "ZM607"
        assert kb.crop("maize").find_variety("unknown") is None

    def test_season_suitability(self, kb):
        assert kb.is_crop_suitable_for_season("maize", "longRains")
        assert not kb.is_crop_suitable_for_season("maize", "longDry")
        assert kb.is_crop_suitable_for_season("bananas", "shortDry")

    def test_substitute_tables(self):
        okra = CropProfile(
            id="okra", name="Okra", water_needs="low", season="all",
            growth_period="50-65 days", ph_range=PhRange(6.0, 6.8, 6.5),
            growth_stages=GROWTH_STAGE_IDS,
            varieties=MappingProxyType({"Clemson": Variety("Clemson", "Spineless pods", "high")}),
        )
        kb = KnowledgeBase(crops=MappingProxyType({"okra": okra}))
        assert kb.supported_crops() == ["okra"]
        assert not kb.has_crop("maize")


class TestSeasons:
    @pytest.mark.parametrize("month, season", [
        (1, "shortDry"), (2, "shortDry"),
        (3, "longRains"), (5, "longRains"),
        (6, "longDry"), (9, "longDry"),
        (10, "shortRains"), (12, "shortRains"),
    ])
    def test_season_for_month(self, kb, month, season):
        info = kb.season_for_month(month)
        assert info.season == season
        assert info.current_month == month

    def test_every_month_has_exactly_one_season(self, kb):
        for month in range(1, 13):
            matches = [d for d in kb.seasons if month in d.months]
            assert len(matches) == 1

    def test_description_names_months(self, kb):
        assert kb.season_for_month(1).description == "Short dry season - January to February"

    def test_invalid_month(self, kb):
        with pytest.raises(ValueError):
            kb.season_for_month(13)

    def test_current_season_uses_clock(self):
        kb = KnowledgeBase(clock=fixed_clock(7))
        assert kb.current_season().season == "longDry"
        assert kb.current_season().current_month == 7


class TestSoilPh:
    @pytest.mark.parametrize("value, category", [
        (4.0, "strongly_acidic"),
        (4.99, "strongly_acidic"),
        (5.0, "moderately_acidic"),
        (6.0, "slightly_acidic"),
        (6.5, "neutral"),
        (7.9, "slightly_alkaline"),
        (8.0, "moderately_alkaline"),
        (8.5, "moderately_alkaline"),
    ])
    def test_bands(self, kb, value, category):
        assert kb.ph_category(value).id == category

    @pytest.mark.parametrize("value", [3.9, 8.6])
    def test_outside_bands(self, kb, value):
        assert kb.ph_category(value) is None


class TestGrowthStages:
    def test_lookup(self, kb):
        stage = kb.growth_stage("Flowering")
        assert stage.id == "flowering"
        assert len(stage.actions) == 2

    def test_unknown_stage(self, kb):
        assert kb.growth_stage("dormant") is None
