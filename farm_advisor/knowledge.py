"""
Agronomic Knowledge Base

Static, read-only tables describing the supported crops, Rwanda's four
agricultural seasons, crop growth stages, soil-pH bands and the weather
thresholds used for warnings. Both advisors consult one KnowledgeBase
instance; tests may build their own with substitute tables.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .errors import UnknownCrop


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Season(str, Enum):
    """Rwanda agricultural seasons, fixed by calendar month."""
    SHORT_DRY = "shortDry"
    LONG_RAINS = "longRains"
    LONG_DRY = "longDry"
    SHORT_RAINS = "shortRains"


class GrowthStage(str, Enum):
    GERMINATION = "germination"
    VEGETATIVE = "vegetative"
    FLOWERING = "flowering"
    FRUITING = "fruiting"


GROWTH_STAGE_IDS: Tuple[str, ...] = tuple(s.value for s in GrowthStage)
ANY_SEASON = "all"


# ─────────────────────────────────────────────────────────────────────────────
# RECORD TYPES
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SeasonInfo:
    season: str
    description: str
    start: str
    end: str
    current_month: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "season": self.season,
            "description": self.description,
            "start": self.start,
            "end": self.end,
            "current_month": self.current_month,
        }


@dataclass(frozen=True)
class SeasonDefinition:
    season: Season
    months: Tuple[int, ...]
    start: str
    end: str
    description: str


@dataclass(frozen=True)
class Variety:
    name: str
    description: str
    drought_resistance: str  # low, medium, high


@dataclass(frozen=True)
class PhRange:
    min: float
    max: float
    optimal: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass(frozen=True)
class CropProfile:
    """Static agronomic record for one supported crop."""
    id: str
    name: str
    water_needs: str
    season: str  # a Season value or ANY_SEASON
    growth_period: str
    ph_range: PhRange
    growth_stages: Tuple[str, ...]
    varieties: Mapping[str, Variety]

    def find_variety(self, name: str) -> Optional[Variety]:
        """Case-insensitive variety lookup."""
        key = (name or "").strip().lower()
        for variety_name, variety in self.varieties.items():
            if variety_name.lower() == key:
                return variety
        return None


@dataclass(frozen=True)
class GrowthStageInfo:
    id: str
    name: str
    description: str
    duration: str
    actions: Tuple[str, str]


@dataclass(frozen=True)
class PhCategory:
    id: str
    min: float
    max: float
    description: str


@dataclass(frozen=True)
class WeatherThresholds:
    temperature_min_c: float = 10.0
    temperature_max_c: float = 35.0
    wind_warning_kmh: float = 20.0
    wind_danger_kmh: float = 40.0
    rainfall_light_mm: float = 2.5
    rainfall_moderate_mm: float = 7.5
    rainfall_heavy_mm: float = 15.0


# ─────────────────────────────────────────────────────────────────────────────
# SEASONS
# ─────────────────────────────────────────────────────────────────────────────
SEASONS: Tuple[SeasonDefinition, ...] = (
    SeasonDefinition(Season.SHORT_DRY, (1, 2), "January", "February", "Short dry season"),
    SeasonDefinition(Season.LONG_RAINS, (3, 4, 5), "March", "May", "Long rainy season"),
    SeasonDefinition(Season.LONG_DRY, (6, 7, 8, 9), "June", "September", "Long dry season"),
    SeasonDefinition(Season.SHORT_RAINS, (10, 11, 12), "October", "December", "Short rainy season"),
)

# ─────────────────────────────────────────────────────────────────────────────
# GROWTH STAGES
# ─────────────────────────────────────────────────────────────────────────────
GROWTH_STAGES: Dict[str, GrowthStageInfo] = {
    "germination": GrowthStageInfo(
        "germination", "Germination",
        "Seed sprouting and seedling emergence", "1-2 weeks",
        ("Keep the seedbed evenly moist until seedlings emerge",
         "Protect emerging seedlings from birds, cutworms and heavy downpours"),
    ),
    "vegetative": GrowthStageInfo(
        "vegetative", "Vegetative",
        "Rapid leaf and stem growth", "3-6 weeks",
        ("Top-dress with nitrogen fertilizer (urea or CAN) to support leaf growth",
         "Weed thoroughly; weeds compete hardest for nutrients at this stage"),
    ),
    "flowering": GrowthStageInfo(
        "flowering", "Flowering",
        "Flower formation and pollination", "2-3 weeks",
        ("Maintain steady soil moisture; water stress now causes flower drop",
         "Avoid spraying insecticides during the day to protect pollinators"),
    ),
    "fruiting": GrowthStageInfo(
        "fruiting", "Fruiting",
        "Grain, pod, tuber or bunch development to maturity", "3-8 weeks",
        ("Apply potassium-rich fertilizer to improve fill and quality",
         "Support heavy plants, stems or bunches to prevent lodging"),
    ),
}

# ─────────────────────────────────────────────────────────────────────────────
# SOIL pH BANDS (half-open, last band closed at 8.5)
# ─────────────────────────────────────────────────────────────────────────────
PH_CATEGORIES: Tuple[PhCategory, ...] = (
    PhCategory("strongly_acidic", 4.0, 5.0,
               "Strongly acidic soil: aluminium toxicity is likely and phosphorus is locked up"),
    PhCategory("moderately_acidic", 5.0, 5.5,
               "Moderately acidic soil: liming improves nutrient availability for most crops"),
    PhCategory("slightly_acidic", 5.5, 6.5,
               "Slightly acidic soil: ideal range for most crops grown in Rwanda"),
    PhCategory("neutral", 6.5, 7.5,
               "Neutral soil: good nutrient availability and microbial activity"),
    PhCategory("slightly_alkaline", 7.5, 8.0,
               "Slightly alkaline soil: watch for iron and zinc deficiency"),
    PhCategory("moderately_alkaline", 8.0, 8.5,
               "Moderately alkaline soil: micronutrient deficiencies are common; add organic matter"),
)

# ─────────────────────────────────────────────────────────────────────────────
# CROPS
# ─────────────────────────────────────────────────────────────────────────────


def _varieties(*items: Variety) -> Mapping[str, Variety]:
    return MappingProxyType({v.name: v for v in items})


CROPS: Dict[str, CropProfile] = {
    "maize": CropProfile(
        id="maize", name="Maize", water_needs="high",
        season=Season.LONG_RAINS.value, growth_period="90-120 days",
        ph_range=PhRange(5.5, 7.5, 6.5),
        growth_stages=GROWTH_STAGE_IDS,
        varieties=_varieties(
            Variety("ZM607", "Early-maturing open-pollinated variety for mid-altitude zones", "high"),
            Variety("RHM104", "Rwandan hybrid with high yield potential under good rainfall", "medium"),
            Variety("Pan 53", "Late-maturing hybrid for high-altitude, high-rainfall areas", "low"),
        ),
    ),
    "beans": CropProfile(
        id="beans", name="Beans", water_needs="moderate",
        season=Season.SHORT_RAINS.value, growth_period="60-90 days",
        ph_range=PhRange(6.0, 7.5, 6.5),
        growth_stages=GROWTH_STAGE_IDS,
        varieties=_varieties(
            Variety("RWR 2245", "Red-mottled bush bean with a short growing cycle", "medium"),
            Variety("MAC 44", "High-yielding climbing bean that needs staking", "low"),
            Variety("RWV 1129", "Iron-biofortified climbing bean", "medium"),
        ),
    ),
    "potatoes": CropProfile(
        id="potatoes", name="Potatoes", water_needs="moderate",
        season=Season.LONG_RAINS.value, growth_period="90-120 days",
        ph_range=PhRange(4.8, 6.5, 5.5),
        growth_stages=GROWTH_STAGE_IDS,
        varieties=_varieties(
            Variety("Kinigi", "High-yielding variety suited to volcanic highland soils", "medium"),
            Variety("Kirundo", "Late-blight tolerant variety with good storage quality", "medium"),
            Variety("Cruza", "Red-skinned variety that tolerates warmer conditions", "high"),
        ),
    ),
    "bananas": CropProfile(
        id="bananas", name="Bananas", water_needs="high",
        season=ANY_SEASON, growth_period="9-12 months",
        ph_range=PhRange(5.5, 7.0, 6.5),
        growth_stages=GROWTH_STAGE_IDS,
        varieties=_varieties(
            Variety("FHIA-17", "Disease-resistant hybrid for cooking and dessert", "medium"),
            Variety("Injagi", "East African highland cooking banana", "low"),
            Variety("Pisang Awak", "Hardy brewing banana", "high"),
        ),
    ),
}


# ─────────────────────────────────────────────────────────────────────────────
# KNOWLEDGE BASE
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class KnowledgeBase:
    """
    Read-only lookup over the agronomic tables.

    The clock is injectable so season detection can be pinned in tests.
    """
    crops: Mapping[str, CropProfile] = field(default_factory=lambda: MappingProxyType(dict(CROPS)))
    seasons: Tuple[SeasonDefinition, ...] = SEASONS
    growth_stages: Mapping[str, GrowthStageInfo] = field(
        default_factory=lambda: MappingProxyType(dict(GROWTH_STAGES)))
    ph_categories: Tuple[PhCategory, ...] = PH_CATEGORIES
    thresholds: WeatherThresholds = field(default_factory=WeatherThresholds)
    clock: Callable[[], datetime] = utc_now

    # Crops

    def supported_crops(self) -> List[str]:
        return list(self.crops.keys())

    def has_crop(self, crop_id: Optional[str]) -> bool:
        return bool(crop_id) and crop_id.lower() in self.crops

    def crop(self, crop_id: str) -> CropProfile:
        """Get a crop profile; raises UnknownCrop when absent."""
        profile = self.crops.get((crop_id or "").lower())
        if profile is None:
            raise UnknownCrop(crop_id)
        return profile

    def varieties(self, crop_id: str) -> Mapping[str, Variety]:
        return self.crop(crop_id).varieties

    def is_crop_suitable_for_season(self, crop_id: str, season: str) -> bool:
        profile = self.crop(crop_id)
        return profile.season == ANY_SEASON or profile.season == season

    # Seasons

    def season_for_month(self, month: int) -> SeasonInfo:
        for definition in self.seasons:
            if month in definition.months:
                return SeasonInfo(
                    season=definition.season.value,
                    description=f"{definition.description} - {definition.start} to {definition.end}",
                    start=definition.start,
                    end=definition.end,
                    current_month=month,
                )
        raise ValueError(f"Month out of range: {month}")

    def current_season(self) -> SeasonInfo:
        return self.season_for_month(self.clock().month)

    def season_info(self, season: str) -> SeasonInfo:
        """SeasonInfo for a season id, without a current month."""
        for definition in self.seasons:
            if definition.season.value == season:
                return SeasonInfo(
                    season=definition.season.value,
                    description=f"{definition.description} - {definition.start} to {definition.end}",
                    start=definition.start,
                    end=definition.end,
                )
        raise ValueError(f"Unknown season: {season}")

    # Soil and growth stages

    def ph_category(self, value: float) -> Optional[PhCategory]:
        last = self.ph_categories[-1] if self.ph_categories else None
        for category in self.ph_categories:
            if category.min <= value < category.max:
                return category
            if category is last and value == category.max:
                return category
        return None

    def growth_stage(self, stage_id: str) -> Optional[GrowthStageInfo]:
        return self.growth_stages.get((stage_id or "").lower())


DEFAULT_KNOWLEDGE_BASE = KnowledgeBase()
