"""
Rule-Based Advisor

Deterministic farming advice built from the agronomic knowledge base and a
forecast summary. Used directly for basic advice and as the fallback when
the AI generator is disabled or fails.

Each rule step is a pure function returning an AdviceFragment; the advisor
concatenates them in a fixed order:

    1. soil pH          4. season block
    2. growth stage     5. weather block
    3. variety          6. crop block
                        7. forecast warnings
"""

import logging
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_LAT, DEFAULT_LOCATION_NAME, DEFAULT_LON
from .forecast import ForecastSummary, Location, forecast_narrative, neutral_forecast_summary
from .knowledge import (
    DEFAULT_KNOWLEDGE_BASE, CropProfile, KnowledgeBase, Season, WeatherThresholds,
)
from .models import AdditionalParams, Advice, AdviceFragment, DiseaseRisk, EMPTY_FRAGMENT, ResourceNeed

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# SEASON RULES
# ─────────────────────────────────────────────────────────────────────────────
SEASON_ACTIONS: Dict[str, Tuple[str, str, str]] = {
    Season.SHORT_DRY.value: (
        "Prepare irrigation systems for water-dependent crops",
        "Apply mulch to retain soil moisture",
        "Consider drought-resistant crop varieties",
    ),
    Season.LONG_RAINS.value: (
        "Ensure proper drainage systems are in place",
        "Plant crops that thrive in wet conditions",
        "Monitor for fungal diseases due to high humidity",
    ),
    Season.LONG_DRY.value: (
        "Implement water conservation techniques",
        "Use shade nets for sensitive crops",
        "Focus on drought-tolerant crops",
    ),
    Season.SHORT_RAINS.value: (
        "Take advantage of moisture for planting",
        "Prepare for the upcoming dry season",
        "Harvest crops before heavy rains",
    ),
}

SEASON_RESOURCES: Dict[str, Tuple[ResourceNeed, ResourceNeed]] = {
    Season.SHORT_DRY.value: (
        ResourceNeed("Drip irrigation kit", "Deliver water efficiently during the dry spell",
                     "1 kit per 500 m²", "RWF 50,000-150,000", "Agro-dealers and irrigation suppliers"),
        ResourceNeed("Mulching material (dry grass or crop residue)", "Retain soil moisture and suppress weeds",
                     "5-10 tonnes per hectare", "RWF 0-20,000 (often available on-farm)",
                     "On-farm residues or neighbouring farms"),
    ),
    Season.LONG_RAINS.value: (
        ResourceNeed("Hand hoe and spade", "Dig and maintain drainage channels",
                     "1 set per household", "RWF 5,000-10,000", "Local markets and hardware shops"),
        ResourceNeed("Copper-based fungicide", "Prevent fungal diseases in humid conditions",
                     "2-3 kg per hectare per application", "RWF 8,000-15,000 per kg", "Agro-dealers"),
    ),
    Season.LONG_DRY.value: (
        ResourceNeed("Water storage tank", "Store water for irrigation through the long dry season",
                     "1 tank (1,000-5,000 litres)", "RWF 100,000-400,000", "Hardware stores"),
        ResourceNeed("Shade net (30-50%)", "Protect sensitive crops from heat stress",
                     "As needed for nursery and vegetable beds", "RWF 1,500-3,000 per m²",
                     "Agro-dealers and horticulture suppliers"),
    ),
    Season.SHORT_RAINS.value: (
        ResourceNeed("Certified seed", "Plant at the onset of the short rains",
                     "Depends on crop and area", "RWF 1,000-5,000 per kg",
                     "Agro-dealers and RAB seed outlets"),
        ResourceNeed("Tarpaulin", "Dry harvested produce off the ground before the rains",
                     "1-2 per household", "RWF 15,000-30,000", "Local markets"),
    ),
}


# ─────────────────────────────────────────────────────────────────────────────
# WEATHER RULES
# ─────────────────────────────────────────────────────────────────────────────
NO_RAIN_ACTIONS = (
    "Schedule irrigation for water-dependent crops",
    "Check soil moisture levels regularly",
)
NO_RAIN_RESOURCE = ResourceNeed(
    "Watering can or irrigation pump", "Supplement water while no rain is expected",
    "1 per plot", "RWF 5,000-80,000", "Hardware stores and agro-dealers",
)
HEAVY_RAIN_ACTIONS = (
    "Secure any loose structures or equipment",
    "Ensure drainage channels are clear",
)
HEAVY_RAIN_RESOURCE = ResourceNeed(
    "Sandbags", "Divert runoff and protect beds from erosion",
    "10-20 bags", "RWF 500-1,000 per bag", "Hardware stores",
)
WIND_ACTIONS = (
    "Provide wind protection for tall crops",
    "Secure trellises and support structures",
)
WIND_RESOURCE = ResourceNeed(
    "Stakes and twine", "Support tall plants against strong wind",
    "As needed", "RWF 2,000-10,000", "Local markets",
)


# ─────────────────────────────────────────────────────────────────────────────
# CROP RULES
# ─────────────────────────────────────────────────────────────────────────────
# Disease templates: (name, symptoms, risk factors, prevention, treatment, risk by season)
_DiseaseTemplate = Tuple[str, str, str, str, str, Dict[str, str]]

CROP_RULES: Dict[str, Dict] = {
    "maize": {
        "tips": (
            "Plant in rows with proper spacing (75cm between rows)",
            "Apply nitrogen fertilizer in split applications",
            "Control weeds early in the growing season",
        ),
        "resources": (
            ResourceNeed("NPK 17-17-17 fertilizer", "Basal fertilizer at planting",
                         "100-150 kg per hectare", "RWF 900-1,200 per kg", "Agro-dealers"),
            ResourceNeed("Urea (46% N)", "Top-dressing at knee height",
                         "50-100 kg per hectare", "RWF 800-1,000 per kg", "Agro-dealers"),
        ),
        "diseases": (
            ("Maize Lethal Necrosis (MLN)",
             "Yellowing from leaf margins, dead heart, poorly filled cobs",
             "Thrips and aphid vectors, continuous maize cropping, dry conditions",
             "Use certified seed, rotate with legumes, control insect vectors",
             "Uproot and destroy infected plants; no chemical cure",
             {"shortDry": "high", "longRains": "medium", "longDry": "high", "shortRains": "medium"}),
            ("Northern Leaf Blight",
             "Long grey-green cigar-shaped lesions on leaves",
             "Prolonged leaf wetness, moderate temperatures, infected residue",
             "Plant tolerant varieties, bury or remove crop residue",
             "Apply a recommended fungicide at first symptoms",
             {"shortDry": "low", "longRains": "high", "longDry": "low", "shortRains": "high"}),
        ),
    },
    "beans": {
        "tips": (
            "Use trellises for climbing varieties",
            "Plant in well-drained soil with good organic matter",
            "Harvest pods when they are young and tender",
        ),
        "resources": (
            ResourceNeed("DAP fertilizer", "Phosphorus for root and nodule development",
                         "50-100 kg per hectare", "RWF 900-1,100 per kg", "Agro-dealers"),
            ResourceNeed("Staking poles", "Support climbing bean varieties",
                         "20,000-40,000 per hectare", "RWF 20-50 per pole", "Local markets and woodlots"),
        ),
        "diseases": (
            ("Angular Leaf Spot",
             "Angular brown spots bounded by leaf veins, premature defoliation",
             "Warm humid weather, infected seed, splashing rain",
             "Use clean seed, rotate crops, avoid working in wet fields",
             "Apply copper-based fungicide",
             {"shortDry": "low", "longRains": "high", "longDry": "low", "shortRains": "high"}),
            ("Bean Root Rot",
             "Yellowing, wilting, reddish-brown lesions on roots and lower stem",
             "Waterlogged soils, low soil fertility, continuous bean cropping",
             "Plant on raised beds, add organic matter, use tolerant varieties",
             "Improve drainage; remove and destroy badly affected plants",
             {"shortDry": "low", "longRains": "high", "longDry": "low", "shortRains": "medium"}),
        ),
    },
    "potatoes": {
        "tips": (
            "Plant in loose, well-drained soil",
            "Hill soil around plants as they grow",
            "Control potato beetles and other pests",
        ),
        "resources": (
            ResourceNeed("Certified seed potatoes", "Disease-free planting material",
                         "1.5-2 tonnes per hectare", "RWF 300-500 per kg", "RAB seed multipliers and cooperatives"),
            ResourceNeed("Mancozeb fungicide", "Protect foliage against late blight",
                         "2-2.5 kg per hectare per spray", "RWF 5,000-8,000 per kg", "Agro-dealers"),
        ),
        "diseases": (
            ("Late Blight",
             "Dark water-soaked lesions on leaves with white mould underneath, rotting tubers",
             "Cool wet weather, high humidity, infected seed tubers",
             "Plant tolerant varieties, spray protectively, hill well to cover tubers",
             "Apply systemic fungicide and remove infected foliage",
             {"shortDry": "low", "longRains": "high", "longDry": "low", "shortRains": "high"}),
            ("Bacterial Wilt",
             "Sudden wilting of green plants, bacterial ooze from cut tubers",
             "Infected seed, contaminated soil and tools, warm soil temperatures",
             "Use certified seed, rotate for at least three seasons, clean tools",
             "Uproot and destroy infected plants; no chemical cure",
             {"shortDry": "medium", "longRains": "medium", "longDry": "high", "shortRains": "medium"}),
        ),
    },
    "bananas": {
        "tips": (
            "Provide regular watering and fertilization",
            "Remove suckers to maintain single stem",
            "Support heavy bunches with props",
        ),
        "resources": (
            ResourceNeed("Well-rotted manure", "Improve soil fertility and moisture retention",
                         "20-30 kg per mat per year", "RWF 5,000-10,000 per tonne", "On-farm or neighbouring livestock farms"),
            ResourceNeed("Banana props", "Support plants carrying heavy bunches",
                         "1 per bunching plant", "RWF 200-500 per prop", "Local markets and woodlots"),
        ),
        "diseases": (
            ("Banana Xanthomonas Wilt (BXW)",
             "Yellowing and wilting leaves, premature fruit ripening, yellow ooze from cut stems",
             "Insect transmission through male flowers, contaminated tools",
             "Remove male buds with a forked stick, disinfect tools",
             "Uproot and destroy infected mats; no chemical cure",
             {"shortDry": "medium", "longRains": "high", "longDry": "medium", "shortRains": "high"}),
            ("Fusarium Wilt (Panama Disease)",
             "Yellowing of older leaves, splitting pseudostem, brown vascular discolouration",
             "Soil-borne fungus spread by infected suckers and poorly drained soils",
             "Plant clean suckers, use resistant varieties",
             "Remove infected plants; do not replant susceptible varieties on the site",
             {"shortDry": "medium", "longRains": "medium", "longDry": "high", "shortRains": "medium"}),
        ),
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# RULE STEPS
# ─────────────────────────────────────────────────────────────────────────────

def soil_ph_step(profile: CropProfile, kb: KnowledgeBase, soil_ph: Optional[float]) -> AdviceFragment:
    if soil_ph is None:
        return EMPTY_FRAGMENT

    ph_range = profile.ph_range
    range_text = f"{ph_range.min}-{ph_range.max}"
    actions, tips, warnings = [], [], []

    if soil_ph < ph_range.min:
        warnings.append(
            f"Soil pH {soil_ph} is too acidic for {profile.name} (suitable range {range_text})."
        )
        actions.append(f"Apply agricultural lime to raise soil pH towards {ph_range.optimal}")
        narrative = (
            f"Soil pH {soil_ph} is below the suitable range for {profile.name} ({range_text}, "
            f"optimal {ph_range.optimal}). Raise the pH by applying agricultural lime before planting."
        )
    elif soil_ph > ph_range.max:
        warnings.append(
            f"Soil pH {soil_ph} is too alkaline for {profile.name} (suitable range {range_text})."
        )
        actions.append(
            f"Apply elemental sulfur or well-rotted organic matter to lower soil pH towards {ph_range.optimal}"
        )
        narrative = (
            f"Soil pH {soil_ph} is above the suitable range for {profile.name} ({range_text}, "
            f"optimal {ph_range.optimal}). Lower the pH with sulfur or organic matter."
        )
    else:
        tips.append(f"Soil pH {soil_ph} is suitable for {profile.name}; maintain it with regular organic matter")
        narrative = (
            f"Soil pH {soil_ph} is suitable for {profile.name} "
            f"(range {range_text}, optimal {ph_range.optimal})."
        )

    category = kb.ph_category(soil_ph)
    if category is not None:
        tips.append(category.description)

    return AdviceFragment(
        actions=tuple(actions), tips=tuple(tips), warnings=tuple(warnings),
        soil_ph_analysis=narrative,
    )


def growth_stage_step(profile: CropProfile, kb: KnowledgeBase, stage_id: Optional[str]) -> AdviceFragment:
    if not stage_id:
        return EMPTY_FRAGMENT
    stage = kb.growth_stage(stage_id)
    if stage is None:
        return EMPTY_FRAGMENT

    return AdviceFragment(
        actions=stage.actions,
        tips=(f"{stage.name} stage: {stage.description} (typically {stage.duration})",),
        growth_stage_advice=(
            f"{profile.name} at the {stage.name.lower()} stage: {stage.description.lower()}. "
            f"This stage typically lasts {stage.duration}."
        ),
    )


def variety_step(profile: CropProfile, variety_name: Optional[str], summary: ForecastSummary) -> AdviceFragment:
    if not variety_name:
        return EMPTY_FRAGMENT

    variety = profile.find_variety(variety_name)
    if variety is None:
        known = ", ".join(profile.varieties.keys())
        return AdviceFragment(
            variety_specific_tips=(
                f"Variety '{variety_name}' is not recognized for {profile.name}. Known varieties: {known}."
            ),
        )

    actions, warnings = [], []
    if variety.drought_resistance == "low" and summary.total_rainfall == 0:
        warnings.append(
            f"{variety.name} has low drought resistance and no rain is expected. "
            "Monitor soil moisture closely."
        )
        actions.append(f"Irrigate {variety.name} plots early in the morning to prevent drought stress")

    return AdviceFragment(
        actions=tuple(actions),
        tips=(
            f"{variety.name}: {variety.description}",
            f"{variety.name} has {variety.drought_resistance} drought resistance",
        ),
        warnings=tuple(warnings),
        variety_specific_tips=(
            f"{variety.name} ({profile.name}): {variety.description}. "
            f"Drought resistance: {variety.drought_resistance}."
        ),
    )


def season_step(season: str) -> AdviceFragment:
    if season not in SEASON_ACTIONS:
        return EMPTY_FRAGMENT
    return AdviceFragment(actions=SEASON_ACTIONS[season], resources=SEASON_RESOURCES[season])


def weather_step(summary: ForecastSummary, thresholds: WeatherThresholds) -> AdviceFragment:
    actions: List[str] = []
    resources: List[ResourceNeed] = []

    if summary.total_rainfall == 0:
        actions.extend(NO_RAIN_ACTIONS)
        resources.append(NO_RAIN_RESOURCE)

    if summary.heavy_rain_hours > 0:
        actions.extend(HEAVY_RAIN_ACTIONS)
        resources.append(HEAVY_RAIN_RESOURCE)

    if summary.max_wind_speed >= thresholds.wind_warning_kmh:
        actions.extend(WIND_ACTIONS)
        resources.append(WIND_RESOURCE)

    return AdviceFragment(actions=tuple(actions), resources=tuple(resources))


def _disease(template: _DiseaseTemplate, season: str) -> DiseaseRisk:
    name, symptoms, risk_factors, prevention, treatment, risk_by_season = template
    return DiseaseRisk(
        disease_name=name,
        symptoms=symptoms,
        risk_factors=risk_factors,
        prevention=prevention,
        treatment=treatment,
        seasonal_risk=risk_by_season.get(season, "low"),
    )


def crop_step(profile: CropProfile, season: str) -> AdviceFragment:
    rules = CROP_RULES.get(profile.id)
    if rules is None:
        return EMPTY_FRAGMENT
    return AdviceFragment(
        tips=rules["tips"],
        resources=rules["resources"],
        diseases=tuple(_disease(t, season) for t in rules["diseases"]),
    )


def forecast_warnings_step(summary: ForecastSummary) -> AdviceFragment:
    return AdviceFragment(warnings=tuple(summary.warnings))


# ─────────────────────────────────────────────────────────────────────────────
# ADVISOR
# ─────────────────────────────────────────────────────────────────────────────

class RuleBasedAdvisor:
    """Deterministic advisor over a knowledge base."""

    def __init__(self, knowledge_base: KnowledgeBase = DEFAULT_KNOWLEDGE_BASE):
        self.kb = knowledge_base

    def advise(
        self,
        crop: str,
        summary: ForecastSummary,
        season: Optional[str] = None,
        params: Optional[AdditionalParams] = None,
    ) -> Advice:
        """
        Build advice for a crop.

        Args:
            crop: Crop id (case-insensitive)
            summary: Forecast summary, warnings already attached
            season: Season id; defaults to the knowledge base's current season
            params: Optional soil pH / growth stage / variety

        Raises:
            UnknownCrop: crop has no profile
        """
        profile = self.kb.crop(crop)
        season = getattr(season, "value", season) or self.kb.current_season().season
        params = params or AdditionalParams()

        fragments = (
            soil_ph_step(profile, self.kb, params.soil_ph),
            growth_stage_step(profile, self.kb, params.growth_stage),
            variety_step(profile, params.variety, summary),
            season_step(season),
            weather_step(summary, self.kb.thresholds),
            crop_step(profile, season),
            forecast_warnings_step(summary),
        )
        advice = Advice.from_fragments(forecast_narrative(summary), season, profile.id, fragments)
        log.debug(
            f"Rule-based advice for {profile.id}/{season}: "
            f"{len(advice.actions)} actions, {len(advice.warnings)} warnings"
        )
        return advice

    def basic_advice(self, crop: str, season: Optional[str] = None,
                     location: Optional[Location] = None) -> Advice:
        """Advice against typical conditions at `location` (default Kigali); no network."""
        location = location or Location(DEFAULT_LAT, DEFAULT_LON, DEFAULT_LOCATION_NAME)
        summary = neutral_forecast_summary(location.lat, location.lon, location.name)
        return self.advise(crop, summary, season=season)
