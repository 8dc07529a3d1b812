"""
Advice data model shared by the rule-based advisor and the AI response parser.

Field names follow the public JSON shape of the advice endpoint.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class ResourceNeed:
    """An input the farmer has to obtain (seed, fertilizer, equipment...)."""
    resource: str
    purpose: str
    quantity: str
    cost_estimate: str
    where_to_get: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceNeed":
        return cls(**{name: str(data.get(name) or "") for name in RESOURCE_KEYS})

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in RESOURCE_KEYS}


@dataclass(frozen=True)
class DiseaseRisk:
    disease_name: str
    symptoms: str
    risk_factors: str
    prevention: str
    treatment: str
    seasonal_risk: str  # low, medium, high

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiseaseRisk":
        return cls(**{name: str(data.get(name) or "") for name in DISEASE_KEYS})

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in DISEASE_KEYS}


RESOURCE_KEYS = ("resource", "purpose", "quantity", "cost_estimate", "where_to_get")
DISEASE_KEYS = ("disease_name", "symptoms", "risk_factors", "prevention", "treatment", "seasonal_risk")


@dataclass(frozen=True)
class AdviceFragment:
    """
    Partial advice produced by one rule step.

    Fragments are concatenated in step order; narrative fields are set by at
    most one step each.
    """
    actions: tuple = ()
    resources: tuple = ()
    diseases: tuple = ()
    tips: tuple = ()
    warnings: tuple = ()
    soil_ph_analysis: str = ""
    growth_stage_advice: str = ""
    variety_specific_tips: str = ""


EMPTY_FRAGMENT = AdviceFragment()


@dataclass
class Advice:
    """Unified farming advice returned to callers."""
    forecast_summary: str
    season: str
    crop: str
    soil_ph_analysis: str = ""
    growth_stage_advice: str = ""
    variety_specific_tips: str = ""
    actions: List[str] = field(default_factory=list)
    resources_needed: List[ResourceNeed] = field(default_factory=list)
    possible_diseases: List[DiseaseRisk] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    productivity_tips: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_fragments(cls, forecast_summary: str, season: str, crop: str,
                       fragments: Iterable[AdviceFragment]) -> "Advice":
        advice = cls(forecast_summary=forecast_summary, season=season, crop=crop)
        for fragment in fragments:
            advice.actions.extend(fragment.actions)
            advice.resources_needed.extend(fragment.resources)
            advice.possible_diseases.extend(fragment.diseases)
            advice.productivity_tips.extend(fragment.tips)
            advice.warnings.extend(fragment.warnings)
            advice.soil_ph_analysis = fragment.soil_ph_analysis or advice.soil_ph_analysis
            advice.growth_stage_advice = fragment.growth_stage_advice or advice.growth_stage_advice
            advice.variety_specific_tips = fragment.variety_specific_tips or advice.variety_specific_tips
        return advice

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forecast_summary": self.forecast_summary,
            "season": self.season,
            "crop": self.crop,
            "soil_ph_analysis": self.soil_ph_analysis,
            "growth_stage_advice": self.growth_stage_advice,
            "variety_specific_tips": self.variety_specific_tips,
            "actions": list(self.actions),
            "resources_needed": [r.to_dict() for r in self.resources_needed],
            "possible_diseases": [d.to_dict() for d in self.possible_diseases],
            "warnings": list(self.warnings),
            "productivity_tips": list(self.productivity_tips),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class AdditionalParams:
    """Optional agronomic inputs; any subset may be present."""
    soil_ph: Optional[float] = None
    growth_stage: Optional[str] = None
    variety: Optional[str] = None

    def is_empty(self) -> bool:
        return self.soil_ph is None and not self.growth_stage and not self.variety

    def to_dict(self) -> Dict[str, Any]:
        """Supplied parameters only, under their request field names."""
        data = {}
        if self.soil_ph is not None:
            data["soilPh"] = self.soil_ph
        if self.growth_stage:
            data["growthState"] = self.growth_stage
        if self.variety:
            data["variety"] = self.variety
        return data
