"""
AI response parser.

Turns the free text returned by the advice generator into an Advice. Parsing
never raises on bad input; it returns a ParseOutcome carrying either the
advice or the typed parse error.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import PROMPT_VERSION
from .errors import AdviceParseError, IncompleteResponse, MalformedPayload, NoStructuredPayload
from .forecast import ForecastSummary
from .knowledge import utc_now
from .models import AdditionalParams, Advice, DiseaseRisk, ResourceNeed

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("forecast_summary", "season", "crop", "actions", "warnings", "productivity_tips")
LIST_FIELDS = ("actions", "warnings", "productivity_tips", "resources_needed", "possible_diseases")
TEXT_FIELDS = ("forecast_summary", "season", "crop", "soil_ph_analysis",
               "growth_stage_advice", "variety_specific_tips")

SOURCE_TAG = "gemini_ai"


@dataclass(frozen=True)
class ParseOutcome:
    """Either `advice` or `error` is set, never both."""
    advice: Optional[Advice] = None
    error: Optional[AdviceParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Advice:
        if self.error is not None:
            raise self.error
        return self.advice


def extract_payload(text: str) -> Dict[str, Any]:
    """Decode the span from the first `{` to the last `}`."""
    if not isinstance(text, str):
        raise NoStructuredPayload()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NoStructuredPayload()

    try:
        payload = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedPayload(f"Failed to parse AI response: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedPayload("AI response JSON is not an object")
    return payload


def missing_fields(payload: Dict[str, Any]) -> List[str]:
    """Required fields that are absent, null or an empty string."""
    return [f for f in REQUIRED_FIELDS if payload.get(f) is None or payload.get(f) == ""]


def normalize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce a decoded payload into the Advice field shapes.

    - list fields that are not lists become []
    - text fields default to "" and are stringified
    - resource/disease entries that are not objects are dropped
    - list items in the string lists are stringified
    """
    normalized = dict(payload)

    for name in LIST_FIELDS:
        if not isinstance(normalized.get(name), list):
            normalized[name] = []

    for name in TEXT_FIELDS:
        value = normalized.get(name)
        normalized[name] = "" if value is None else str(value)

    for name in ("actions", "warnings", "productivity_tips"):
        normalized[name] = [str(item) for item in normalized[name] if item is not None]

    normalized["resources_needed"] = [
        ResourceNeed.from_dict(item) for item in normalized["resources_needed"] if isinstance(item, dict)
    ]
    normalized["possible_diseases"] = [
        DiseaseRisk.from_dict(item) for item in normalized["possible_diseases"] if isinstance(item, dict)
    ]
    return normalized


class ExternalAdviceParser:
    """Parse generator output into Advice with generator metadata."""

    def __init__(self, clock: Callable = utc_now):
        self.clock = clock

    def parse(
        self,
        text: str,
        summary: ForecastSummary,
        season: str,
        crop: str,
        params: Optional[AdditionalParams] = None,
    ) -> ParseOutcome:
        params = params or AdditionalParams()
        try:
            payload = extract_payload(text)
            missing = missing_fields(payload)
            if missing:
                raise IncompleteResponse(missing)
        except AdviceParseError as e:
            log.debug(f"AI response rejected for {crop}/{season}: {e}")
            return ParseOutcome(error=e)

        data = normalize_payload(payload)
        advice = Advice(
            forecast_summary=data["forecast_summary"],
            season=data["season"],
            crop=data["crop"],
            soil_ph_analysis=data["soil_ph_analysis"],
            growth_stage_advice=data["growth_stage_advice"],
            variety_specific_tips=data["variety_specific_tips"],
            actions=data["actions"],
            resources_needed=data["resources_needed"],
            possible_diseases=data["possible_diseases"],
            warnings=data["warnings"],
            productivity_tips=data["productivity_tips"],
            metadata={
                "generated_at": self.clock().isoformat(),
                "source": SOURCE_TAG,
                "weather_data": summary.to_dict(),
                "additional_data": params.to_dict(),
                "prompt_version": PROMPT_VERSION,
            },
        )
        return ParseOutcome(advice=advice)
