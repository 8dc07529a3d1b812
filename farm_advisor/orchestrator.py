"""
Advice Orchestrator

Top-level policy for one advice request:

    1. Resolve coordinates (default: Kigali)
    2. Validate crop
    3. Validate optional soil pH / growth stage / variety
    4. Detect season
    5. Fetch + summarize forecast (neutral summary on any failure)
    6. Attach weather warnings
    7. Choose AI generator or rule-based advisor
    8. AI path: prompt -> generate -> parse, rule-based fallback on any failure
    9. Prepend forecast warnings to AI warnings
    10. Stamp metadata

Only request-validation failures reach the caller, wrapped in
AdviceGenerationError. Forecast and generator failures are absorbed into
ForecastOutcome / AdviceOutcome and logged.

Usage:
    from farm_advisor.orchestrator import AdviceOrchestrator, AdviceRequest

    orchestrator = AdviceOrchestrator()
    advice = await orchestrator.generate_advice(AdviceRequest(crop="maize"))
    print(advice.to_dict())
"""

import asyncio
import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Dict, List, Optional, Tuple

from .advisor import RuleBasedAdvisor
from .config import API_VERSION, DEFAULT_LOCATION_NAME, ServiceConfig
from .errors import (
    AdviceGenerationError, AdviceRequestError, InvalidCoordinates, InvalidForecastData,
    InvalidParameter, ProviderError, UnknownCrop, UnsupportedCrop,
)
from .forecast import (
    ForecastSummary, Location, generate_weather_warnings, neutral_forecast_summary,
    parse_forecast_payload, summarize_forecast,
)
from .gemini import GeminiClient, build_prompt
from .knowledge import DEFAULT_KNOWLEDGE_BASE, GROWTH_STAGE_IDS, KnowledgeBase, SeasonInfo, utc_now
from .models import AdditionalParams, Advice
from .parser import ExternalAdviceParser
from .weather import OpenWeatherClient

log = logging.getLogger(__name__)

AI_SOURCE = "gemini_ai"
BASIC_SOURCE = "basic_seasonal"

SOIL_PH_MIN = 4.0
SOIL_PH_MAX = 8.5


@dataclass
class AdviceRequest:
    crop: Optional[str]
    lat: Optional[float] = None
    lon: Optional[float] = None
    soil_ph: Optional[float] = None
    growth_stage: Optional[str] = None
    variety: Optional[str] = None
    use_ai: Optional[bool] = None


@dataclass(frozen=True)
class ForecastOutcome:
    """Live forecast summary, or the neutral one with the reason it was used."""
    summary: ForecastSummary
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None


@dataclass(frozen=True)
class AdviceOutcome:
    """Advice plus the path that produced it."""
    advice: Advice
    source: str
    fallback_reason: Optional[str] = None


class AdviceOrchestrator:
    """Coordinates forecast retrieval, advisors and metadata for advice requests."""

    def __init__(
        self,
        knowledge_base: KnowledgeBase = DEFAULT_KNOWLEDGE_BASE,
        weather_client: Optional[OpenWeatherClient] = None,
        gemini_client: Optional[GeminiClient] = None,
        parser: Optional[ExternalAdviceParser] = None,
        config: Optional[ServiceConfig] = None,
        clock: Callable = utc_now,
    ):
        self.config = config or ServiceConfig()
        self.kb = knowledge_base
        self.weather = weather_client or OpenWeatherClient(self.config)
        self.gemini = gemini_client or GeminiClient(self.config)
        self.parser = parser or ExternalAdviceParser(clock)
        self.advisor = RuleBasedAdvisor(knowledge_base)
        self.clock = clock

        missing = self.config.missing_keys()
        if missing:
            log.warning(f"Missing API keys: {', '.join(missing)}. Running with reduced functionality.")

    # ── Validation ──────────────────────────────────────────────────────────

    def resolve_coordinates(self, lat: Optional[float], lon: Optional[float]) -> Tuple[float, float]:
        if lat is None and lon is None:
            return self.config.default_lat, self.config.default_lon
        if lat is None or lon is None:
            raise InvalidCoordinates("Both latitude and longitude must be provided")
        if not (_is_number(lat) and _is_number(lon)):
            raise InvalidCoordinates("Latitude and longitude must be numbers")
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            raise InvalidCoordinates()
        return lat, lon

    def resolve_crop(self, crop: Optional[str]) -> str:
        if crop is None or crop == "":
            raise UnsupportedCrop(None)
        if not isinstance(crop, str):
            raise UnsupportedCrop(repr(crop), self.kb.supported_crops())
        crop_id = crop.strip().lower()
        if not self.kb.has_crop(crop_id):
            raise UnsupportedCrop(crop_id, self.kb.supported_crops())
        return crop_id

    def validate_params(self, request: AdviceRequest) -> AdditionalParams:
        soil_ph = request.soil_ph
        if soil_ph is not None:
            if not _is_number(soil_ph) or not SOIL_PH_MIN <= soil_ph <= SOIL_PH_MAX:
                raise InvalidParameter("soilPh", "Soil pH must be between 4.0 and 8.5", soil_ph)

        stage = request.growth_stage
        if stage is not None:
            if not isinstance(stage, str) or stage.lower() not in GROWTH_STAGE_IDS:
                raise InvalidParameter(
                    "growthState",
                    f"Growth state must be one of: {', '.join(GROWTH_STAGE_IDS)}",
                    stage,
                )
            stage = stage.lower()

        variety = request.variety
        if variety is not None:
            if not isinstance(variety, str) or not variety.strip():
                raise InvalidParameter("variety", "Variety must be a non-empty string", variety)
            variety = variety.strip()

        return AdditionalParams(soil_ph=soil_ph, growth_stage=stage, variety=variety)

    # ── Forecast ────────────────────────────────────────────────────────────

    async def fetch_forecast(self, lat: float, lon: float) -> ForecastOutcome:
        try:
            raw = await asyncio.to_thread(self.weather.get_forecast, lat, lon)
            payload = parse_forecast_payload(raw)
            summary = summarize_forecast(payload, self.config.forecast_horizon, self.kb.thresholds)
        except (ProviderError, InvalidForecastData) as e:
            log.warning(f"Weather service error: {e}. Using neutral forecast.")
            return ForecastOutcome(neutral_forecast_summary(lat, lon), degraded_reason=str(e))
        except Exception as e:
            reason = f"Unexpected forecast failure: {e!r}"
            log.exception(f"{reason}. Using neutral forecast.")
            return ForecastOutcome(neutral_forecast_summary(lat, lon), degraded_reason=reason)
        return ForecastOutcome(summary)

    # ── Advice ──────────────────────────────────────────────────────────────

    async def produce_advice(
        self,
        crop: str,
        season: str,
        summary: ForecastSummary,
        params: AdditionalParams,
        use_ai: bool,
    ) -> AdviceOutcome:
        if not use_ai:
            return AdviceOutcome(self.advisor.advise(crop, summary, season, params), BASIC_SOURCE)

        try:
            text = await self.gemini.generate(build_prompt(summary, season, crop, params))
            outcome = self.parser.parse(text, summary, season, crop, params)
        except ProviderError as e:
            return self._fallback(crop, season, summary, params, f"AI service error: {e}")
        except Exception as e:
            log.exception(f"Unexpected AI path failure for {crop}")
            return self._fallback(crop, season, summary, params, f"Unexpected AI failure: {e!r}")

        if not outcome.ok:
            return self._fallback(crop, season, summary, params, f"Failed to parse AI response: {outcome.error}")

        advice = outcome.advice
        advice.warnings = list(summary.warnings) + advice.warnings
        return AdviceOutcome(advice, AI_SOURCE)

    def _fallback(self, crop, season, summary, params, reason: str) -> AdviceOutcome:
        log.warning(f"{reason}. Falling back to rule-based advice.")
        advice = self.advisor.advise(crop, summary, season, params)
        return AdviceOutcome(advice, BASIC_SOURCE, fallback_reason=reason)

    async def generate_advice(self, request: AdviceRequest) -> Advice:
        """
        Generate advice for one request.

        Raises:
            AdviceGenerationError: the request was rejected; `.cause` holds
                the original validation error
        """
        try:
            lat, lon = self.resolve_coordinates(request.lat, request.lon)
            crop = self.resolve_crop(request.crop)
            params = self.validate_params(request)
        except AdviceRequestError as e:
            log.info(f"Rejected advice request: {e}")
            raise AdviceGenerationError(e) from e

        season_info = self.kb.current_season()
        log.info(f"Generating advice for {crop} at ({lat}, {lon}), season {season_info.season}")

        forecast = await self.fetch_forecast(lat, lon)
        summary = forecast.summary
        summary.attach_warnings(generate_weather_warnings(summary, self.kb.thresholds))

        use_ai = request.use_ai is not False and self.gemini.is_available()
        try:
            outcome = await self.produce_advice(crop, season_info.season, summary, params, use_ai)
        except UnknownCrop as e:
            raise AdviceGenerationError(e) from e

        advice = outcome.advice
        advice.metadata = {
            **advice.metadata,
            "generated_at": self.clock().isoformat(),
            "location": {"lat": lat, "lon": lon},
            "season_info": season_info.to_dict(),
            "weather_service_available": self.weather.is_available() and not forecast.degraded,
            "ai_service_available": self.gemini.is_available(),
            "advice_source": outcome.source,
            "additional_params": params.to_dict(),
            "api_version": API_VERSION,
        }
        log.info(f"Advice for {crop} produced by {outcome.source}")
        return advice

    # ── Lookups ─────────────────────────────────────────────────────────────

    def available_crops(self) -> List[str]:
        return self.kb.supported_crops()

    def current_season(self) -> SeasonInfo:
        return self.kb.current_season()

    def service_status(self) -> Dict[str, Any]:
        return {
            "weather": self.weather.get_status(),
            "gemini": self.gemini.get_status(),
            "advice": {"available": True, "version": API_VERSION},
        }

    def basic_advice(self, crop: str) -> Advice:
        """Rule-based advice against typical conditions; no network calls."""
        crop_id = self.resolve_crop(crop)
        location = Location(self.config.default_lat, self.config.default_lon, DEFAULT_LOCATION_NAME)
        advice = self.advisor.basic_advice(crop_id, location=location)
        advice.metadata = {
            "generated_at": self.clock().isoformat(),
            "location": location.to_dict(),
            "advice_source": BASIC_SOURCE,
            "api_version": API_VERSION,
        }
        return advice

    def crop_varieties(self, crop: str) -> Dict[str, Dict[str, str]]:
        crop_id = self.resolve_crop(crop)
        return {
            name: {"description": v.description, "drought_resistance": v.drought_resistance}
            for name, v in self.kb.varieties(crop_id).items()
        }

    def growth_stages(self) -> List[Dict[str, str]]:
        stages = []
        for stage_id in GROWTH_STAGE_IDS:
            info = self.kb.growth_stage(stage_id)
            if info is not None:
                stages.append({
                    "id": info.id,
                    "name": info.name,
                    "description": info.description,
                    "duration": info.duration,
                })
        return stages



def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)

# Global instance (lazy initialization)
_orchestrator: Optional[AdviceOrchestrator] = None


def get_orchestrator() -> AdviceOrchestrator:
    """Get or create the shared orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AdviceOrchestrator()
    return _orchestrator
