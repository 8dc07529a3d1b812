"""
Google Gemini advice generator client.

Builds the advisory prompt from the forecast summary and request context and
returns the model's raw text. Parsing the text is left to parser.py.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import ServiceConfig
from .errors import ProviderError, ProviderErrorKind
from .forecast import ForecastSummary
from .models import AdditionalParams

log = logging.getLogger(__name__)

SERVICE = "gemini"

STATUS_KINDS = {
    401: (ProviderErrorKind.AUTH, "Invalid Gemini API key"),
    403: (ProviderErrorKind.FORBIDDEN, "Gemini API access denied"),
    429: (ProviderErrorKind.RATE_LIMIT, "Gemini API rate limit exceeded"),
}

# ─────────────────────────────────────────────────────────────────────────────
# PROMPT
# ─────────────────────────────────────────────────────────────────────────────
RESPONSE_FORMAT = """{{
  "forecast_summary": "Brief summary of weather conditions and their impact on farming",
  "season": "{season}",
  "crop": "{crop}",
  "soil_ph_analysis": "Analysis of soil pH suitability and recommendations",
  "growth_stage_advice": "Specific advice for the current growth stage",
  "variety_specific_tips": "Tips specific to the selected variety",
  "actions": [
    "Action 1: Specific, actionable step the farmer should take",
    "Action 2: Another specific step",
    "Action 3: Third specific step"
  ],
  "resources_needed": [
    {{
      "resource": "Resource name",
      "purpose": "What it's used for",
      "quantity": "Recommended amount",
      "cost_estimate": "Approximate cost in Rwandan Francs",
      "where_to_get": "Where to purchase or obtain"
    }}
  ],
  "possible_diseases": [
    {{
      "disease_name": "Common disease name",
      "symptoms": "What to look for",
      "risk_factors": "Conditions that increase risk",
      "prevention": "How to prevent it",
      "treatment": "How to treat if detected",
      "seasonal_risk": "High/Medium/Low risk during current season"
    }}
  ],
  "warnings": [
    "Warning 1: Specific risk or thing to avoid",
    "Warning 2: Another specific risk"
  ],
  "productivity_tips": [
    "Tip 1: Specific way to boost yield or productivity",
    "Tip 2: Another productivity tip"
  ]
}}"""

GUIDELINES = """IMPORTANT GUIDELINES:
1. Focus on practical, implementable advice for small-scale farmers in Rwanda
2. Consider the specific weather conditions and season
3. Provide crop-specific recommendations
4. Include safety warnings for extreme weather
5. Suggest productivity improvements based on current conditions
6. Keep all advice realistic and achievable
7. Consider water management, pest control, and crop protection
8. If soil pH is provided, analyze its suitability for the crop and provide specific recommendations
9. If growth stage is specified, provide stage-specific care instructions
10. If variety is specified, consider variety-specific characteristics and needs
11. For resources needed, include common farming tools, fertilizers, pesticides, and materials
12. For diseases, focus on common diseases in Rwanda that affect the specific crop
13. Consider seasonal disease risks (e.g., fungal diseases during rainy seasons)
14. Include cost estimates in Rwandan Francs (RWF) for resources
15. Suggest local sources for obtaining resources
16. Return ONLY valid JSON, no additional text or explanations"""


def build_prompt(
    summary: ForecastSummary,
    season: str,
    crop: str,
    params: Optional[AdditionalParams] = None,
) -> str:
    params = params or AdditionalParams()
    extra = ""
    if params.soil_ph is not None:
        extra += f"\nSOIL pH: {params.soil_ph}"
    if params.growth_stage:
        extra += f"\nGROWTH STAGE: {params.growth_stage}"
    if params.variety:
        extra += f"\nVARIETY: {params.variety}"

    loc = summary.location
    return (
        "You are an expert agricultural advisor specializing in Rwanda's farming conditions.\n\n"
        "Based on the following information, provide specific, actionable farming advice:\n\n"
        f"LOCATION: {loc.name} ({loc.lat}, {loc.lon})\n"
        f"CURRENT SEASON: {season}\n"
        f"CROP: {crop}{extra}\n\n"
        "WEATHER FORECAST (Next 48 hours):\n"
        f"- Total Rainfall: {summary.total_rainfall}mm\n"
        f"- Temperature Range: {summary.min_temperature}°C to {summary.max_temperature}°C\n"
        f"- Maximum Wind Speed: {summary.max_wind_speed} km/h\n"
        f"- Rain Periods: {summary.rain_hours} hours\n"
        f"- Heavy Rain Periods: {summary.heavy_rain_hours} hours\n"
        f"- Windy Periods: {summary.wind_hours} hours\n\n"
        "Please provide farming advice in the following JSON format ONLY (no other text):\n\n"
        f"{RESPONSE_FORMAT.format(season=season, crop=crop)}\n\n"
        f"{GUIDELINES}"
    )


# ─────────────────────────────────────────────────────────────────────────────
# CLIENT
# ─────────────────────────────────────────────────────────────────────────────

class GeminiClient:
    """
    Async client for the Gemini generateContent endpoint.

    `transport` lets tests plug in an httpx.MockTransport.
    """

    def __init__(self, config: Optional[ServiceConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        config = config or ServiceConfig()
        self.api_key = config.gemini_api_key
        self.base_url = config.gemini_base_url
        self.timeout = config.advice_timeout_s
        self._transport = transport

        if not self.api_key:
            log.warning("Gemini API key not provided. AI-powered advice will not be available.")

    async def generate(self, prompt: str) -> str:
        """
        Send a prompt and return the generated text.

        Raises:
            ProviderError: not configured, HTTP error, timeout or unexpected body
        """
        if not self.api_key:
            raise ProviderError(ProviderErrorKind.NOT_CONFIGURED, "Gemini API key not configured", SERVICE)

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(ProviderErrorKind.TIMEOUT, "Gemini API request timeout", SERVICE) from e
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e
        except httpx.RequestError as e:
            raise ProviderError(ProviderErrorKind.CONNECTION, f"Gemini service error: {e}", SERVICE) from e
        except ValueError as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE,
                                "Gemini returned a non-JSON body", SERVICE) from e

        text = _candidate_text(data)
        if not isinstance(text, str) or not text.strip():
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE,
                                "Invalid response format from Gemini API", SERVICE)
        return text

    def _status_error(self, response: httpx.Response) -> ProviderError:
        status = response.status_code
        if status == 400:
            kind = ProviderErrorKind.BAD_REQUEST
            message = f"Gemini API request error: {_error_message(response)}"
        elif status in STATUS_KINDS:
            kind, message = STATUS_KINDS[status]
        elif status >= 500:
            kind, message = ProviderErrorKind.SERVER, "Gemini API server error"
        else:
            kind = ProviderErrorKind.UNKNOWN
            message = f"Gemini API error: {_error_message(response)}"
        log.error(f"Gemini API error: {status} - {message}")
        return ProviderError(kind, message, SERVICE, status)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_status(self) -> Dict[str, Any]:
        return {
            "available": self.is_available(),
            "base_url": self.base_url,
            "has_api_key": bool(self.api_key),
        }


def _candidate_text(data: Any) -> Optional[str]:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Unknown error"
