"""
Forecast summarization - reduces the provider's 3-hourly forecast into
fixed 48-hour aggregates and farmer-facing weather warnings.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import pandas as pd

from .errors import InvalidForecastData
from .knowledge import WeatherThresholds

log = logging.getLogger(__name__)

KELVIN_OFFSET = 273.15
MS_TO_KMH = 3.6
DEFAULT_HORIZON = 16  # 48 hours of 3-hour intervals
FORECAST_PERIOD = "48 hours"

UNKNOWN_CONDITION = "unknown"

# Wrong nesting or non-numeric values in provider JSON
SHAPE_ERRORS = (AttributeError, KeyError, TypeError, ValueError, OverflowError, OSError)


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float
    name: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "name": self.name}


@dataclass(frozen=True)
class ForecastPoint:
    """One 3-hour forecast interval as delivered by the provider."""
    timestamp: Optional[datetime]
    temperature_k: float
    precipitation_mm: Optional[float] = None
    wind_speed_ms: Optional[float] = None
    conditions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ForecastPayload:
    points: Tuple[ForecastPoint, ...]
    location: Optional[Location]


@dataclass
class ForecastSummary:
    """
    Fixed-horizon forecast aggregates.

    `warnings` starts empty and is filled once via attach_warnings().
    """
    total_rainfall: float
    max_temperature: float
    min_temperature: float
    max_wind_speed: int
    rain_hours: int
    heavy_rain_hours: int
    wind_hours: int
    conditions: FrozenSet[str]
    location: Location
    forecast_period: str = FORECAST_PERIOD
    warnings: List[str] = field(default_factory=list)
    _warnings_attached: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.conditions = frozenset(self.conditions)
        for name in ("total_rainfall", "max_wind_speed", "rain_hours", "heavy_rain_hours", "wind_hours"):
            if getattr(self, name) < 0:
                raise InvalidForecastData(f"{name} must be non-negative")

    @property
    def is_degraded(self) -> bool:
        return UNKNOWN_CONDITION in self.conditions

    def attach_warnings(self, warnings: List[str]) -> None:
        if self._warnings_attached:
            raise RuntimeError("Warnings already attached to this forecast summary")
        self.warnings = list(warnings)
        self._warnings_attached = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rainfall": self.total_rainfall,
            "max_temperature": self.max_temperature,
            "min_temperature": self.min_temperature,
            "max_wind_speed": self.max_wind_speed,
            "rain_hours": self.rain_hours,
            "heavy_rain_hours": self.heavy_rain_hours,
            "wind_hours": self.wind_hours,
            "conditions": sorted(self.conditions),
            "forecast_period": self.forecast_period,
            "location": self.location.to_dict(),
            "warnings": list(self.warnings),
        }


# ─────────────────────────────────────────────────────────────────────────────
# PAYLOAD PARSING
# ─────────────────────────────────────────────────────────────────────────────

def parse_forecast_payload(raw: Any) -> ForecastPayload:
    """
    Convert an OpenWeather /forecast JSON body into a ForecastPayload.

    Expects `list[]` entries of `{dt, main:{temp}, rain:{"3h"}, wind:{speed},
    weather:[{main}]}` in Kelvin and m/s, plus a `city` block.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("list"), list):
        raise InvalidForecastData("Invalid forecast data received")

    points = []
    for index, entry in enumerate(raw["list"]):
        try:
            points.append(_parse_point(entry))
        except SHAPE_ERRORS as e:
            raise InvalidForecastData(f"Malformed forecast entry {index}: {e}") from e

    try:
        location = _parse_location(raw.get("city"))
    except SHAPE_ERRORS as e:
        raise InvalidForecastData(f"Malformed forecast city block: {e}") from e

    return ForecastPayload(points=tuple(points), location=location)


def _optional_float(block: Any, key: str) -> Optional[float]:
    if not block:
        return None
    value = block.get(key)
    return _finite(value) if value is not None else None


def _finite(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite value {value!r}")
    return number


def _parse_point(entry: Dict[str, Any]) -> ForecastPoint:
    tags = tuple(
        str(w["main"]).lower()
        for w in entry.get("weather") or []
        if isinstance(w, dict) and w.get("main")
    )
    timestamp = None
    if entry.get("dt") is not None:
        timestamp = datetime.fromtimestamp(entry["dt"], tz=timezone.utc)

    return ForecastPoint(
        timestamp=timestamp,
        temperature_k=_finite(entry["main"]["temp"]),
        precipitation_mm=_optional_float(entry.get("rain"), "3h"),
        wind_speed_ms=_optional_float(entry.get("wind"), "speed"),
        conditions=tags,
    )


def _parse_location(city: Any) -> Optional[Location]:
    if not city:
        return None
    coord = city.get("coord") or {}
    if coord.get("lat") is None or coord.get("lon") is None:
        return None
    return Location(_finite(coord["lat"]), _finite(coord["lon"]), str(city.get("name") or "Unknown"))


# ─────────────────────────────────────────────────────────────────────────────
# SUMMARY
# ─────────────────────────────────────────────────────────────────────────────

def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (12.5 -> 13, -0.25 -> -0.2 at one digit)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def summarize_forecast(
    payload: ForecastPayload,
    horizon: int = DEFAULT_HORIZON,
    thresholds: Optional[WeatherThresholds] = None,
) -> ForecastSummary:
    """
    Aggregate the first `horizon` forecast points.

    Temperatures come back in °C and rainfall in mm (one decimal), wind in
    whole km/h. Warnings are not generated here.
    """
    thresholds = thresholds or WeatherThresholds()
    if payload is None or not payload.points:
        raise InvalidForecastData("Forecast contains no data points")
    if payload.location is None:
        raise InvalidForecastData("Forecast has no location")
    if horizon < 1:
        raise InvalidForecastData(f"Forecast horizon must be at least one interval, got {horizon}")

    df = pd.DataFrame([
        {
            "temp_k": p.temperature_k,
            "precip_mm": p.precipitation_mm,
            "wind_ms": p.wind_speed_ms,
        }
        for p in payload.points
    ]).head(horizon)

    precip = pd.to_numeric(df["precip_mm"], errors="coerce").fillna(0.0).clip(lower=0.0)
    # whole km/h per interval, so the windy count and the maximum agree
    wind_ms = pd.to_numeric(df["wind_ms"], errors="coerce").fillna(0.0).clip(lower=0.0)
    wind_kmh = (wind_ms * MS_TO_KMH + 0.5) // 1

    total_rainfall = float(precip.sum())
    rain_hours = int((precip > 0).sum())
    heavy_rain_hours = int((precip >= thresholds.rainfall_heavy_mm).sum())
    wind_hours = int((wind_kmh >= thresholds.wind_warning_kmh).sum())

    max_temp_c = round_half_up(float(df["temp_k"].max()) - KELVIN_OFFSET, 1)
    min_temp_c = round_half_up(float(df["temp_k"].min()) - KELVIN_OFFSET, 1)
    max_wind_kmh = int(wind_kmh.max())

    conditions = set()
    if total_rainfall > 0:
        conditions.add("rain")
    if heavy_rain_hours > 0:
        conditions.add("heavy_rain")
    if wind_hours > 0:
        conditions.add("wind")
    if max_temp_c > thresholds.temperature_max_c:
        conditions.add("high_temperature")
    if min_temp_c < thresholds.temperature_min_c:
        conditions.add("low_temperature")

    summary = ForecastSummary(
        total_rainfall=round_half_up(total_rainfall, 1),
        max_temperature=max_temp_c,
        min_temperature=min_temp_c,
        max_wind_speed=max_wind_kmh,
        rain_hours=rain_hours,
        heavy_rain_hours=heavy_rain_hours,
        wind_hours=wind_hours,
        conditions=frozenset(conditions),
        location=payload.location,
    )
    log.debug(f"Forecast summary for {payload.location.name}: {summary.to_dict()}")
    return summary


def generate_weather_warnings(
    summary: ForecastSummary,
    thresholds: Optional[WeatherThresholds] = None,
) -> List[str]:
    """Warnings in fixed order: heat, cold, wind, heavy rain, no rain."""
    thresholds = thresholds or WeatherThresholds()
    warnings = []

    if summary.max_temperature > thresholds.temperature_max_c:
        warnings.append(
            f"High temperature warning: {summary.max_temperature}°C expected. "
            "Consider shade protection for crops."
        )

    if summary.min_temperature < thresholds.temperature_min_c:
        warnings.append(
            f"Low temperature warning: {summary.min_temperature}°C expected. "
            "Protect sensitive crops from cold."
        )

    if summary.max_wind_speed >= thresholds.wind_danger_kmh:
        warnings.append(
            f"Dangerous wind conditions: {summary.max_wind_speed} km/h expected. "
            "Secure structures and protect crops."
        )
    elif summary.max_wind_speed >= thresholds.wind_warning_kmh:
        warnings.append(
            f"Wind warning: {summary.max_wind_speed} km/h expected. "
            "Consider wind protection for tall crops."
        )

    if summary.heavy_rain_hours > 0:
        warnings.append(
            f"Heavy rainfall expected: {summary.heavy_rain_hours} periods of heavy rain. "
            "Ensure proper drainage."
        )

    if summary.total_rainfall == 0 and summary.rain_hours == 0:
        warnings.append(
            "No rainfall expected in the next 48 hours. "
            "Consider irrigation for water-dependent crops."
        )

    return warnings


def neutral_forecast_summary(lat: float, lon: float, name: str = "Unknown") -> ForecastSummary:
    """Typical mild conditions, used when no live forecast is available."""
    return ForecastSummary(
        total_rainfall=0.0,
        max_temperature=25.0,
        min_temperature=15.0,
        max_wind_speed=10,
        rain_hours=0,
        heavy_rain_hours=0,
        wind_hours=0,
        conditions=frozenset({UNKNOWN_CONDITION}),
        location=Location(lat, lon, name),
    )


def forecast_narrative(summary: ForecastSummary) -> str:
    text = (
        f"Weather forecast for next {summary.forecast_period}: "
        f"{summary.total_rainfall}mm rainfall, "
        f"{summary.min_temperature}°C to {summary.max_temperature}°C, "
        f"wind up to {summary.max_wind_speed} km/h"
    )
    if summary.is_degraded:
        text += " (live forecast unavailable; typical conditions assumed)"
    return text
