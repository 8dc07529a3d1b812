"""Shared fixtures for farm_advisor tests."""
from datetime import datetime, timezone

import pytest

from farm_advisor.forecast import ForecastSummary, Location
from farm_advisor.knowledge import KnowledgeBase

KIGALI = Location(-1.9441, 30.0619, "Kigali")

# First month of each season
SEASON_MONTHS = {"shortDry": 1, "longRains": 3, "longDry": 6, "shortRains": 10}


def fixed_clock(month: int):
    return lambda: datetime(2024, month, 15, 9, 0, tzinfo=timezone.utc)


def forecast_json(temps_c, precip=None, wind_ms=None, city=True):
    """Build an OpenWeather /forecast body from °C temperatures."""
    entries = []
    for i, temp in enumerate(temps_c):
        entry = {
            "dt": 1700000000 + i * 10800,
            "main": {"temp": temp + 273.15},
            "weather": [{"main": "Clouds"}],
        }
        if precip is not None and precip[i] is not None:
            entry["rain"] = {"3h": precip[i]}
        if wind_ms is not None and wind_ms[i] is not None:
            entry["wind"] = {"speed": wind_ms[i]}
        entries.append(entry)

    body = {"cod": "200", "list": entries}
    if city:
        body["city"] = {"name": "Kigali", "coord": {"lat": -1.9441, "lon": 30.0619}}
    return body


def make_summary(**overrides) -> ForecastSummary:
    values = dict(
        total_rainfall=4.0,
        max_temperature=26.0,
        min_temperature=16.0,
        max_wind_speed=12,
        rain_hours=2,
        heavy_rain_hours=0,
        wind_hours=0,
        conditions=frozenset({"rain"}),
        location=KIGALI,
    )
    values.update(overrides)
    return ForecastSummary(**values)


@pytest.fixture
def kb():
    return KnowledgeBase(clock=fixed_clock(4))


@pytest.fixture
def summary():
    return make_summary()


@pytest.fixture
def dry_summary():
    return make_summary(total_rainfall=0.0, rain_hours=0, conditions=frozenset())
