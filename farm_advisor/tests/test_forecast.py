"""Tests for forecast parsing, summarization and warnings."""
import pytest

from farm_advisor.errors import InvalidForecastData
from farm_advisor.forecast import (
    ForecastPayload, ForecastPoint, forecast_narrative, generate_weather_warnings,
    neutral_forecast_summary, parse_forecast_payload, round_half_up, summarize_forecast,
)
from farm_advisor.knowledge import WeatherThresholds

from conftest import KIGALI, forecast_json, make_summary


def summarize_json(body, **kwargs):
    return summarize_forecast(parse_forecast_payload(body), **kwargs)


class TestParseForecastPayload:
    def test_parses_points_and_location(self):
        payload = parse_forecast_payload(forecast_json([20, 22], precip=[None, 1.5], wind_ms=[2.0, None]))
        assert len(payload.points) == 2
        assert payload.points[0].precipitation_mm is None
        assert payload.points[1].precipitation_mm == 1.5
        assert payload.points[1].wind_speed_ms is None
        assert payload.points[0].conditions == ("clouds",)
        assert payload.location.name == "Kigali"

    def test_missing_city_gives_no_location(self):
        assert parse_forecast_payload(forecast_json([20], city=False)).location is None

    @pytest.mark.parametrize("body", [None, {}, {"list": "nope"}, {"list": [{"main": {}}]}])
    def test_malformed(self, body):
        with pytest.raises(InvalidForecastData):
            parse_forecast_payload(body)

    @pytest.mark.parametrize("field, value", [
        ("rain", "heavy"),
        ("rain", {"3h": "n/a"}),
        ("wind", ["fast"]),
        ("wind", {"speed": "NaN"}),
        ("dt", "tomorrow"),
        ("main", {"temp": None}),
    ])
    def test_malformed_entry_fields(self, field, value):
        body = forecast_json([20, 21])
        body["list"][1][field] = value
        with pytest.raises(InvalidForecastData, match="entry 1"):
            parse_forecast_payload(body)

    @pytest.mark.parametrize("city", ["Kigali", {"coord": "here"}, {"coord": {"lat": "north", "lon": 30}}])
    def test_malformed_city(self, city):
        body = forecast_json([20])
        body["city"] = city
        with pytest.raises(InvalidForecastData, match="city"):
            parse_forecast_payload(body)

    def test_non_object_entry(self):
        with pytest.raises(InvalidForecastData):
            parse_forecast_payload({"list": ["20C"]})


class TestSummarizeForecast:
    def test_heavy_rain_count(self):
        summary = summarize_json(forecast_json([20] * 4, precip=[0, 20, 0, 0]))
        assert summary.heavy_rain_hours == 1
        assert summary.total_rainfall == 20
        assert summary.rain_hours == 1
        assert {"rain", "heavy_rain"} <= summary.conditions

    def test_temperatures_converted_and_rounded(self):
        summary = summarize_json(forecast_json([18.04, 27.26, 22.0]))
        assert summary.max_temperature == 27.3
        assert summary.min_temperature == 18.0

    def test_wind_converted_to_kmh(self):
        # 6 m/s = 21.6 km/h, above the 20 km/h warning threshold
        summary = summarize_json(forecast_json([20, 20], wind_ms=[6.0, 3.0]))
        assert summary.max_wind_speed == 22
        assert summary.wind_hours == 1
        assert "wind" in summary.conditions

    def test_truncates_to_horizon(self):
        precip = [1.0] * 20
        summary = summarize_json(forecast_json([20] * 20, precip=precip))
        assert summary.rain_hours == 16
        assert summary.total_rainfall == 16.0

        short = summarize_json(forecast_json([20] * 20, precip=precip), horizon=4)
        assert short.total_rainfall == 4.0

    def test_missing_values_count_as_zero(self):
        summary = summarize_json(forecast_json([20, 21]))
        assert summary.total_rainfall == 0
        assert summary.max_wind_speed == 0
        assert summary.conditions == frozenset()

    def test_temperature_condition_tags(self):
        summary = summarize_json(forecast_json([8, 36]))
        assert {"high_temperature", "low_temperature"} <= summary.conditions

    def test_custom_thresholds(self):
        thresholds = WeatherThresholds(rainfall_heavy_mm=5.0)
        summary = summarize_json(forecast_json([20] * 2, precip=[6.0, 1.0]), thresholds=thresholds)
        assert summary.heavy_rain_hours == 1

    def test_warnings_left_empty(self):
        assert summarize_json(forecast_json([40])).warnings == []

    def test_requires_points(self):
        with pytest.raises(InvalidForecastData):
            summarize_forecast(ForecastPayload(points=(), location=KIGALI))

    @pytest.mark.parametrize("horizon", [0, -1])
    def test_requires_positive_horizon(self, horizon):
        with pytest.raises(InvalidForecastData):
            summarize_json(forecast_json([20, 21]), horizon=horizon)

    def test_rainfall_rounds_half_up(self):
        assert summarize_json(forecast_json([20], precip=[0.25])).total_rainfall == 0.3

    def test_wind_count_matches_reported_maximum(self):
        # 5.5 m/s = 19.8 km/h, reported as 20 km/h
        summary = summarize_json(forecast_json([20, 20], wind_ms=[5.5, 1.0]))
        assert summary.max_wind_speed == 20
        assert summary.wind_hours == 1
        assert "wind" in summary.conditions
        assert generate_weather_warnings(summary)[0].startswith("Wind warning: 20 km/h")

    def test_requires_location(self):
        with pytest.raises(InvalidForecastData):
            summarize_forecast(ForecastPayload(points=(ForecastPoint(None, 293.15),), location=None))


class TestRoundHalfUp:
    @pytest.mark.parametrize("value, digits, expected", [
        (12.5, 0, 13),
        (12.49, 0, 12),
        (0.25, 1, 0.3),
        (-0.25, 1, -0.2),
        (27.26, 1, 27.3),
    ])
    def test_values(self, value, digits, expected):
        assert round_half_up(value, digits) == expected


class TestWarnings:
    def test_high_temperature_and_no_rain(self):
        summary = make_summary(max_temperature=36.0, total_rainfall=0.0, rain_hours=0)
        warnings = generate_weather_warnings(summary)
        assert len(warnings) == 2
        assert len([w for w in warnings if w.startswith("High temperature warning")]) == 1
        assert warnings[1].startswith("No rainfall expected")

    def test_no_warnings_in_mild_rainy_weather(self):
        assert generate_weather_warnings(make_summary()) == []

    def test_danger_wind_takes_precedence(self):
        warnings = generate_weather_warnings(make_summary(max_wind_speed=45))
        assert len(warnings) == 1
        assert warnings[0].startswith("Dangerous wind conditions: 45 km/h")

    def test_wind_warning(self):
        warnings = generate_weather_warnings(make_summary(max_wind_speed=20))
        assert warnings == ["Wind warning: 20 km/h expected. Consider wind protection for tall crops."]

    def test_fixed_order(self):
        summary = make_summary(
            max_temperature=37.0, min_temperature=8.0, max_wind_speed=25,
            heavy_rain_hours=2, total_rainfall=40.0,
        )
        prefixes = [w.split(":")[0] for w in generate_weather_warnings(summary)]
        assert prefixes == [
            "High temperature warning", "Low temperature warning",
            "Wind warning", "Heavy rainfall expected",
        ]


class TestForecastSummary:
    def test_attach_warnings_once(self):
        summary = make_summary()
        summary.attach_warnings(["a"])
        assert summary.warnings == ["a"]
        with pytest.raises(RuntimeError):
            summary.attach_warnings(["b"])

    def test_negative_counts_rejected(self):
        with pytest.raises(InvalidForecastData):
            make_summary(rain_hours=-1)

    def test_negative_temperatures_allowed(self):
        assert make_summary(min_temperature=-2.0).min_temperature == -2.0

    def test_to_dict(self):
        data = make_summary(conditions=frozenset({"wind", "rain"})).to_dict()
        assert data["conditions"] == ["rain", "wind"]
        assert data["location"] == {"lat": -1.9441, "lon": 30.0619, "name": "Kigali"}
        assert data["forecast_period"] == "48 hours"


class TestNeutralSummary:
    def test_values(self):
        summary = neutral_forecast_summary(-2.5, 29.6)
        assert summary.total_rainfall == 0
        assert (summary.min_temperature, summary.max_temperature) == (15.0, 25.0)
        assert summary.max_wind_speed == 10
        assert summary.conditions == frozenset({"unknown"})
        assert summary.location.name == "Unknown"
        assert (summary.location.lat, summary.location.lon) == (-2.5, 29.6)
        assert summary.is_degraded

    def test_narrative_mentions_degraded(self):
        text = forecast_narrative(neutral_forecast_summary(0, 0))
        assert text.startswith("Weather forecast for next 48 hours: 0.0mm rainfall")
        assert "unavailable" in text
