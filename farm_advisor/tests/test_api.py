"""Tests for the HTTP API."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from farm_advisor.api import app, limiter
from farm_advisor.config import API, ServiceConfig
from farm_advisor.errors import AdviceGenerationError, InvalidCoordinates, ProviderError, ProviderErrorKind
from farm_advisor.gemini import GeminiClient
from farm_advisor.knowledge import KnowledgeBase
from farm_advisor.orchestrator import AdviceOrchestrator, get_orchestrator
from farm_advisor.weather import OpenWeatherClient

from conftest import fixed_clock


def build_orchestrator(weather_key="w-key", gemini_key=""):
    weather = MagicMock(spec=OpenWeatherClient)
    weather.is_available.return_value = bool(weather_key)
    weather.get_status.return_value = {"available": bool(weather_key), "has_api_key": bool(weather_key)}
    weather.get_forecast.side_effect = ProviderError(ProviderErrorKind.SERVER, "OpenWeather API server error")

    gemini = MagicMock(spec=GeminiClient)
    gemini.is_available.return_value = bool(gemini_key)
    gemini.get_status.return_value = {"available": bool(gemini_key), "has_api_key": bool(gemini_key)}
    gemini.generate = AsyncMock(return_value="not json")

    return AdviceOrchestrator(
        knowledge_base=KnowledgeBase(clock=fixed_clock(3)),
        weather_client=weather,
        gemini_client=gemini,
        config=ServiceConfig(openweather_api_key=weather_key, gemini_api_key=gemini_key),
        clock=lambda: datetime(2024, 3, 5, tzinfo=timezone.utc),
    )


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def orchestrator():
    return build_orchestrator()


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides = {}


class TestAdviceEndpoint:
    def test_generate_advice(self, client):
        response = client.post("/api/advice", json={"crop": "maize", "soilPh": 6.0, "growthState": "flowering"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Farming advice generated successfully"
        data = body["data"]
        assert data["season"] == "longRains"
        assert data["crop"] == "maize"
        assert data["metadata"]["advice_source"] == "basic_seasonal"
        assert data["metadata"]["weather_service_available"] is False
        assert data["metadata"]["additional_params"] == {"soilPh": 6.0, "growthState": "flowering"}
        assert data["soil_ph_analysis"]
        assert data["growth_stage_advice"]

    def test_uppercase_crop_accepted(self, client):
        response = client.post("/api/advice", json={"crop": "Beans"})
        assert response.status_code == 200
        assert response.json()["data"]["crop"] == "beans"

    @pytest.mark.parametrize("body, field, message", [
        ({}, "crop", "Field required"),
        ({"crop": "cassava"}, "crop", "Crop type must be one of: maize, beans, potatoes, bananas"),
        ({"crop": "maize", "lat": 95}, "lat", None),
        ({"crop": "maize", "soilPh": 9.1}, "soilPh", None),
        ({"crop": "maize", "growthState": "dormant"}, "growthState", None),
        ({"crop": "maize", "variety": ""}, "variety", None),
        ({"crop": "maize", "useAI": "sometimes"}, "useAI", None),
    ])
    def test_validation_errors(self, client, body, field, message):
        response = client.post("/api/advice", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["success"] is False
        assert payload["error"] == "Validation failed"
        detail = payload["details"][0]
        assert detail["field"] == field
        if message:
            assert detail["message"] == message

    def test_rejected_request_maps_to_400(self, client, orchestrator):
        orchestrator.generate_advice = AsyncMock(
            side_effect=AdviceGenerationError(InvalidCoordinates("Both latitude and longitude must be provided")))
        response = client.post("/api/advice", json={"crop": "maize", "lat": -1.9})

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Failed to generate advice: Both latitude and longitude must be provided")

    def test_internal_failure_maps_to_500(self, client, orchestrator):
        orchestrator.generate_advice = AsyncMock(side_effect=AdviceGenerationError(RuntimeError("boom")))
        response = client.post("/api/advice", json={"crop": "maize"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to generate farming advice"


class TestLookupEndpoints:
    def test_crops(self, client):
        data = client.get("/api/advice/crops").json()["data"]
        assert data["crops"] == ["maize", "beans", "potatoes", "bananas"]
        assert data["count"] == 4

    def test_varieties(self, client):
        data = client.get("/api/advice/varieties/potatoes").json()["data"]
        assert set(data["varieties"]) == {"Kinigi", "Kirundo", "Cruza"}

    def test_varieties_unsupported(self, client):
        response = client.get("/api/advice/varieties/coffee")
        assert response.status_code == 400
        assert response.json()["supported_crops"] == ["maize", "beans", "potatoes", "bananas"]

    def test_growth_states(self, client):
        data = client.get("/api/advice/growth-states").json()["data"]
        assert data["count"] == 4

    def test_season(self, client):
        data = client.get("/api/advice/season").json()["data"]
        assert data["season"] == "longRains"
        assert data["current_month"] == 3

    def test_status(self, client):
        data = client.get("/api/advice/status").json()["data"]
        assert data["advice"]["version"] == "1.0.0"

    def test_basic_advice(self, client, orchestrator):
        response = client.get("/api/advice/basic/bananas")
        assert response.status_code == 200
        assert response.json()["data"]["crop"] == "bananas"
        orchestrator.weather.get_forecast.assert_not_called()

    def test_basic_advice_unsupported(self, client):
        response = client.get("/api/advice/basic/coffee")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid crop type"


class TestHealthEndpoints:
    def test_basic_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"

    def test_detailed_degraded(self, client):
        response = client.get("/health/detailed")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_detailed_unhealthy(self):
        app.dependency_overrides[get_orchestrator] = lambda: build_orchestrator(weather_key="")
        try:
            response = TestClient(app).get("/health/detailed")
        finally:
            app.dependency_overrides = {}
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_advice_health(self, client):
        response = client.get("/api/advice/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_config(self, client):
        config = client.get("/health/config").json()["config"]
        assert "has_gemini_key" in config
        assert config["default_location"] == {"lat": -1.9441, "lon": 30.0619}


class TestEnvelopes:
    def test_unknown_route(self, client):
        response = client.get("/api/unknown")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Not Found"
        assert body["message"] == "The requested endpoint GET /api/unknown was not found"
        assert body["available_endpoints"]["advice"] == "POST /api/advice"

    def test_wrong_method_keeps_status(self, client):
        response = client.delete("/api/advice/crops")
        assert response.status_code == 405

    def test_rate_limited_after_max_requests(self, client):
        for _ in range(API.rate_limit_max_requests):
            assert client.get("/api/advice/crops").status_code == 200

        response = client.get("/api/advice/crops")
        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Too many requests from this IP, please try again later."
        assert body["retry_after_seconds"] == API.rate_limit_window_s

    def test_health_routes_not_rate_limited(self, client):
        for _ in range(API.rate_limit_max_requests + 5):
            assert client.get("/health").status_code == 200
