"""Tests for the OpenWeather client."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from farm_advisor.config import ServiceConfig
from farm_advisor.errors import ProviderError, ProviderErrorKind
from farm_advisor.weather import OpenWeatherClient

from conftest import forecast_json


def make_client(api_key="test-key"):
    return OpenWeatherClient(ServiceConfig(openweather_api_key=api_key,
                                           openweather_base_url="http://weather.test/data/2.5"))


def response(status_code, body=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = body if body is not None else {}
    mock_response.text = ""
    return mock_response


class TestGetForecast:
    @patch("farm_advisor.weather.requests.get")
    def test_successful_request(self, mock_get):
        body = forecast_json([20, 21])
        mock_get.return_value = response(200, body)

        assert make_client().get_forecast(-1.9, 30.1) == body

        mock_get.assert_called_once()
        url = mock_get.call_args.args[0]
        kwargs = mock_get.call_args.kwargs
        assert url == "http://weather.test/data/2.5/forecast"
        assert kwargs["params"] == {"lat": -1.9, "lon": 30.1, "appid": "test-key", "cnt": 16}
        assert kwargs["timeout"] == 10.0

    @pytest.mark.parametrize("status, kind", [
        (401, ProviderErrorKind.AUTH),
        (404, ProviderErrorKind.NOT_FOUND),
        (429, ProviderErrorKind.RATE_LIMIT),
        (500, ProviderErrorKind.SERVER),
        (503, ProviderErrorKind.SERVER),
        (418, ProviderErrorKind.UNKNOWN),
    ])
    @patch("farm_advisor.weather.requests.get")
    def test_status_kinds(self, mock_get, status, kind):
        mock_get.return_value = response(status, {"message": "nope"})
        with pytest.raises(ProviderError) as exc:
            make_client().get_forecast(0, 0)
        assert exc.value.kind is kind
        assert exc.value.status_code == status
        assert exc.value.service == "openweather"

    @patch("farm_advisor.weather.requests.get")
    def test_unknown_status_includes_provider_message(self, mock_get):
        mock_get.return_value = response(418, {"message": "teapot"})
        with pytest.raises(ProviderError, match="teapot"):
            make_client().get_forecast(0, 0)

    @patch("farm_advisor.weather.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout()
        with pytest.raises(ProviderError) as exc:
            make_client().get_forecast(0, 0)
        assert exc.value.kind is ProviderErrorKind.TIMEOUT

    @patch("farm_advisor.weather.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError()
        with pytest.raises(ProviderError) as exc:
            make_client().get_forecast(0, 0)
        assert exc.value.kind is ProviderErrorKind.CONNECTION

    @patch("farm_advisor.weather.requests.get")
    def test_not_configured(self, mock_get):
        with pytest.raises(ProviderError) as exc:
            make_client(api_key="").get_forecast(0, 0)
        assert exc.value.kind is ProviderErrorKind.NOT_CONFIGURED
        mock_get.assert_not_called()


class TestStatus:
    def test_available_with_key(self):
        client = make_client()
        assert client.is_available()
        assert client.get_status() == {
            "available": True,
            "base_url": "http://weather.test/data/2.5",
            "has_api_key": True,
        }

    def test_unavailable_without_key(self):
        assert not make_client(api_key="").is_available()
