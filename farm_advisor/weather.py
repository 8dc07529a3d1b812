"""
OpenWeather forecast client.

Fetches the 5-day / 3-hour forecast, limited to the 48-hour horizon, in
standard units (Kelvin, m/s). Failures are raised as ProviderError with a
kind per HTTP status; no retries.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import ServiceConfig
from .errors import ProviderError, ProviderErrorKind

log = logging.getLogger(__name__)

SERVICE = "openweather"

STATUS_KINDS = {
    401: (ProviderErrorKind.AUTH, "Invalid OpenWeather API key"),
    404: (ProviderErrorKind.NOT_FOUND, "Location not found"),
    429: (ProviderErrorKind.RATE_LIMIT, "OpenWeather API rate limit exceeded"),
}


class OpenWeatherClient:
    def __init__(self, config: Optional[ServiceConfig] = None):
        config = config or ServiceConfig()
        self.api_key = config.openweather_api_key
        self.base_url = config.openweather_base_url.rstrip("/")
        self.timeout = config.forecast_timeout_s
        self.count = config.forecast_horizon

        if not self.api_key:
            log.warning("OpenWeather API key not provided. Weather data will not be available.")

    def get_forecast(self, lat: float, lon: float) -> Dict[str, Any]:
        """
        Fetch the raw forecast JSON for a location.

        Raises:
            ProviderError: not configured, HTTP error, timeout or connection failure
        """
        if not self.api_key:
            raise ProviderError(ProviderErrorKind.NOT_CONFIGURED,
                                "OpenWeather API key not configured", SERVICE)

        params = {"lat": lat, "lon": lon, "appid": self.api_key, "cnt": self.count}
        try:
            response = requests.get(f"{self.base_url}/forecast", params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ProviderError(ProviderErrorKind.TIMEOUT, "OpenWeather API request timeout", SERVICE) from e
        except requests.exceptions.ConnectionError as e:
            raise ProviderError(ProviderErrorKind.CONNECTION,
                                "Unable to connect to OpenWeather API", SERVICE) from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(ProviderErrorKind.UNKNOWN, f"Weather service error: {e}", SERVICE) from e

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise ProviderError(ProviderErrorKind.INVALID_RESPONSE,
                                    "OpenWeather returned a non-JSON body", SERVICE, 200) from e

        raise self._status_error(response)

    def _status_error(self, response) -> ProviderError:
        status = response.status_code
        if status in STATUS_KINDS:
            kind, message = STATUS_KINDS[status]
        elif status >= 500:
            kind, message = ProviderErrorKind.SERVER, "OpenWeather API server error"
        else:
            kind = ProviderErrorKind.UNKNOWN
            message = f"OpenWeather API error: {_error_message(response)}"
        log.warning(f"OpenWeather HTTP {status}: {message}")
        return ProviderError(kind, message, SERVICE, status)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_status(self) -> Dict[str, Any]:
        return {
            "available": self.is_available(),
            "base_url": self.base_url,
            "has_api_key": bool(self.api_key),
        }


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:100] or "Unknown error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return "Unknown error"
