"""Service configuration: API keys, endpoints, defaults and timeouts."""
import os
from dataclasses import dataclass, field
from typing import List

# ─────────────────────────────────────────────────────────────────────────────
# VERSIONS
# ─────────────────────────────────────────────────────────────────────────────
API_VERSION = "1.0.0"
PROMPT_VERSION = "2.0"
SERVICE_NAME = "Season-Aware Farming Advisor API"

# ─────────────────────────────────────────────────────────────────────────────
# EXTERNAL SERVICES
# ─────────────────────────────────────────────────────────────────────────────
OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"

DEFAULT_LAT = -1.9441
DEFAULT_LON = 30.0619
DEFAULT_LOCATION_NAME = "Kigali, Rwanda"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    openweather_api_key: str = field(default_factory=lambda: os.getenv("OPENWEATHER_API_KEY", ""))
    openweather_base_url: str = field(default_factory=lambda: os.getenv("OPENWEATHER_BASE_URL", OPENWEATHER_BASE_URL))
    gemini_api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    gemini_base_url: str = field(default_factory=lambda: os.getenv("GEMINI_BASE_URL", GEMINI_BASE_URL))

    default_lat: float = field(default_factory=lambda: _env_float("DEFAULT_LAT", DEFAULT_LAT))
    default_lon: float = field(default_factory=lambda: _env_float("DEFAULT_LON", DEFAULT_LON))

    forecast_timeout_s: float = field(default_factory=lambda: _env_float("FORECAST_TIMEOUT_S", 10.0))
    advice_timeout_s: float = field(default_factory=lambda: _env_float("ADVICE_TIMEOUT_S", 30.0))
    # 48 hours of 3-hour intervals
    forecast_horizon: int = field(default_factory=lambda: int(_env_float("FORECAST_HORIZON", 16)))

    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))

    def missing_keys(self) -> List[str]:
        """Names of the API keys that are not set."""
        missing = []
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.openweather_api_key:
            missing.append("OPENWEATHER_API_KEY")
        return missing


# ─────────────────────────────────────────────────────────────────────────────
# API CONFIG
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class APIConfig:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    rate_limit_window_s: int = int(os.getenv("RATE_LIMIT_WINDOW_S", "900"))
    rate_limit_max_requests: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))

    @property
    def rate_limit(self) -> str:
        return f"{self.rate_limit_max_requests} per {self.rate_limit_window_s} seconds"


API = APIConfig()
