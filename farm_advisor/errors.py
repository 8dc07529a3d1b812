"""Custom exceptions for the farming advice engine."""
from enum import Enum
from typing import List, Optional


class FarmAdvisorError(Exception):
    """Base exception for this application."""
    pass


# ─────────────────────────────────────────────────────────────────────────────
# REQUEST VALIDATION
# ─────────────────────────────────────────────────────────────────────────────

class AdviceRequestError(FarmAdvisorError, ValueError):
    """The advice request itself is malformed and must be rejected."""
    pass


class InvalidCoordinates(AdviceRequestError):
    """Latitude/longitude missing a partner or outside the valid range."""

    def __init__(self, message: str = "Invalid coordinates provided"):
        super().__init__(message)


class UnsupportedCrop(AdviceRequestError):
    """Crop id missing or not in the supported crop set."""

    def __init__(self, crop: Optional[str], supported: Optional[List[str]] = None):
        self.crop = crop
        self.supported = list(supported or [])
        if not crop:
            message = "Crop type is required"
        else:
            message = f"Unsupported crop type: {crop}"
            if self.supported:
                message += f". Supported crops: {', '.join(self.supported)}"
        super().__init__(message)


class InvalidParameter(AdviceRequestError):
    """An optional agronomic parameter failed its own check."""

    def __init__(self, field: str, message: str, value=None):
        self.field = field
        self.value = value
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# KNOWLEDGE BASE / FORECAST
# ─────────────────────────────────────────────────────────────────────────────

class UnknownCrop(FarmAdvisorError, KeyError):
    """Crop id has no profile in the knowledge base."""

    def __init__(self, crop: str):
        self.crop = crop
        super().__init__(f"Unknown crop: {crop}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidForecastData(FarmAdvisorError, ValueError):
    """Forecast payload has no points, no location, or an unexpected shape."""
    pass


# ─────────────────────────────────────────────────────────────────────────────
# EXTERNAL PROVIDERS
# ─────────────────────────────────────────────────────────────────────────────

class ProviderErrorKind(Enum):
    """Failure categories for the forecast provider and advice generator."""
    NOT_CONFIGURED = "not_configured"
    BAD_REQUEST = "bad_request"
    AUTH = "auth"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVER = "server"
    CONNECTION = "connection"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class ProviderError(FarmAdvisorError):
    """A remote service call failed."""

    def __init__(self, kind: ProviderErrorKind, message: str, service: str = "",
                 status_code: Optional[int] = None):
        self.kind = kind
        self.service = service
        self.status_code = status_code
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# GENERATOR RESPONSE PARSING
# ─────────────────────────────────────────────────────────────────────────────

class AdviceParseError(FarmAdvisorError, ValueError):
    """Generator text could not be turned into structured advice."""
    pass


class NoStructuredPayload(AdviceParseError):
    """No `{ ... }` span found in the generator text."""

    def __init__(self, message: str = "No JSON found in AI response"):
        super().__init__(message)


class MalformedPayload(AdviceParseError):
    """The braced span is not a valid JSON object."""
    pass


class IncompleteResponse(AdviceParseError):
    """The parsed object lacks required advice fields."""

    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields in AI response: {', '.join(self.fields)}")


# ─────────────────────────────────────────────────────────────────────────────
# TERMINAL
# ─────────────────────────────────────────────────────────────────────────────

class AdviceGenerationError(FarmAdvisorError):
    """Single wrapped error surfaced to callers when a request is rejected."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to generate advice: {cause}")

    @property
    def is_client_error(self) -> bool:
        return isinstance(self.cause, AdviceRequestError)
