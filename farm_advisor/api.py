"""
FastAPI Application for the Season-Aware Farming Advisor

- POST /api/advice              - farming advice for a crop and location
- GET  /api/advice/crops        - supported crops
- GET  /api/advice/varieties/{crop}
- GET  /api/advice/growth-states
- GET  /api/advice/season       - current agricultural season
- GET  /api/advice/status       - external service status
- GET  /api/advice/basic/{crop} - rule-based advice, no external calls
- GET  /health, /health/detailed, /health/config

Routes under /api are rate limited per client address (RATE_LIMIT_MAX_REQUESTS
per RATE_LIMIT_WINDOW_S).
"""
import logging
import platform
import time
from typing import Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import API, API_VERSION, SERVICE_NAME, ServiceConfig
from .errors import AdviceGenerationError, UnsupportedCrop
from .knowledge import CROPS, GROWTH_STAGE_IDS, GrowthStage, utc_now
from .orchestrator import AdviceOrchestrator, AdviceRequest, get_orchestrator

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)

START_TIME = time.monotonic()
SUPPORTED_CROPS = list(CROPS.keys())

ENDPOINTS = {
    "advice": "POST /api/advice",
    "crops": "GET /api/advice/crops",
    "varieties": "GET /api/advice/varieties/{crop}",
    "growth_states": "GET /api/advice/growth-states",
    "season": "GET /api/advice/season",
    "status": "GET /api/advice/status",
    "basic": "GET /api/advice/basic/{crop}",
    "health": "GET /health",
}

# ═══════════════════════════════════════════════════════════════════════════════
# PYDANTIC MODELS
# ═══════════════════════════════════════════════════════════════════════════════


class AdviceRequestBody(BaseModel):
    crop: str = Field(..., description="Crop type", examples=["maize"])
    lat: Optional[float] = Field(default=None, ge=-90, le=90, description="Latitude")
    lon: Optional[float] = Field(default=None, ge=-180, le=180, description="Longitude")
    soil_ph: Optional[float] = Field(default=None, ge=4.0, le=8.5, alias="soilPh", description="Soil pH")
    growth_state: Optional[GrowthStage] = Field(default=None, alias="growthState", description="Growth stage")
    variety: Optional[str] = Field(default=None, min_length=1, description="Crop variety")
    use_ai: Optional[bool] = Field(default=None, alias="useAI", description="Use AI-generated advice")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [{
                "crop": "maize",
                "lat": -1.9441,
                "lon": 30.0619,
                "soilPh": 6.2,
                "growthState": "vegetative",
                "variety": "ZM607",
                "useAI": True
            }]
        }
    }

    @field_validator("crop", mode="before")
    @classmethod
    def check_crop(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Crop type is required")
        value = value.strip().lower()
        if value not in SUPPORTED_CROPS:
            raise ValueError(f"Crop type must be one of: {', '.join(SUPPORTED_CROPS)}")
        return value

    def to_request(self) -> AdviceRequest:
        return AdviceRequest(
            crop=self.crop,
            lat=self.lat,
            lon=self.lon,
            soil_ph=self.soil_ph,
            growth_stage=self.growth_state.value if self.growth_state else None,
            variety=self.variety,
            use_ai=self.use_ai,
        )


class ApiResponse(BaseModel):
    success: bool = True
    data: Any = None
    message: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

app = FastAPI(
    title=SERVICE_NAME,
    description="""
    Season-aware farming advice for Rwanda.

    ## Features
    - Combines a 48-hour weather forecast, Rwanda's agricultural seasons and crop knowledge
    - AI-generated advice with automatic rule-based fallback
    - Soil pH, growth stage and variety specific guidance
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=API.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting (in-memory, per client address); health routes are exempt
limiter = Limiter(key_func=get_remote_address, default_limits=[API.rate_limit])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


def error_response(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    body = {
        "success": False,
        "error": error,
        "message": message,
        "timestamp": utc_now().isoformat(),
        **extra,
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}")
    return error_response(
        429,
        "Too many requests",
        "Too many requests from this IP, please try again later.",
        retry_after_seconds=API.rate_limit_window_s,
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(
            404,
            "Not Found",
            f"The requested endpoint {request.method} {request.url.path} was not found",
            available_endpoints={"root": "GET /", **ENDPOINTS},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = str(err.get("msg", ""))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": ".".join(loc), "message": message, "value": err.get("input")})
    log.info(f"Validation failed for {request.url.path}: {details}")
    return error_response(400, "Validation failed", "Invalid request data", details=details)


# ═══════════════════════════════════════════════════════════════════════════════
# ADVICE ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

router = APIRouter(prefix="/api/advice", tags=["Advice"])


@router.post("")
async def generate_advice(
    body: AdviceRequestBody,
    orchestrator: AdviceOrchestrator = Depends(get_orchestrator),
):
    """Generate farming advice for a crop and location."""
    try:
        advice = await orchestrator.generate_advice(body.to_request())
    except AdviceGenerationError as e:
        status_code = 400 if e.is_client_error else 500
        log.error(f"Advice generation error: {e}")
        return error_response(status_code, "Failed to generate farming advice", str(e))

    return ApiResponse(data=advice.to_dict(), message="Farming advice generated successfully")


@router.get("/crops")
async def list_crops(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    crops = orchestrator.available_crops()
    return ApiResponse(data={
        "crops": crops,
        "count": len(crops),
        "description": "Supported crop types for farming advice",
    })


@router.get("/varieties/{crop}")
async def crop_varieties(crop: str, orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    try:
        varieties = orchestrator.crop_varieties(crop)
    except UnsupportedCrop as e:
        return error_response(400, "Invalid crop type", str(e), supported_crops=orchestrator.available_crops())

    return ApiResponse(
        data={"crop": crop.lower(), "varieties": varieties, "count": len(varieties)},
        message="Crop varieties retrieved successfully",
    )


@router.get("/growth-states")
async def growth_states(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    stages = orchestrator.growth_stages()
    return ApiResponse(
        data={"growth_states": stages, "count": len(stages)},
        message="Growth states retrieved successfully",
    )


@router.get("/season")
async def current_season(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    return ApiResponse(
        data=orchestrator.current_season().to_dict(),
        message="Current season information retrieved successfully",
    )


@router.get("/status")
async def service_status(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    return ApiResponse(
        data=orchestrator.service_status(),
        message="Service status retrieved successfully",
    )


@router.get("/basic/{crop}")
async def basic_advice(crop: str, orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    """Rule-based advice against typical conditions; makes no external calls."""
    try:
        advice = orchestrator.basic_advice(crop)
    except UnsupportedCrop as e:
        return error_response(400, "Invalid crop type", str(e), supported_crops=orchestrator.available_crops())

    return ApiResponse(
        data=advice.to_dict(),
        message="Basic farming advice generated successfully",
    )


@router.get("/health")
async def advice_health(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    status = orchestrator.service_status()
    healthy = status["weather"]["available"] or status["gemini"]["available"]
    body = {
        "success": healthy,
        "service": "Season-Aware Farming Advisor",
        "status": "healthy" if healthy else "degraded",
        "timestamp": utc_now().isoformat(),
        "services": status,
        "message": "All services are operational" if healthy else "Some services are unavailable",
    }
    return JSONResponse(status_code=200 if healthy else 503, content=jsonable_encoder(body))


app.include_router(router)


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

def _health_base(status: str) -> Dict[str, Any]:
    config = ServiceConfig()
    return {
        "success": True,
        "service": SERVICE_NAME,
        "status": status,
        "timestamp": utc_now().isoformat(),
        "version": API_VERSION,
        "environment": config.environment,
        "uptime": round(time.monotonic() - START_TIME, 1),
    }


@app.get("/", tags=["Health"])
@limiter.exempt
async def root():
    return {
        "message": f"Welcome to the {SERVICE_NAME}",
        "version": API_VERSION,
        "docs": "/docs",
        "endpoints": ENDPOINTS,
    }


@app.get("/health", tags=["Health"])
@limiter.exempt
async def health():
    return _health_base("healthy")


@app.get("/health/detailed", tags=["Health"])
@limiter.exempt
async def detailed_health(orchestrator: AdviceOrchestrator = Depends(get_orchestrator)):
    services = orchestrator.service_status()
    weather_ok = services["weather"]["available"]
    gemini_ok = services["gemini"]["available"]

    if not weather_ok and not gemini_ok:
        status = "unhealthy"
    elif not weather_ok or not gemini_ok:
        status = "degraded"
    else:
        status = "healthy"

    body = _health_base(status)
    body["services"] = services
    body["system"] = {
        "python_version": platform.python_version(),
        "platform": platform.system().lower(),
    }
    return JSONResponse(status_code=503 if status == "unhealthy" else 200, content=jsonable_encoder(body))


@app.get("/health/config", tags=["Health"])
@limiter.exempt
async def config_health():
    config = ServiceConfig()
    body = _health_base("healthy")
    body.pop("uptime")
    body["config"] = {
        "environment": config.environment,
        "port": API.port,
        "has_openweather_key": bool(config.openweather_api_key),
        "has_gemini_key": bool(config.gemini_api_key),
        "default_location": {"lat": config.default_lat, "lon": config.default_lon},
        "growth_stages": list(GROWTH_STAGE_IDS),
    }
    return body


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════════

def run_server(host: str = API.host, port: int = API.port, reload: bool = False):
    """Run the API server."""
    uvicorn.run(
        "farm_advisor.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )
