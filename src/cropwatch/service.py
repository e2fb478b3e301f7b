"""
CropWatch API Service

Main FastAPI application entry point.
Wraps the managed backend and external providers:
- Database/Auth (Supabase REST) - farms, NDVI readings, alerts
- Weather (Open-Meteo) - current conditions and forecast
- Chat model (OpenAI-compatible) - CropAdvisor streaming replies

Port: 8000
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import httpx
import logging

from cropwatch import config
from cropwatch.errors import CropWatchError
from cropwatch.routers import alerts, chat, ndvi, weather
from cropwatch.utils.http_utils import check_service_health

# Setup logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own one HTTP client for all outbound calls."""
    app.state.http_client = httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)
    logger.info(f"CropWatch API starting, backend: {config.SUPABASE_URL}")
    yield
    await app.state.http_client.aclose()
    logger.info("CropWatch API shutting down")


# Setup FastAPI app
app = FastAPI(
    title="CropWatch API",
    description="Satellite crop monitoring: NDVI alerts, weather and crop advisor chat",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORSMiddleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CropWatchError)
async def cropwatch_error_handler(request: Request, exc: CropWatchError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Include routers
app.include_router(alerts.router, tags=["Alerts"])
app.include_router(ndvi.router, tags=["NDVI"])
app.include_router(weather.router, tags=["Weather"])
app.include_router(chat.router, tags=["Chat"])


@app.get("/")
async def get_index():
    """Root endpoint."""
    return {
        "message": "Welcome to CropWatch API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "analyze": "/analyze-ndvi",
            "alerts": "/alerts",
            "generate": "/generate-ndvi",
            "analytics": "/analytics",
            "weather": "/weather",
            "advisor": "/crop-advisor",
        }
    }


@app.get("/health")
async def health_check(request: Request):
    """
    Check reachability of the managed backend and the weather provider.

    Returns:
        Overall status and per-dependency status
    """
    client = request.app.state.http_client
    services = {
        "database": await check_service_health(
            client, f"{config.SUPABASE_URL}/rest/v1/",
            headers={"apikey": config.SUPABASE_ANON_KEY},
        ),
        "weather": await check_service_health(
            client, config.WEATHER_API_URL,
            params={"latitude": 0, "longitude": 0, "current": "temperature_2m"},
        ),
    }
    all_healthy = all(services.values())

    return {
        "status": "healthy" if all_healthy else "degraded",
        "services": {name: "healthy" if ok else "unhealthy" for name, ok in services.items()},
    }


def main():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


# Main entry point
if __name__ == "__main__":
    main()
