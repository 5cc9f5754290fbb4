import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aigateway.api.v1.router import api_v1_router
from aigateway.core.config import settings, validate_settings_for_production
from aigateway.core.logging import setup_logging
from aigateway.core.metrics import PROVIDERS_ENABLED, PrometheusMiddleware, metrics_response
from aigateway.core.sentry import init_sentry
from aigateway.gateway.gateway import build_gateway

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: a ConfigurationError here aborts the process
    validate_settings_for_production()
    logger.info("Starting AI generation gateway...")
    app.state.gateway = build_gateway(settings)
    PROVIDERS_ENABLED.set(len(app.state.gateway.registry.chain()))

    yield

    logger.info("AI generation gateway shut down")


app = FastAPI(
    title="AI Generation Gateway",
    description="Single text-generation endpoint with provider fallback, timeouts and health status",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Metrics middleware
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    return metrics_response()
