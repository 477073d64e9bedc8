"""FastAPI application wiring for Garage Console.

This module bootstraps the HTTP API used by the dashboard:

- Configures logging, CORS (optional for the admin UI), Prometheus metrics
  and rate limiting.
- Maps the console's exception hierarchy to JSON error responses.
- Exposes health/version/config endpoints and mounts the garage router.
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .accounts.landing import SIGN_IN_PATH
from .app_logging import init_logging
from .config import get_settings
from .errors import GarageConsoleError
from .models.session import get_engine, init_schema
from .rate_limit import limiter
from .routers import garages

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    if settings.auto_create_schema:
        init_schema(get_engine())
    yield


app = FastAPI(title="Garage Console", version=__version__, lifespan=lifespan)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
# Optional CORS for admin UI
admin_ui_origins = get_settings().admin_ui_origins
if admin_ui_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(admin_ui_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(garages.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.exception_handler(GarageConsoleError)
async def handle_console_error(request: Request, exc: GarageConsoleError) -> JSONResponse:
    """Render console errors as ``{"detail": ...}`` with the matching status."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail}, headers=headers
    )


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }


@app.get("/api/config")
async def config():
    """Expose selected frontend configuration."""
    settings = get_settings()
    return {
        "BRAND_NAME": settings.brand_name,
        "LOGO_URL": settings.logo_url,
        "SIGN_IN_PATH": SIGN_IN_PATH,
    }
