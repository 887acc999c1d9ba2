import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from formrelay.api.v1 import contact
from formrelay.core.config import settings
from formrelay.core.errors import register_exception_handlers
from formrelay.core.logging import setup_logging
from formrelay.core.middleware import LatencyMonitorMiddleware, RequestIdMiddleware
from formrelay.core.rate_limiter import rate_limiter, sweep_periodically
from formrelay.core.security_headers import SecurityHeadersMiddleware

setup_logging()
logger = logging.getLogger(__name__)


tags_metadata = [
    {
        "name": "contact",
        "description": "**Contact** - Public contact form relayed to the site owner by email.",
    },
    {
        "name": "health",
        "description": "**Health** - Liveness and service metadata.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting %s v%s", settings.PROJECT_NAME, settings.VERSION)
    logger.info("Environment: %s", settings.ENVIRONMENT)

    sweeper = None
    if settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(
            sweep_periodically(
                rate_limiter,
                interval_seconds=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
                window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
                retention_multiple=settings.RATE_LIMIT_SWEEP_MULTIPLE,
            )
        )

    yield

    logger.info("Shutting down...")
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## FormRelay API

Receives contact form submissions from static sites, screens them for abuse
and forwards them to the site owner by email.
    """,
    openapi_tags=tags_metadata,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LatencyMonitorMiddleware)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

app.include_router(contact.router, prefix=settings.API_V1_PREFIX, tags=["contact"])


@app.get("/health", summary="Health check", tags=["health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/", summary="API root", tags=["health"])
async def root():
    """Root endpoint with API info"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": "/docs",
        "health": "/health",
        "contact": f"{settings.API_V1_PREFIX}/contact",
    }
