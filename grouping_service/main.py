"""
Application entry point: FastAPI app, middleware stack and health routes.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from grouping_service.config import settings
from grouping_service.infrastructure.farm_registry_client import get_registry_client
from grouping_service.middleware.error_handler import ErrorHandlerMiddleware
from grouping_service.api.v1.routers import groups

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Applied to every route by SlowAPIMiddleware
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup and release the registry client on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version} (log level {settings.log_level})")
    logger.info(f"Clustering config: compact_span_multiple={settings.grouping_compact_span_multiple}, "
                f"max_elongation={settings.grouping_max_elongation}, "
                f"border_buffer_m={settings.grouping_border_buffer_m}")
    logger.info(f"Farm registry at {settings.farm_registry_base_url}, "
                f"{settings.max_retry_attempts} attempts per request")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    await get_registry_client().close()
    logger.info("Farm registry client closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Production Group Formation API for Rice Cultivation Clusters

    This API proposes production groups: sets of nearby plots sharing a rice
    variety and a planting window, sized so one supervisor can manage them.

    ## Features

    - **Group Preview**: Propose groups for caller-supplied plots or for a
      cluster and season read from the farm registry
    - **Ungrouped Plot Explanations**: Every plot left out carries a reason,
      the nearest group and remediation suggestions
    - **Supervisor Advice**: Round-robin assignment, least loaded supervisor first
    - **Robust Error Handling**: Automatic retries with exponential backoff for
      farm registry calls
    - **Rate Limiting**: Protects the API from abuse

    ## Grouping Algorithm

    1. Partitions plots by rice variety and planting-date window
    2. Projects coordinates to a planar system (UTM)
    3. Builds a KD-Tree for proximity queries
    4. Merges plots closest-first under the proximity threshold, refusing
       merges that would form elongated, chain-like groups
    5. Splits oversized clusters and rejects undersized ones
    6. Classifies every ungrouped plot with a single reason
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Errors escaping the routers
app.add_middleware(ErrorHandlerMiddleware)

app.include_router(groups.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """Service identity and liveness."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    return {"status": "healthy", "service": settings.app_name}
