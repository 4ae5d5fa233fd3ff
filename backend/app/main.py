"""
Document Converter Backend - Main FastAPI Application.

Entry point for the converter API: file conversion with a free-tier quota and
premium subscriptions paid by bank transfer.

Run with:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from app.api.v1.convert import router as convert_router
from app.api.v1.subscription import router as subscription_router
from app.config import Settings, get_settings
from app.constants import API_TITLE, API_VERSION, SESSION_HEADER
from app.logging_config import setup_logging
from app.middleware import RequestContextMiddleware
from app.services.catalog import load_catalog
from app.services.converter import ConversionExecutor, SimulatedConverter
from app.services.eligibility import ConversionEligibilityPolicy
from app.services.quota_ledger import (
    InMemoryProfileRepository,
    QuotaLedger,
    SupabaseProfileRepository,
)
from app.services.records import (
    InMemoryConversionRecordStore,
    InMemorySubscriptionOrderStore,
    SupabaseConversionRecordStore,
    SupabaseSubscriptionOrderStore,
)
from app.services.sessions import SessionRegistry

# Get settings before logging setup so we know the debug flag
settings = get_settings()

# Configure logging
setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


def install_services(
    target_app: FastAPI,
    app_settings: Settings,
    supabase_client: AsyncSupabaseClient | None = None,
    converter: ConversionExecutor | None = None,
) -> None:
    """Build the core services and store them on app state.

    Uses Supabase-backed stores when a client is given, in-memory stores
    otherwise.

    Raises:
        CatalogError: the plan / payment channel catalog is missing or invalid.
    """
    catalog = load_catalog(app_settings.catalog_path)

    if supabase_client is not None:
        profiles = SupabaseProfileRepository(supabase_client, app_settings.persistence)
        conversion_records = SupabaseConversionRecordStore(supabase_client, app_settings.persistence)
        subscription_orders = SupabaseSubscriptionOrderStore(supabase_client, app_settings.persistence)
    else:
        profiles = InMemoryProfileRepository()
        conversion_records = InMemoryConversionRecordStore()
        subscription_orders = InMemorySubscriptionOrderStore()

    policy = ConversionEligibilityPolicy(free_limit=app_settings.quota.free_limit)
    ledger = QuotaLedger(profiles, free_limit=app_settings.quota.free_limit)

    target_app.state.catalog = catalog
    target_app.state.ledger = ledger
    target_app.state.conversion_records = conversion_records
    target_app.state.subscription_orders = subscription_orders
    target_app.state.sessions = SessionRegistry(
        policy=policy,
        ledger=ledger,
        records=conversion_records,
        converter=converter
        or SimulatedConverter(app_settings.conversion.simulated_delay_seconds),
        catalog=catalog,
        orders=subscription_orders,
        count_premium_conversions=app_settings.quota.count_premium_conversions,
        ttl_minutes=app_settings.conversion.session_timeout_minutes,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup", cors_origins=settings.cors_origins)

    # Initialize Supabase async client
    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_configured:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_secret_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.warning(
            "supabase_not_configured",
            detail="Using in-memory stores; bearer tokens will return 503",
        )

    _app.state.supabase = supabase_client

    install_services(_app, settings, supabase_client)
    logger.info(
        "services_initialized",
        free_limit=settings.quota.free_limit,
        count_premium_conversions=settings.quota.count_premium_conversions,
        persistence="supabase" if supabase_client else "memory",
    )

    yield

    logger.info("api_shutdown")


# Create FastAPI app
app = FastAPI(
    title=API_TITLE,
    description=(
        "API konversi dokumen PDF, DOCX, PPTX dan XLSX dengan kuota gratis "
        "dan langganan premium melalui transfer bank."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Request context middleware must come before CORS so every response gets
# the X-Request-ID and X-Session-ID headers (including preflight responses).
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", SESSION_HEADER],
)


# Include routers
app.include_router(convert_router, prefix="/api/v1")
app.include_router(subscription_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "API konversi dokumen dengan kuota gratis dan langganan premium",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
