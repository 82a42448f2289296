"""Catalog API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_api.api.categories import router as categories_router
from catalog_api.api.errors import setup_exception_handlers
from catalog_api.api.exports import router as exports_router
from catalog_api.api.health import router as health_router
from catalog_api.api.middleware import setup_middleware
from catalog_api.api.products import router as products_router
from catalog_api.catalog.seed import seed_sample_data
from catalog_api.infrastructure.config import settings
from catalog_api.infrastructure.database import async_session_factory, create_schema, engine
from catalog_api.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging(settings.log_level, settings.json_logs, hostname=settings.hostname)

    logger.info(
        "Starting Catalog API",
        version=settings.api_version,
        debug=settings.debug,
        hostname=settings.hostname,
    )

    if settings.create_schema_on_startup:
        await create_schema()
        logger.info("Database schema ensured")

    if settings.seed_sample_data:
        async with async_session_factory() as session:
            await seed_sample_data(session)

    yield

    # Shutdown
    logger.info("Shutting down Catalog API")
    await engine.dispose()


app = FastAPI(
    title="Catalog API",
    description="Product catalog management with filtered search and batch exports",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Problem-detail responses for every error
setup_exception_handlers(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(exports_router)
app.include_router(products_router)
app.include_router(categories_router)
