"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from alumnic import __version__
from alumnic.api.dependencies import build_registration_service
from alumnic.api.v1 import router as v1_router
from alumnic.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Student registration API v1 - Verify enrollment and create directory accounts",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Builds the registration service on startup. Directory sessions and
    portal clients are per request, so there is nothing to close on
    shutdown.
    """
    settings = get_settings()
    logging.getLogger("alumnic").setLevel(settings.log_level.upper())

    logger.info("Starting application...")
    logger.info("Directory: %s, portal: %s", settings.ldap_url, settings.portal_form_url)
    app.state.registration_service = build_registration_service(settings)
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title="alumnic",
    description="Student account provisioning - Enrollment document check and LDAP account creation",
    version=__version__,
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with directory validation.

    Returns 200 OK if the application can bind to the directory.
    Raises exception if the bind fails.
    """
    service = request.app.state.registration_service
    await asyncio.to_thread(service.directory.ping)

    return {"status": "healthy"}
