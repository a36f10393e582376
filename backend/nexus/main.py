"""Nexus API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map NexusError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and the shared outbound HTTP client initialized on startup and
      released on shutdown via the lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Three error handler layers (api/error_handlers.py): NexusError (domain),
      RequestValidationError (Pydantic), Exception (catch-all)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nexus.api.error_handlers import register_error_handlers
from nexus.api.routes import (
    analytics, campaigns, connections, domains, health, oauth, wallet, webhooks,
)
from nexus.config import get_settings
from nexus.infrastructure.database import close_db, init_db
from nexus.infrastructure.http_client import close_http_client, init_http_client
from nexus.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(settings)
    init_http_client(settings)
    logger.info("Nexus API started")
    yield
    logger.info("Nexus API shutting down")
    await close_http_client()
    await close_db()


app = FastAPI(
    title="Nexus Integration Broker", version="1.0.0", lifespan=lifespan,
)

# CORS: origins come from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(oauth.router)
app.include_router(connections.router)
app.include_router(webhooks.router)
app.include_router(domains.router)
app.include_router(wallet.router)
app.include_router(campaigns.router)
app.include_router(analytics.router)
