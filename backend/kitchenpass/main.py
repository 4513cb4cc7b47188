"""KitchenPass API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map KitchenPassError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kitchenpass.api.error_handlers import register_error_handlers
from kitchenpass.api.routes import health, invites, join, kitchens
from kitchenpass.config import get_settings
from kitchenpass.infrastructure import database
from kitchenpass.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("KitchenPass API started")
    yield
    logger.info("KitchenPass API shutting down")
    if database.db_manager:
        await database.db_manager.dispose()


app = FastAPI(
    title="KitchenPass API", version="1.0.0", lifespan=lifespan,
)

# CORS: origins from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router)
app.include_router(kitchens.router)
app.include_router(invites.router)
app.include_router(join.router)

register_error_handlers(app)
