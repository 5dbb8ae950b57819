"""Transfer Scheduler API - FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map TransferError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, services and the due-transfer scheduler are created in lifespan and
      torn down in reverse order

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - One scheduler per process, started only when SCHEDULER_ENABLED is true; run a
      single scheduling replica per database
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transfer_scheduler.api.error_handlers import register_error_handlers
from transfer_scheduler.api.routes import health, recurring_transfers, scheduled_transfers
from transfer_scheduler.config import get_settings
from transfer_scheduler.infrastructure.database import init_db
from transfer_scheduler.infrastructure.observability import setup_logging
from transfer_scheduler.services.composition import build_transfer_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    services = build_transfer_services(settings, db)
    app.state.services = services
    if settings.scheduler_enabled:
        services.scheduler.start()
    logger.info("Transfer Scheduler API started")
    yield
    logger.info("Transfer Scheduler API shutting down")
    await services.aclose()
    await db.dispose()


app = FastAPI(
    title="Transfer Scheduler API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(scheduled_transfers.router)
app.include_router(recurring_transfers.router)

register_error_handlers(app)
