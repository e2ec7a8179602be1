# backend/parkbook/main.py
"""
ParkBook API application.

Versioned routers live under /api/v1; health and metrics are mounted at the
root so load balancers and Prometheus can reach them without a version.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_VERSION
from .database import Base, engine
from .errors import register_error_handlers
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import company as company_v1
from .routes.v1 import health as health_v1
from .routes.v1 import payments as payments_v1

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("ParkBook API starting up...")
    logger.info(f"Environment: {settings.environment}")

    if not settings.is_production:
        # Registers every table on Base.metadata before create_all.
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=engine)

    if not settings.payment_webhook_secret.get_secret_value():
        logger.warning("Payment webhook secret is not configured; every webhook will be rejected")

    yield

    logger.info("ParkBook API shutting down...")
    engine.dispose()


app = FastAPI(
    title=settings.api_title,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(company_v1.router, prefix="/company")

app.include_router(api_v1)
app.include_router(health_v1.router)


@app.get("/")
def read_root() -> dict[str, str]:
    return {"message": settings.api_title, "version": API_VERSION, "docs": "/docs"}


__all__ = ["app"]
