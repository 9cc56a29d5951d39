"""
Race Import API

FastAPI application for importing and querying race results.
"""

from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI

from raceimport.config import settings
from raceimport.db.session import init_db
from raceimport.api.v1.router import api_router


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Race Import API...")
    await init_db()
    logger.info("Database initialized")

    if not settings.admin_api_key:
        logger.info("Admin import route disabled (ADMIN_API_KEY not set)")

    yield

    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="Race Import API",
    description="Race results ingestion from Sporthive, RaceResult and PDF booklets",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}
