"""
Admin API routes for results imports.

Protected by X-Admin-Key header (shared secret).
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Header
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from raceimport.config import settings
from raceimport.db.session import get_session_factory
from raceimport.features.races.errors import (
    DiscoveryError,
    EmptyResultError,
    LocatorError,
    UpstreamError,
)
from raceimport.features.races.importer import import_results
from raceimport.features.races.records import ImportMeta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# =============================================================================
# Dependencies
# =============================================================================

async def verify_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> str:
    """Verify admin API key."""
    if not settings.admin_api_key:
        raise HTTPException(status_code=503, detail="Admin API not configured")
    if x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")
    return x_admin_key


def get_http_client() -> Optional[httpx.AsyncClient]:
    """Upstream HTTP client; None lets the importer open its own."""
    return None


# =============================================================================
# Schemas
# =============================================================================

class ImportRequest(BaseModel):
    url: str = Field(..., description="Sporthive or RaceResult results URL")
    event_name: Optional[str] = None
    race_name: Optional[str] = None
    event_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    distance_m: Optional[int] = Field(None, gt=0)
    location: Optional[str] = None
    replace: bool = False
    list_name: Optional[str] = Field(None, description="RaceResult list, e.g. 'Online|Final'")
    race_id: Optional[str] = Field(None, description="Sporthive race when the URL has none")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/races/import", dependencies=[Depends(verify_admin_key)])
async def import_race(
    request: ImportRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """
    Import one race's results.

    Returns the import summary, or an already_imported /
    needs_race_selection result (HTTP 200, ok=false).
    """
    meta = ImportMeta(
        event_name=request.event_name,
        race_name=request.race_name,
        event_date=request.event_date,
        distance_m=request.distance_m,
        location=request.location,
        replace=request.replace,
        list_name=request.list_name,
        race_id=request.race_id,
    )

    try:
        outcome = await import_results(
            request.url,
            meta,
            session_factory,
            http_client=http_client,
        )
    except LocatorError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (DiscoveryError, EmptyResultError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Import of {request.url} failed upstream: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return outcome.to_dict()
