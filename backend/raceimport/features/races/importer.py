"""Import entry point: route a locator to its adapter and ingest it."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import LocatorError
from .ingestion import IngestionService
from .records import NEEDS_RACE_SELECTION, ImportMeta, ImportOutcome
from .sources.base import ProgressCallback, ResultSource
from .sources.http import UpstreamClient
from .sources.raceresult import RaceResultSource, parse_raceresult_url
from .sources.sporthive import SporthiveSource, fetch_event_races, parse_sporthive_url

logger = logging.getLogger(__name__)

RACERESULT_HOST = "raceresult.com"


def is_raceresult_locator(locator: str) -> bool:
    return RACERESULT_HOST in locator.lower()


async def import_results(
    locator: str,
    meta: ImportMeta,
    session_factory: async_sessionmaker[AsyncSession],
    http_client: Optional[httpx.AsyncClient] = None,
    on_progress: Optional[ProgressCallback] = None,
    service: Optional[IngestionService] = None,
) -> ImportOutcome:
    """
    Import one race from a results URL.

    my.raceresult.com URLs go to the RaceResult adapter, everything else to
    Sporthive. PDF-text booklets are imported offline
    (scripts/import_pdf_results.py) and never come through here.

    Args:
        locator: Results URL
        meta: Display metadata and options (replace, list_name, race_id)
        session_factory: Where to persist
        http_client: Shared httpx client (a MockTransport one in tests)
        on_progress: Called with the running finisher count
        service: Orchestrator override

    Returns:
        ok / already_imported / needs_race_selection outcome

    Raises:
        LocatorError, DiscoveryError, UpstreamError, EmptyResultError
    """
    locator = (locator or "").strip()
    if not locator:
        raise LocatorError("Locator is required")

    service = service or IngestionService(session_factory)

    async with UpstreamClient(client=http_client) as upstream:
        if is_raceresult_locator(locator):
            source: ResultSource = RaceResultSource(
                parse_raceresult_url(locator),
                upstream,
                list_name=meta.list_name,
            )
        else:
            event_id, url_race_id = parse_sporthive_url(locator)
            race_id = meta.race_id or url_race_id
            if not race_id:
                races = await fetch_event_races(upstream, event_id)
                logger.info(f"Sporthive event {event_id} needs race selection ({len(races)} races)")
                return ImportOutcome(
                    ok=False,
                    reason=NEEDS_RACE_SELECTION,
                    extra={
                        "event_id": event_id,
                        "races": [vars(r) for r in races],
                    },
                )
            source = SporthiveSource(event_id, str(race_id), upstream)

        return await service.ingest(source, meta, on_progress=on_progress)
