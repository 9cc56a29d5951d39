"""
Sporthive results adapter.

Crawls the classifications endpoint of eventresults-api.sporthive.com
page by page (offset-based). The API has answered with several JSON
envelopes over time; each page is resolved once into a ClassificationPage
and each row through a field-alias resolver into a SourceRecord.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from raceimport.config import settings
from ..errors import LocatorError
from ..records import EventRace, SourceRecord
from ..timing import gender_code, parse_time
from .base import ProgressCallback, ResultSource
from .http import UpstreamClient

logger = logging.getLogger(__name__)

_RACE_URL_RE = re.compile(r"events/(\d+)/races/(\d+)")
_EVENT_URL_RE = re.compile(r"events/(\d+)")


# =============================================================================
# Locator
# =============================================================================

def parse_sporthive_url(url: str) -> tuple[str, Optional[str]]:
    """
    Extract (event_id, race_id) from a Sporthive URL.

    Handles:
        https://results.sporthive.com/events/123/races/3          → ("123", "3")
        https://results.sporthive.com/events/123/races/3/bib/456  → ("123", "3")
        https://results.sporthive.com/events/123                  → ("123", None)

    Raises:
        LocatorError: No event ID in the URL
    """
    m = _RACE_URL_RE.search(url or "")
    if m:
        return m.group(1), m.group(2)
    m = _EVENT_URL_RE.search(url or "")
    if m:
        return m.group(1), None
    raise LocatorError(f"Cannot parse event ID from URL: {url}")


# =============================================================================
# Response shapes
# =============================================================================

class EnvelopeShape(str, Enum):
    ARRAY = "array"  # [ {...}, ... ]
    PARTICIPANTS = "participants"  # {"participants": [...]}
    RESULTS = "results"  # {"results": [...]}
    FULL_CLASSIFICATIONS = "fullClassifications"  # {"fullClassifications": [{"classification": {...}}]}
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassificationPage:
    """One page of raw classification rows, envelope already unwrapped."""

    shape: EnvelopeShape
    rows: list[dict]


def read_envelope(payload: Any) -> ClassificationPage:
    """Resolve any known envelope into its row list."""
    if isinstance(payload, list):
        return ClassificationPage(EnvelopeShape.ARRAY, _dicts(payload))
    if isinstance(payload, dict):
        if isinstance(payload.get("fullClassifications"), list):
            rows = [
                item.get("classification") or item
                for item in _dicts(payload["fullClassifications"])
            ]
            return ClassificationPage(EnvelopeShape.FULL_CLASSIFICATIONS, _dicts(rows))
        if isinstance(payload.get("participants"), list):
            return ClassificationPage(EnvelopeShape.PARTICIPANTS, _dicts(payload["participants"]))
        if isinstance(payload.get("results"), list):
            return ClassificationPage(EnvelopeShape.RESULTS, _dicts(payload["results"]))
    return ClassificationPage(EnvelopeShape.UNKNOWN, [])


def _dicts(items: list) -> list[dict]:
    return [item for item in items if isinstance(item, dict)]


# =============================================================================
# Field aliases
# =============================================================================

def normalize_classification(raw: dict) -> SourceRecord:
    """Map one classification row, whatever its field names, to a SourceRecord."""
    name = _first(raw, "name", "fullName", "displayName")
    if not name:
        name = " ".join(
            str(part).strip()
            for part in (raw.get("firstName"), raw.get("lastName"))
            if part
        )

    gender = gender_code(raw.get("gender"))
    if gender is None:
        gender = gender_code(raw.get("genderCode"))

    bib = _first(raw, "bib", "bibNumber", "startNumber")

    return SourceRecord(
        bib=str(bib).strip() if bib is not None else None,
        name=str(name).strip() or None,
        gender=gender,
        age_group=_first(raw, "category", "ageGroup", "categoryName"),
        chip_time_s=_seconds(_first(raw, "chipTime", "finishTime", "time")),
        overall_rank=_rank(_first(raw, "rank", "overallRank", "position")),
        gender_rank=_rank(_first(raw, "genderRank", "rankGender")),
        age_group_rank=_rank(_first(raw, "categoryRank", "rankCategory")),
        country_code=_first(raw, "countryCode", "nationality"),
    )


def _first(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _rank(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    digits = re.sub(r"\D", "", str(value))
    return int(digits) if digits and int(digits) > 0 else None


def _seconds(value: Any) -> Optional[int]:
    """Chip time as whole seconds: numbers are seconds, strings are clock times."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    return parse_time(str(value))


# =============================================================================
# Client
# =============================================================================

async def fetch_event_races(
    upstream: UpstreamClient,
    event_id: str,
    api_base: Optional[str] = None,
    timeout_s: Optional[float] = None,
) -> list[EventRace]:
    """
    List the races of an event so a caller can pick one.

    Raises:
        UpstreamError: Event lookup failed
    """
    base = api_base or settings.sporthive_api_base
    data = await upstream.get_json(
        f"{base}/events/{event_id}",
        timeout=timeout_s or settings.sporthive_timeout_s,
    )
    data = data if isinstance(data, dict) else {}
    races = data.get("races") or (data.get("event") or {}).get("races") or []

    result = []
    for r in _dicts(races):
        race_id = _first(r, "id", "raceId", "race_id")
        if race_id is None or str(race_id).strip() == "":
            continue
        participants = _first(r, "participantCount", "participants")
        result.append(
            EventRace(
                id=str(race_id),
                name=_first(r, "name", "raceName", "race_name") or f"Race {race_id}",
                distance=r.get("distance"),
                participants=participants if isinstance(participants, int) else None,
            )
        )
    return result


class SporthiveSource(ResultSource):
    """
    All classifications of one Sporthive race.

    Usage:
        async with UpstreamClient() as upstream:
            source = SporthiveSource("123", "3", upstream)
            records = await source.fetch()
    """

    kind = "sporthive"

    def __init__(
        self,
        event_id: str,
        race_id: str,
        upstream: UpstreamClient,
        page_size: Optional[int] = None,
        delay_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        api_base: Optional[str] = None,
    ):
        self.event_id = event_id
        self.race_id = race_id
        self.upstream = upstream
        self.page_size = page_size or settings.sporthive_page_size
        self.delay_s = settings.sporthive_delay_s if delay_s is None else delay_s
        self.timeout_s = timeout_s or settings.sporthive_timeout_s
        self.api_base = api_base or settings.sporthive_api_base

    @property
    def source_event_id(self) -> str:
        return self.event_id

    @property
    def source_race_id(self) -> str:
        return self.race_id

    async def fetch_page(self, offset: int) -> ClassificationPage:
        """One page of classifications; 404 means there is no more data."""
        url = (
            f"{self.api_base}/events/{self.event_id}/races/{self.race_id}"
            f"/classifications/search"
        )
        payload = await self.upstream.get_json(
            url,
            params={"count": self.page_size, "offset": offset},
            timeout=self.timeout_s,
            not_found_ok=True,
        )
        if payload is None:
            return ClassificationPage(EnvelopeShape.UNKNOWN, [])
        page = read_envelope(payload)
        logger.debug(f"Sporthive {self.event_id}/{self.race_id} offset={offset}: {len(page.rows)} rows ({page.shape.value})")
        return page

    async def fetch(self, on_progress: Optional[ProgressCallback] = None) -> list[SourceRecord]:
        records: list[SourceRecord] = []
        offset = 0

        while True:
            page = await self.fetch_page(offset)
            if not page.rows:
                break

            for raw in page.rows:
                record = normalize_classification(raw)
                if record.name:
                    records.append(record)
            if on_progress:
                on_progress(len(records))

            if len(page.rows) < self.page_size:
                break
            offset += len(page.rows)
            await asyncio.sleep(self.delay_s)

        logger.info(f"Sporthive {self.event_id}/{self.race_id}: {len(records)} finishers")
        return records
