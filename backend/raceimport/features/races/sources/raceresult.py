"""
RaceResult results adapter.

my.raceresult.com publishes results through RRPublish "lists". The list
name and its column layout differ per event, so an import first probes a
few conventional list names, then fetches every contest of the event page
by page.

List payload shape:
    {
      "DataFields": ["BIB", "ID", "AUTORANK", "DISPLAYNAME", "AGEGROUP.NAME", "Finish"],
      "groupFilters": [{"Type": 1, "Values": ["", "Half Marathon", "5K"]}],
      "data": {
        "#1_Half Marathon": {
          "#1_Female": [[...row...], [...row...], [123]],   # last row: total count
          "#2_Male":   [...],
        },
      },
    }
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, Optional, Sequence
from urllib.parse import quote

from raceimport.config import settings
from ..errors import DiscoveryError, LocatorError, UpstreamError
from ..models import RACERESULT_RACE_ID
from ..records import SourceRecord
from ..timing import gender_code, gender_from_label, parse_time
from .base import ProgressCallback, ResultSource
from .http import UpstreamClient

logger = logging.getLogger(__name__)

PROBE_SIZE = 5
CONTEST_FILTER_TYPE = 1

_EVENT_URL_RE = re.compile(r"raceresult\.com/(\d+)")
_GROUP_PREFIX_RE = re.compile(r"^#\d+_")

# (list_name, filters, num_results, page) -> list payload
FetchListPage = Callable[[str, dict, int, int], Awaitable[dict]]


def parse_raceresult_url(url: str) -> str:
    """
    Extract the event ID from a my.raceresult.com URL.

    https://my.raceresult.com/311000/results → "311000"

    Raises:
        LocatorError: No event ID in the URL
    """
    m = _EVENT_URL_RE.search(url or "")
    if not m:
        raise LocatorError(f"Cannot parse event ID from URL: {url}")
    return m.group(1)


def build_list_url(
    base_url: str,
    event_id: str,
    list_name: str,
    num_results: int,
    page: int,
    filters: Optional[dict] = None,
) -> str:
    """List URL with a hand-built query string; RaceResult rejects "|" encoded as %7C."""
    parts = [
        f"listname={quote(list_name, safe='|')}",
        f"num_results={num_results}",
        f"page={page}",
    ]
    for key, value in (filters or {}).items():
        if value is not None:
            parts.append(f"{key}={quote(str(value), safe='|')}")
    return f"{base_url}/{event_id}/RRPublish/data/list?{'&'.join(parts)}"


# =============================================================================
# Discovery
# =============================================================================

@dataclass
class DiscoveredList:
    """List name plus the layout needed for full fetches."""

    list_name: str
    data_fields: list[str] = field(default_factory=list)
    group_filters: list[dict] = field(default_factory=list)

    @property
    def contest_filter_key(self) -> Optional[str]:
        """Query key (f0, f1, ...) that selects a contest."""
        for idx, group in enumerate(self.group_filters):
            if group.get("Type") == CONTEST_FILTER_TYPE:
                return f"f{idx}"
        return None

    @property
    def contests(self) -> list[str]:
        for group in self.group_filters:
            if group.get("Type") == CONTEST_FILTER_TYPE:
                return [str(v) for v in group.get("Values") or [] if v]
        return []


def describe_list(list_name: str, payload: dict) -> DiscoveredList:
    """Read the layout out of a list payload."""
    return DiscoveredList(
        list_name=list_name,
        data_fields=[str(f) for f in payload.get("DataFields") or []],
        group_filters=[g for g in payload.get("groupFilters") or [] if isinstance(g, dict)],
    )


async def discover_list(
    fetch_page: FetchListPage,
    candidates: Sequence[str],
    delay_s: float = 0.0,
) -> DiscoveredList:
    """
    Probe candidate list names in order; the first that returns data wins.

    Args:
        fetch_page: Transport for one list page
        candidates: List names to try, in order
        delay_s: Pause between probes

    Raises:
        DiscoveryError: No candidate returned data
    """
    for idx, list_name in enumerate(candidates):
        if idx:
            await asyncio.sleep(delay_s)
        try:
            payload = await fetch_page(list_name, {}, PROBE_SIZE, 1)
        except UpstreamError as e:
            logger.info(f"Probe {list_name!r} failed: {e}")
            continue
        data = payload.get("data") if isinstance(payload, dict) else None
        if data:
            logger.info(f"Discovered RaceResult list {list_name!r}")
            return describe_list(list_name, payload)
        logger.debug(f"Probe {list_name!r} returned no data")

    raise DiscoveryError(
        "Could not find results list - provide the list name explicitly "
        f"(tried: {', '.join(candidates)})"
    )


# =============================================================================
# Extraction
# =============================================================================

def _find_field(fields: Sequence[str], *needles: str, exclude: tuple = ()) -> Optional[int]:
    upper = [f.upper() for f in fields]
    for needle in needles:
        for idx, name in enumerate(upper):
            if needle in name and not any(x in name for x in exclude):
                return idx
    return None


@dataclass(frozen=True)
class FieldLayout:
    """Column positions, located by field-name substring."""

    bib: Optional[int] = None
    name: Optional[int] = None
    first_name: Optional[int] = None
    age_group: Optional[int] = None
    finish: Optional[int] = None
    rank: Optional[int] = None
    gender: Optional[int] = None
    country: Optional[int] = None

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> "FieldLayout":
        return cls(
            bib=_find_field(fields, "BIB"),
            name=_find_field(
                fields,
                "DISPLAYNAME", "FULLNAME", "FLNAME", "LFNAME", "LASTNAME", "NAME",
                exclude=("AGEGROUP", "CONTEST", "CLUB", "TEAM", "NATION", "FIRSTNAME", "EVENT"),
            ),
            first_name=_find_field(fields, "FIRSTNAME"),
            age_group=_find_field(fields, "AGEGROUP", exclude=("RANK",)),
            finish=_find_field(fields, "FINISH", "CHIPTIME", "NETTIME"),
            rank=_find_field(
                fields, "AUTORANK", "OVERALLRANK", "RANK",
                exclude=("GENDER", "SEX", "AGEGROUP", "CATEGORY"),
            ),
            gender=_find_field(fields, "GENDER", "SEX", exclude=("RANK",)),
            country=_find_field(fields, "NATION", "COUNTRY", exclude=("FLAG",)),
        )


def _strip_group_prefix(key: str) -> str:
    return _GROUP_PREFIX_RE.sub("", str(key)).strip()


def iter_groups(data: dict) -> Iterator[tuple[str, str, list]]:
    """(contest, sub_group, rows) for every group in a list payload."""
    for contest_key, value in data.items():
        contest = _strip_group_prefix(contest_key)
        if isinstance(value, dict):
            for sub_key, rows in value.items():
                if isinstance(rows, list):
                    yield contest, _strip_group_prefix(sub_key), rows
        elif isinstance(value, list):
            # Single-level grouping: the key is the group label
            yield "", contest, value


def total_count(data: dict) -> int:
    """Largest total-count sentinel ([n]) in the payload, 0 when none."""
    total = 0
    for _, _, rows in iter_groups(data):
        for row in rows:
            if isinstance(row, list) and len(row) == 1 and isinstance(row[0], int):
                total = max(total, row[0])
    return total


def page_row_count(data: dict) -> int:
    """Data rows on a page, named or not; sentinels and the bib-only sub-group excluded."""
    return sum(
        1
        for _, sub_group, rows in iter_groups(data)
        if sub_group
        for row in rows
        if isinstance(row, list) and len(row) > 1
    )


def _cell(row: list, idx: Optional[int]) -> Optional[str]:
    if idx is None or idx >= len(row) or row[idx] is None:
        return None
    value = str(row[idx]).strip()
    return value or None


def _rank(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return int(digits) if digits and int(digits) > 0 else None


def _country(value: Optional[str]) -> Optional[str]:
    if value and re.fullmatch(r"[A-Za-z]{2,3}", value):
        return value.upper()
    return None


def extract_finishers(
    data: dict,
    layout: FieldLayout,
    contest: Optional[str] = None,
) -> list[SourceRecord]:
    """
    Flatten a list payload into records.

    Skips the unnamed sub-group (a bib-only duplicate of every finisher),
    total-count sentinel rows, and rows without a name.

    Args:
        data: The "data" object of a list payload
        layout: Column positions
        contest: Contest label used when the payload has no contest level
    """
    records: list[SourceRecord] = []
    for contest_label, sub_group, rows in iter_groups(data):
        if not sub_group:
            continue
        label_gender = gender_from_label(sub_group)

        for row in rows:
            if not isinstance(row, list) or len(row) <= 1:
                continue

            name = _cell(row, layout.name)
            first_name = _cell(row, layout.first_name)
            if name and first_name and first_name not in name:
                name = f"{first_name} {name}"
            if not name:
                continue

            gender = gender_code(_cell(row, layout.gender))
            records.append(
                SourceRecord(
                    bib=_cell(row, layout.bib),
                    name=name,
                    gender=gender if gender is not None else label_gender,
                    age_group=_cell(row, layout.age_group),
                    chip_time_s=parse_time(_cell(row, layout.finish)),
                    overall_rank=_rank(_cell(row, layout.rank)),
                    country_code=_country(_cell(row, layout.country)),
                    contest=contest_label or contest or "",
                )
            )
    return records


def dedupe_by_contest(records: Sequence[SourceRecord]) -> list[SourceRecord]:
    """Keep the first record per (contest, bib); bib-less rows key on name."""
    seen: set[tuple] = set()
    unique: list[SourceRecord] = []
    for record in records:
        key = (record.contest, record.bib or f"name:{record.name}")
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def backfill_overall_ranks(records: Sequence[SourceRecord]) -> list[SourceRecord]:
    """Sort by chip time (missing last) and number overall ranks 1..n in that order."""
    ordered = sorted(
        records,
        key=lambda r: (r.chip_time_s is None, r.chip_time_s or 0),
    )
    for position, record in enumerate(ordered, start=1):
        record.overall_rank = position
    return ordered


# =============================================================================
# Source
# =============================================================================

class RaceResultSource(ResultSource):
    """
    Every finisher of every contest of a RaceResult event.

    Usage:
        async with UpstreamClient() as upstream:
            source = RaceResultSource("311000", upstream)
            records = await source.fetch()
            source.discovered.list_name  # "Online|Final"
    """

    kind = "raceresult"

    def __init__(
        self,
        event_id: str,
        upstream: UpstreamClient,
        list_name: Optional[str] = None,
        page_size: Optional[int] = None,
        delay_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        base_url: Optional[str] = None,
        candidates: Optional[Sequence[str]] = None,
    ):
        self.event_id = event_id
        self.upstream = upstream
        self.list_name_override = list_name
        self.page_size = page_size or settings.raceresult_page_size
        self.delay_s = settings.raceresult_delay_s if delay_s is None else delay_s
        self.timeout_s = timeout_s or settings.raceresult_timeout_s
        self.base_url = base_url or settings.raceresult_base_url
        self.candidates = list(candidates or settings.raceresult_list_candidates)
        self.discovered: Optional[DiscoveredList] = None

    @property
    def source_event_id(self) -> str:
        return self.event_id

    @property
    def source_race_id(self) -> str:
        return RACERESULT_RACE_ID

    @property
    def default_event_name(self) -> str:
        return f"RaceResult {self.event_id}"

    @property
    def list_name(self) -> Optional[str]:
        if self.discovered:
            return self.discovered.list_name
        return self.list_name_override

    def describe(self) -> dict:
        out = super().describe()
        out["list_name"] = self.list_name
        return out

    async def fetch_list_page(
        self,
        list_name: str,
        filters: dict,
        num_results: int,
        page: int,
    ) -> dict:
        """
        One page of a list.

        Raises:
            UpstreamError: Any non-2xx response
        """
        url = build_list_url(self.base_url, self.event_id, list_name, num_results, page, filters)
        logger.debug(f"Fetching {url}")
        payload = await self.upstream.get_json(
            url,
            headers={
                "Accept": "application/json, text/javascript, */*",
                "Referer": f"{self.base_url}/{self.event_id}/",
                "X-Requested-With": "XMLHttpRequest",
            },
            timeout=self.timeout_s,
        )
        return payload if isinstance(payload, dict) else {}

    async def discover(self) -> DiscoveredList:
        """Resolve the list to use: explicit override, else probe candidates."""
        if self.list_name_override:
            probe = await self.fetch_list_page(self.list_name_override, {}, PROBE_SIZE, 1)
            self.discovered = describe_list(self.list_name_override, probe)
        else:
            logger.info(f"Discovering RaceResult event {self.event_id}...")
            self.discovered = await discover_list(
                self.fetch_list_page, self.candidates, self.delay_s
            )
        logger.info(
            f"Using list {self.discovered.list_name!r}, "
            f"fields: {', '.join(self.discovered.data_fields)}"
        )
        return self.discovered

    async def fetch(self, on_progress: Optional[ProgressCallback] = None) -> list[SourceRecord]:
        discovered = self.discovered or await self.discover()
        layout = FieldLayout.from_fields(discovered.data_fields)
        filter_key = discovered.contest_filter_key
        contests = discovered.contests or [""]

        records: list[SourceRecord] = []
        for idx, contest in enumerate(contests):
            if idx:
                await asyncio.sleep(self.delay_s)
            filters = {filter_key: contest} if contest and filter_key else {}
            records.extend(
                await self._fetch_contest(discovered, layout, contest, filters, records, on_progress)
            )

        unique = dedupe_by_contest(records)
        if layout.rank is None:
            unique = backfill_overall_ranks(unique)

        logger.info(
            f"RaceResult {self.event_id}: {len(unique)} finishers "
            f"({len(records) - len(unique)} duplicates dropped)"
        )
        return unique

    async def _fetch_contest(
        self,
        discovered: DiscoveredList,
        layout: FieldLayout,
        contest: str,
        filters: dict,
        fetched_so_far: list[SourceRecord],
        on_progress: Optional[ProgressCallback],
    ) -> list[SourceRecord]:
        records: list[SourceRecord] = []
        page = 1
        while True:
            payload = await self.fetch_list_page(discovered.list_name, filters, self.page_size, page)
            data = payload.get("data")
            if not isinstance(data, dict) or not data:
                break

            page_layout = layout
            if not discovered.data_fields and payload.get("DataFields"):
                page_layout = FieldLayout.from_fields([str(f) for f in payload["DataFields"]])

            rows = page_row_count(data)
            if not rows:
                break
            batch = extract_finishers(data, page_layout, contest=contest)
            records.extend(batch)
            if on_progress and batch:
                on_progress(len(fetched_so_far) + len(records))

            total = total_count(data)
            if rows < self.page_size or (total and page * self.page_size >= total):
                break
            page += 1
            await asyncio.sleep(self.delay_s)

        logger.info(f"Contest {contest or '(all)'}: {len(records)} rows")
        return records
