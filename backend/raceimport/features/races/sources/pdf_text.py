"""Parser for race results flattened from PDF to plain text.

A results booklet lists the same bib in up to three places: a bib-only
overall leaderboard, a gender leaderboard, and the age-group section that
carries the runner's name. The parser walks the text once, line by line,
then joins the three views by bib.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from ..records import SourceRecord
from ..timing import GENDER_FEMALE, GENDER_MALE, gender_from_label, parse_time
from .base import ProgressCallback, ResultSource

logger = logging.getLogger(__name__)

# Race header line → race key
DEFAULT_RACE_HEADERS = {
    "Half Marathon": "hm",
    "5K": "5k",
    "Silla de ruedas": "hm",  # wheelchair division runs the half course
}

OVERALL_LABEL = "Overall"

# "01:21:37,03" / "1:21:37" / "21:37"
TIME_TOKEN_RE = re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?(?:,\d{2})?\b")

# "42. 1234 Some Name [AgeGroup] time [time ...]"
ROW_RE = re.compile(r"^(\d+)\.\s+(\d+)\s+(?:(.*?)\s+)?(\d{1,2}:\d{2}.*)$")

# Column header lines
SKIP_RE = re.compile(r"^(Results\b|Pl\.\s+Bib)", re.IGNORECASE)

_AGE_RANGE = r"(?:\d{1,2}[-+]\d{0,2}|\d{2}\+)"
GENDER_RE = re.compile(r"^(Female|Male)$")
AGE_GROUP_RE = re.compile(rf"^(Female|Male)\s+{_AGE_RANGE}$")
OPEN_RE = re.compile(r"^Open\s+(F|M)$", re.IGNORECASE)
OVERALL_RE = re.compile(r"^overall$", re.IGNORECASE)

# Category repeated at the end of the name field on some layouts
INLINE_AGE_GROUP_RE = re.compile(
    rf"\s+((?:(?:Female|Male)\s+{_AGE_RANGE})|Open\s+[FM]|overall)\s*$",
    re.IGNORECASE,
)


class Section(str, Enum):
    OVERALL = "overall"  # bib-only leaderboard → overall rank
    GENDER = "gender"  # gender leaderboard → gender rank
    AGE_GROUP = "age_group"  # named rows → full record


@dataclass(frozen=True)
class ParserState:
    """Where the parser is in the document."""

    race: Optional[str] = None
    section: Optional[Section] = None
    gender: Optional[int] = None
    age_group: Optional[str] = None


@dataclass(frozen=True)
class ParsedRow:
    """One data row, resolved against the state it appeared in."""

    race: str
    section: Section
    rank: int
    bib: str
    name: Optional[str]
    gender: Optional[int]
    age_group: Optional[str]
    chip_time_s: Optional[int]


def step(
    state: ParserState,
    line: str,
    race_headers: Mapping[str, str] = DEFAULT_RACE_HEADERS,
) -> tuple[ParserState, Optional[ParsedRow]]:
    """Advance the parser by one line.

    Returns the next state and the data row on this line, if any.
    """
    line = line.strip()
    if not line or SKIP_RE.match(line):
        return state, None

    race_key = _race_key(line, race_headers)
    if race_key:
        return ParserState(race=race_key, section=Section.OVERALL), None

    if OVERALL_RE.match(line):
        return replace(state, section=Section.OVERALL, gender=None, age_group=None), None

    if GENDER_RE.match(line):
        gender = GENDER_FEMALE if line == "Female" else GENDER_MALE
        return replace(state, section=Section.GENDER, gender=gender, age_group=None), None

    m = AGE_GROUP_RE.match(line)
    if m:
        gender = GENDER_FEMALE if m.group(1) == "Female" else GENDER_MALE
        return replace(state, section=Section.AGE_GROUP, gender=gender, age_group=line), None

    m = OPEN_RE.match(line)
    if m:
        letter = m.group(1).upper()
        gender = GENDER_FEMALE if letter == "F" else GENDER_MALE
        return replace(
            state, section=Section.AGE_GROUP, gender=gender, age_group=f"Open {letter}"
        ), None

    if not state.race or not state.section:
        return state, None

    return state, _parse_row(state, line)


def _parse_row(state: ParserState, line: str) -> Optional[ParsedRow]:
    m = ROW_RE.match(line)
    if not m:
        return None

    times = TIME_TOKEN_RE.findall(m.group(4))
    if not times:
        return None

    rank = int(m.group(1))
    bib = m.group(2)
    name = (m.group(3) or "").strip()

    inline_group = None
    im = INLINE_AGE_GROUP_RE.search(name)
    if im:
        inline_group = im.group(1)
        name = name[:im.start()].strip()

    gender = state.gender
    if inline_group:
        gender = gender_from_label(inline_group) or gender

    age_group = inline_group or state.age_group
    if state.section == Section.OVERALL and not age_group:
        age_group = OVERALL_LABEL

    return ParsedRow(
        race=state.race,
        section=state.section,
        rank=rank,
        bib=bib,
        # Bib-only layouts print the bib in the name column
        name=None if not name or name == bib else name,
        gender=gender,
        age_group=age_group,
        chip_time_s=parse_time(times[-1]),  # last time = finish, earlier = splits
    )


def _race_key(line: str, race_headers: Mapping[str, str]) -> Optional[str]:
    lowered = line.lower()
    for header, key in race_headers.items():
        if header.lower() == lowered:
            return key
    return None


@dataclass
class RaceSections:
    """Everything collected for one race before the join."""

    overall_ranks: dict[str, int] = field(default_factory=dict)
    gender_ranks: dict[str, int] = field(default_factory=dict)
    records: dict[str, SourceRecord] = field(default_factory=dict)

    def add(self, row: ParsedRow) -> None:
        if row.section == Section.OVERALL:
            self.overall_ranks.setdefault(row.bib, row.rank)
            # Named overall rows are the elite leaderboard
            if row.name:
                self._add_record(row)
        elif row.section == Section.GENDER:
            self.gender_ranks.setdefault(row.bib, row.rank)
        else:
            self._add_record(row)

    def _add_record(self, row: ParsedRow) -> None:
        existing = self.records.get(row.bib)
        if existing is None:
            self.records[row.bib] = SourceRecord(
                bib=row.bib,
                name=row.name,
                gender=row.gender,
                age_group=row.age_group,
                age_group_rank=row.rank,
                chip_time_s=row.chip_time_s,
            )
        elif existing.name is None and row.name:
            existing.name = row.name

    def merge(self) -> dict[str, SourceRecord]:
        """One record per named bib, with overall and gender ranks joined in."""
        merged: dict[str, SourceRecord] = {}
        for bib, record in self.records.items():
            if not record.name:
                continue
            merged[bib] = replace(
                record,
                overall_rank=self.overall_ranks.get(bib),
                gender_rank=self.gender_ranks.get(bib),
            )
        return merged


class PdfTextParser:
    """Parser for results booklets already extracted to text."""

    def __init__(self, race_headers: Optional[Mapping[str, str]] = None):
        """
        Args:
            race_headers: Race header line → race key.
                Defaults to DEFAULT_RACE_HEADERS.
        """
        self.race_headers = dict(race_headers or DEFAULT_RACE_HEADERS)

    def parse_file(self, path: str | Path) -> dict[str, dict[str, SourceRecord]]:
        """Parse a local text file."""
        text = Path(path).read_text(encoding="utf-8-sig")
        return self.parse_text(text)

    def parse_text(self, text: str) -> dict[str, dict[str, SourceRecord]]:
        """Parse a text block into {race_key: {bib: record}}.

        Races whose sections yield no named finishers are left out.
        """
        races: dict[str, RaceSections] = {}
        state = ParserState()
        for line in text.splitlines():
            state, row = step(state, line, self.race_headers)
            if row is not None:
                races.setdefault(row.race, RaceSections()).add(row)

        parsed: dict[str, dict[str, SourceRecord]] = {}
        for race_key in dict.fromkeys(self.race_headers.values()):
            merged = races[race_key].merge() if race_key in races else {}
            if not merged:
                logger.info(f"No finishers for {race_key}, skipping")
                continue
            parsed[race_key] = merged
        return parsed


class PdfTextSource(ResultSource):
    """One race parsed from a results booklet, ready for ingestion."""

    kind = "pdf_text"

    def __init__(self, event_id: str, race_key: str, records: list[SourceRecord]):
        self._event_id = event_id
        self._race_key = race_key
        self._records = records

    @property
    def source_event_id(self) -> str:
        return self._event_id

    @property
    def source_race_id(self) -> str:
        return self._race_key

    async def fetch(self, on_progress: Optional[ProgressCallback] = None) -> list[SourceRecord]:
        if on_progress:
            on_progress(len(self._records))
        return list(self._records)
