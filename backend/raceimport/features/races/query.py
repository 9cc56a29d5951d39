"""Read side of imported results: listings, bib lookup, claims, statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import groupby
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from .models import Finisher, RaceEvent
from .repository import FinisherRepository, RaceEventRepository
from .timing import format_time


@dataclass
class BibLookup:
    """A finisher with event context, scope totals and percentiles."""

    finisher: Finisher
    race_event: RaceEvent
    chip_time_fmt: Optional[str]
    age_group_total: int
    gender_total: int
    overall_pct: Optional[int]  # share of the field beaten, 0-100
    age_group_pct: Optional[int]
    gender_pct: Optional[int]


@dataclass
class CategoryStats:
    """Chip-time summary for one (age group, gender) cell."""

    age_group: Optional[str]
    gender: Optional[int]
    finishers: int
    fastest_s: int
    avg_s: int
    median_s: int


def rank_percent(rank: Optional[int], total: int) -> Optional[int]:
    """round((1 - rank / total) * 100), halves rounded up; None without a rank."""
    if not rank:
        return None
    total = total or 1
    return math.floor((1 - rank / total) * 100 + 0.5)


def _percentile(sorted_values: list[int], pct: int) -> int:
    """Get percentile value from sorted list."""
    n = len(sorted_values)
    if n == 0:
        return 0
    idx = (pct / 100) * (n - 1)
    lower = int(math.floor(idx))
    upper = min(lower + 1, n - 1)
    weight = idx - lower
    return int(sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight)


def summarize_categories(
    rows: Sequence[tuple[Optional[str], Optional[int], int]],
) -> list[CategoryStats]:
    """Group (age_group, gender, chip_time_s) rows into per-category stats."""

    def cell(row):
        return (row[0] or "", row[1] or 0)

    stats = []
    for _, group in groupby(sorted(rows, key=lambda r: (cell(r), r[2])), key=cell):
        group = list(group)
        times = [r[2] for r in group]
        stats.append(
            CategoryStats(
                age_group=group[0][0],
                gender=group[0][1],
                finishers=len(times),
                fastest_s=times[0],
                avg_s=int(sum(times) / len(times)),
                median_s=_percentile(times, 50),
            )
        )
    return stats


class ResultsQueryService:
    """Queries over persisted race results."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = RaceEventRepository(db)
        self.finishers = FinisherRepository(db)

    async def list_race_events(self) -> list[RaceEvent]:
        return await self.events.list_recent()

    async def get_race_event(self, race_event_id: int) -> RaceEvent | None:
        return await self.events.get_by_id(race_event_id)

    async def list_finishers(
        self,
        race_event_id: int,
        age_group: str | None = None,
        gender: int | None = None,
        page: int = 0,
        per_page: int = 100,
    ) -> list[Finisher]:
        return await self.finishers.list_for_event(
            race_event_id,
            age_group=age_group,
            gender=gender,
            limit=per_page,
            offset=page * per_page,
        )

    async def lookup_bib(self, race_event_id: int, bib: str) -> BibLookup | None:
        """
        Find a bib and place it in its field.

        Returns:
            BibLookup, or None when the bib is not in this race
        """
        finisher = await self.finishers.get_by_bib(race_event_id, bib)
        if finisher is None:
            return None
        race_event = await self.events.get_by_id(race_event_id)

        age_group_total = await self.finishers.count(
            race_event_id=race_event_id, age_group=finisher.age_group
        )
        gender_total = await self.finishers.count(
            race_event_id=race_event_id, gender=finisher.gender
        )

        return BibLookup(
            finisher=finisher,
            race_event=race_event,
            chip_time_fmt=format_time(finisher.chip_time_s),
            age_group_total=age_group_total,
            gender_total=gender_total,
            overall_pct=rank_percent(finisher.overall_rank, race_event.total_finishers),
            age_group_pct=rank_percent(finisher.age_group_rank, age_group_total),
            gender_pct=rank_percent(finisher.gender_rank, gender_total),
        )

    async def claim_bib(self, race_event_id: int, bib: str, athlete_id: str) -> BibLookup | None:
        """
        Link a finisher to an athlete.

        Returns:
            The claimed result, or None when the bib is not in this race
        """
        finisher = await self.finishers.get_by_bib(race_event_id, bib)
        if finisher is None:
            return None
        await self.finishers.update(finisher, athlete_id=athlete_id)
        await self.db.commit()
        return await self.lookup_bib(race_event_id, bib)

    async def category_stats(self, race_event_id: int) -> list[CategoryStats]:
        rows = await self.finishers.timed_rows(race_event_id)
        return summarize_categories(rows)

    async def time_percentile(self, race_event_id: int, time_seconds: int) -> float:
        """Share of timed finishers faster than a time (0 = fastest)."""
        rows = await self.finishers.timed_rows(race_event_id)
        if not rows:
            return 0.0
        faster = sum(1 for _, _, t in rows if t < time_seconds)
        return round(faster / len(rows) * 100, 1)
