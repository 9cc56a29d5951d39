"""
Race results repositories.

Data access layer for RaceEvent and Finisher.
"""

from typing import Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from raceimport.shared.repository import BaseRepository
from .models import Finisher, RaceEvent
from .records import SourceRecord


class RaceEventRepository(BaseRepository[RaceEvent]):
    """Repository for imported races."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, RaceEvent)

    async def get_by_source(self, source_event_id: str, source_race_id: str) -> RaceEvent | None:
        """
        Get an import by its source identity.

        Args:
            source_event_id: Source-side event ID
            source_race_id: Source-side race ID ("rr" for RaceResult)

        Returns:
            RaceEvent if already imported, None otherwise
        """
        return await self.get_by(
            source_event_id=source_event_id,
            source_race_id=source_race_id,
        )

    async def list_recent(self) -> list[RaceEvent]:
        """All imports, newest event date first (undated last)."""
        query = select(RaceEvent).order_by(
            RaceEvent.event_date.is_(None),
            RaceEvent.event_date.desc(),
            RaceEvent.imported_at.desc(),
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def delete_with_finishers(self, race_event: RaceEvent) -> None:
        """
        Delete an import: finishers first, then the event row.

        Args:
            race_event: Event to remove
        """
        await self.db.execute(
            delete(Finisher).where(Finisher.race_event_id == race_event.id)
        )
        await self.db.delete(race_event)
        await self.db.flush()


class FinisherRepository(BaseRepository[Finisher]):
    """Repository for finisher rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Finisher)

    async def insert_many(
        self,
        race_event_id: int,
        records: Sequence[SourceRecord],
        batch_size: int = 50
    ) -> int:
        """
        Insert finishers with one multi-row INSERT per batch.

        Args:
            race_event_id: Owning event
            records: Normalized records (must have names)
            batch_size: Rows per statement

        Returns:
            Number of rows inserted
        """
        inserted = 0
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            await self.db.execute(
                insert(Finisher),
                [_finisher_row(race_event_id, r) for r in batch],
            )
            inserted += len(batch)
        return inserted

    async def get_by_bib(self, race_event_id: int, bib: str) -> Finisher | None:
        """First finisher with this bib in an event."""
        return await self.get_by(race_event_id=race_event_id, bib=bib)

    async def list_for_event(
        self,
        race_event_id: int,
        age_group: str | None = None,
        gender: int | None = None,
        limit: int = 100,
        offset: int = 0
    ) -> list[Finisher]:
        """
        Finishers of an event ordered by overall rank, with optional filters.

        Args:
            race_event_id: Event ID
            age_group: Exact age-group label
            gender: 1 or 2
            limit: Page size
            offset: Pagination offset
        """
        query = select(Finisher).where(Finisher.race_event_id == race_event_id)
        if age_group:
            query = query.where(Finisher.age_group == age_group)
        if gender:
            query = query.where(Finisher.gender == gender)
        query = (
            query.order_by(Finisher.overall_rank.is_(None), Finisher.overall_rank, Finisher.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def timed_rows(self, race_event_id: int) -> list[tuple[str | None, int | None, int]]:
        """(age_group, gender, chip_time_s) for every timed finisher of an event."""
        result = await self.db.execute(
            select(Finisher.age_group, Finisher.gender, Finisher.chip_time_s)
            .where(Finisher.race_event_id == race_event_id)
            .where(Finisher.chip_time_s.is_not(None))
            .order_by(Finisher.chip_time_s)
        )
        return [tuple(row) for row in result.all()]


def _finisher_row(race_event_id: int, record: SourceRecord) -> dict:
    return {
        "race_event_id": race_event_id,
        "bib": record.bib,
        "name": record.name,
        "gender": record.gender,
        "age_group": record.age_group,
        "overall_rank": record.overall_rank,
        "gender_rank": record.gender_rank,
        "age_group_rank": record.age_group_rank,
        "chip_time_s": record.chip_time_s,
        "country_code": record.country_code,
    }
