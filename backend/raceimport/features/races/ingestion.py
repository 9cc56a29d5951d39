"""
Ingestion orchestrator.

Takes any ResultSource and persists its finishers under one RaceEvent:
- re-importing the same (event, race) is a no-op unless replace is set
- replace deletes the old event and its finishers and reinserts, all in
  one transaction, serialized per (event, race)
- nothing is written when the source fails or yields no finishers
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from raceimport.config import settings
from .errors import EmptyResultError
from .models import RaceEvent
from .records import ALREADY_IMPORTED, ImportMeta, ImportOutcome, SourceRecord
from .repository import FinisherRepository, RaceEventRepository
from .sources.base import ProgressCallback, ResultSource

logger = logging.getLogger(__name__)

UNKNOWN_AGE_GROUP = "Unknown"


class ImportLocks:
    """One asyncio.Lock per (source_event_id, source_race_id), dropped once idle."""

    def __init__(self):
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: Counter = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: tuple[str, str]) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


# Shared by every IngestionService in the process
import_locks = ImportLocks()


def age_group_breakdown(records: Sequence[SourceRecord]) -> dict[str, int]:
    """Finisher count per age-group label."""
    counts = Counter(r.age_group or UNKNOWN_AGE_GROUP for r in records)
    return dict(counts)


def already_imported(race_event: RaceEvent) -> ImportOutcome:
    return ImportOutcome(
        ok=False,
        reason=ALREADY_IMPORTED,
        race_event_id=race_event.id,
        total_finishers=race_event.total_finishers,
        message=(
            f"Already imported with {race_event.total_finishers} finishers. "
            "Use replace=true to re-import."
        ),
    )


class IngestionService:
    """
    Persists a results source idempotently.

    Usage:
        service = IngestionService(AsyncSessionLocal)
        outcome = await service.ingest(source, ImportMeta(event_name="CSILO Run 2025"))
        if outcome.already_imported: ...
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: Optional[int] = None,
        sample_size: Optional[int] = None,
        locks: Optional[ImportLocks] = None,
    ):
        self.session_factory = session_factory
        self.batch_size = batch_size or settings.ingest_batch_size
        self.sample_size = settings.ingest_sample_size if sample_size is None else sample_size
        self.locks = import_locks if locks is None else locks

    async def find_existing(self, source: ResultSource) -> Optional[RaceEvent]:
        async with self.session_factory() as db:
            return await RaceEventRepository(db).get_by_source(
                source.source_event_id, source.source_race_id
            )

    async def ingest(
        self,
        source: ResultSource,
        meta: ImportMeta,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """
        Fetch everything from the source and store it.

        Returns:
            ok outcome with summary, or already_imported outcome

        Raises:
            EmptyResultError: Source produced no named finishers
            ResultsImportError: Whatever the source raised (nothing written)
        """
        key = (source.source_event_id, source.source_race_id)

        existing = await self.find_existing(source)
        if existing and not meta.replace:
            logger.info(f"{key[0]}/{key[1]} already imported as race_event {existing.id}")
            return already_imported(existing)

        fetched = await source.fetch(on_progress)
        records = [r for r in fetched if r.name]
        if not records:
            raise EmptyResultError(
                f"No finishers returned for {key[0]}/{key[1]} - check event/race IDs"
            )

        async with self.locks.hold(key):
            async with self.session_factory() as db:
                async with db.begin():
                    events = RaceEventRepository(db)
                    existing = await events.get_by_source(*key)
                    if existing:
                        if not meta.replace:
                            return already_imported(existing)
                        logger.info(
                            f"Replacing race_event {existing.id} "
                            f"({existing.total_finishers} finishers)"
                        )
                        await events.delete_with_finishers(existing)

                    race_event = await events.create(
                        source_event_id=source.source_event_id,
                        source_race_id=source.source_race_id,
                        source=source.kind,
                        list_name=source.list_name,
                        event_name=meta.event_name or source.default_event_name,
                        race_name=meta.race_name,
                        event_date=meta.event_date,
                        distance_m=meta.distance_m,
                        location=meta.location,
                        total_finishers=len(records),
                    )
                    inserted = await FinisherRepository(db).insert_many(
                        race_event.id, records, self.batch_size
                    )
                    race_event_id = race_event.id

        logger.info(f"Imported {inserted} finishers for {key[0]}/{key[1]} (race_event_id={race_event_id})")

        extra = source.describe()
        extra["event_name"] = meta.event_name or source.default_event_name
        return ImportOutcome(
            ok=True,
            race_event_id=race_event_id,
            total_finishers=inserted,
            age_group_breakdown=age_group_breakdown(records),
            sample=[r.sample() for r in records[:self.sample_size]],
            extra=extra,
        )
