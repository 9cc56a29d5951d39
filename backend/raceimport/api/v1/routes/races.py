"""
Races API Routes

Endpoints for imported race results: listings, bib lookup, claims, stats.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from raceimport.db.session import get_async_db
from raceimport.features.races.query import ResultsQueryService
from raceimport.features.races.timing import format_time, gender_code, parse_time

router = APIRouter()


# === Pydantic schemas ===


class RaceEventSchema(BaseModel):
    id: int
    source: Optional[str] = None
    source_event_id: str
    source_race_id: str
    event_name: Optional[str] = None
    race_name: Optional[str] = None
    event_date: Optional[str] = None
    distance_m: Optional[int] = None
    location: Optional[str] = None
    total_finishers: int
    list_name: Optional[str] = None


class FinisherSchema(BaseModel):
    bib: Optional[str] = None
    name: str
    gender: Optional[int] = None  # 1=male, 2=female
    age_group: Optional[str] = None
    overall_rank: Optional[int] = None
    gender_rank: Optional[int] = None
    age_group_rank: Optional[int] = None
    chip_time_s: Optional[int] = None
    chip_time: Optional[str] = None
    country_code: Optional[str] = None
    athlete_id: Optional[str] = None


class BibResultSchema(BaseModel):
    race_event_id: int
    event_name: Optional[str] = None
    race_name: Optional[str] = None
    event_date: Optional[str] = None
    distance_m: Optional[int] = None
    total_finishers: int
    finisher: FinisherSchema
    age_group_total: int
    gender_total: int
    overall_pct: Optional[int] = None
    age_group_pct: Optional[int] = None
    gender_pct: Optional[int] = None


class CategoryStatsSchema(BaseModel):
    age_group: Optional[str] = None
    gender: Optional[int] = None
    finishers: int
    fastest: str
    average: str
    median: str


class PercentileSchema(BaseModel):
    time_s: int
    percentile: float  # % of timed finishers faster


class ClaimRequest(BaseModel):
    bib: str = Field(..., min_length=1)
    athlete_id: str = Field(..., min_length=1, max_length=36)


# === Helpers ===


def _finisher_schema(f) -> FinisherSchema:
    return FinisherSchema(
        bib=f.bib,
        name=f.name,
        gender=f.gender,
        age_group=f.age_group,
        overall_rank=f.overall_rank,
        gender_rank=f.gender_rank,
        age_group_rank=f.age_group_rank,
        chip_time_s=f.chip_time_s,
        chip_time=format_time(f.chip_time_s),
        country_code=f.country_code,
        athlete_id=f.athlete_id,
    )


def _bib_schema(lookup) -> BibResultSchema:
    event = lookup.race_event
    return BibResultSchema(
        race_event_id=event.id,
        event_name=event.event_name,
        race_name=event.race_name,
        event_date=event.event_date,
        distance_m=event.distance_m,
        total_finishers=event.total_finishers,
        finisher=_finisher_schema(lookup.finisher),
        age_group_total=lookup.age_group_total,
        gender_total=lookup.gender_total,
        overall_pct=lookup.overall_pct,
        age_group_pct=lookup.age_group_pct,
        gender_pct=lookup.gender_pct,
    )


async def _require_event(service: ResultsQueryService, race_event_id: int):
    race_event = await service.get_race_event(race_event_id)
    if not race_event:
        raise HTTPException(status_code=404, detail=f"Race {race_event_id} not found")
    return race_event


# === Endpoints ===


@router.get("", response_model=list[RaceEventSchema])
async def list_races(db: AsyncSession = Depends(get_async_db)):
    """Get all imported races, most recent event first."""
    service = ResultsQueryService(db)
    events = await service.list_race_events()
    return [
        RaceEventSchema(
            id=e.id,
            source=e.source,
            source_event_id=e.source_event_id,
            source_race_id=e.source_race_id,
            event_name=e.event_name,
            race_name=e.race_name,
            event_date=e.event_date,
            distance_m=e.distance_m,
            location=e.location,
            total_finishers=e.total_finishers,
            list_name=e.list_name,
        )
        for e in events
    ]


@router.get("/{race_event_id}/finishers", response_model=list[FinisherSchema])
async def list_finishers(
    race_event_id: int,
    age_group: Optional[str] = Query(None, description="Exact category, e.g. 'Female 30-34'"),
    gender: Optional[str] = Query(None, description="M/F or 1/2"),
    page: int = Query(0, ge=0),
    per_page: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
):
    """Get finishers of a race ordered by overall rank."""
    service = ResultsQueryService(db)
    await _require_event(service, race_event_id)

    gender_filter = None
    if gender:
        gender_filter = gender_code(gender)
        if gender_filter is None:
            raise HTTPException(status_code=400, detail="gender must be M, F, 1 or 2")

    finishers = await service.list_finishers(
        race_event_id,
        age_group=age_group,
        gender=gender_filter,
        page=page,
        per_page=per_page,
    )
    return [_finisher_schema(f) for f in finishers]


@router.get("/{race_event_id}/bib/{bib}", response_model=BibResultSchema)
async def get_bib(
    race_event_id: int,
    bib: str,
    db: AsyncSession = Depends(get_async_db),
):
    """Look up a bib with its percentiles."""
    service = ResultsQueryService(db)
    await _require_event(service, race_event_id)

    lookup = await service.lookup_bib(race_event_id, bib)
    if not lookup:
        raise HTTPException(status_code=404, detail=f"Bib {bib} not found")
    return _bib_schema(lookup)


@router.post("/{race_event_id}/claim", response_model=BibResultSchema)
async def claim_bib(
    race_event_id: int,
    request: ClaimRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """Link a finisher to an athlete."""
    service = ResultsQueryService(db)
    await _require_event(service, race_event_id)

    lookup = await service.claim_bib(race_event_id, request.bib, request.athlete_id)
    if not lookup:
        raise HTTPException(status_code=404, detail=f"Bib {request.bib} not found")
    return _bib_schema(lookup)


@router.get("/{race_event_id}/stats", response_model=list[CategoryStatsSchema])
async def get_stats(
    race_event_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """Chip-time statistics per age group and gender."""
    service = ResultsQueryService(db)
    await _require_event(service, race_event_id)

    stats = await service.category_stats(race_event_id)
    return [
        CategoryStatsSchema(
            age_group=s.age_group,
            gender=s.gender,
            finishers=s.finishers,
            fastest=format_time(s.fastest_s) or "",
            average=format_time(s.avg_s) or "",
            median=format_time(s.median_s) or "",
        )
        for s in stats
    ]


@router.get("/{race_event_id}/percentile", response_model=PercentileSchema)
async def get_percentile(
    race_event_id: int,
    time: str = Query(..., description="Finish time, e.g. '1:45:00'"),
    db: AsyncSession = Depends(get_async_db),
):
    """Where a finish time would place in this race."""
    time_s = parse_time(time)
    if time_s is None:
        raise HTTPException(status_code=400, detail=f"Cannot parse time: {time}")

    service = ResultsQueryService(db)
    await _require_event(service, race_event_id)

    return PercentileSchema(
        time_s=time_s,
        percentile=await service.time_percentile(race_event_id, time_s),
    )
