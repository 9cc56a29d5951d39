"""Transient data shapes for race results imports (dataclasses, no DB dependency)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .timing import format_time

ALREADY_IMPORTED = "already_imported"
NEEDS_RACE_SELECTION = "needs_race_selection"


@dataclass
class SourceRecord:
    """One finisher as produced by a source adapter, before persistence."""

    bib: str | None
    name: str | None
    gender: int | None = None  # 1=male, 2=female
    age_group: str | None = None  # "Female 30-34"
    chip_time_s: int | None = None
    overall_rank: int | None = None
    gender_rank: int | None = None
    age_group_rank: int | None = None
    country_code: str | None = None  # "PUR"
    contest: str | None = None  # RaceResult only, never persisted

    def sample(self) -> dict[str, Any]:
        return {
            "rank": self.overall_rank,
            "bib": self.bib,
            "name": self.name,
            "category": self.age_group,
            "time": format_time(self.chip_time_s),
        }


@dataclass
class ImportMeta:
    """Caller-supplied metadata and options for one import."""

    event_name: str | None = None
    race_name: str | None = None
    event_date: str | None = None  # "2025-08-24"
    distance_m: int | None = None
    location: str | None = None
    replace: bool = False
    list_name: str | None = None  # RaceResult list override
    race_id: str | None = None  # Sporthive explicit race


@dataclass
class EventRace:
    """A selectable race within a Sporthive event."""

    id: str
    name: str
    distance: float | None = None
    participants: int | None = None


@dataclass
class ImportOutcome:
    """Structured result of an import: written, already present, or needs input."""

    ok: bool
    reason: str | None = None
    race_event_id: int | None = None
    total_finishers: int | None = None
    age_group_breakdown: dict[str, int] = field(default_factory=dict)
    sample: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def already_imported(self) -> bool:
        return self.reason == ALREADY_IMPORTED

    @property
    def needs_race_selection(self) -> bool:
        return self.reason == NEEDS_RACE_SELECTION

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok}
        if self.reason:
            out[self.reason] = True
            out["reason"] = self.reason
        if self.race_event_id is not None:
            out["race_event_id"] = self.race_event_id
        if self.total_finishers is not None:
            out["total_finishers"] = self.total_finishers
        if self.ok:
            out["age_groups"] = len(self.age_group_breakdown)
            out["age_group_breakdown"] = self.age_group_breakdown
            out["sample"] = self.sample
        if self.message:
            out["message"] = self.message
        out.update(self.extra)
        return out
