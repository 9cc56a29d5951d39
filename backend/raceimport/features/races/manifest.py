"""Import manifest loader: reads an event's YAML manifest for offline PDF-text imports."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .records import ImportMeta


@dataclass
class ManifestRace:
    """One race of the event, keyed as the parser keys it."""

    key: str  # "hm"
    header: str  # "Half Marathon" (line that opens the race in the text)
    name: str | None = None
    distance_m: int | None = None


@dataclass
class ImportManifest:
    """An event to import from a flattened results booklet."""

    event_id: str
    event_name: str
    event_date: str | None = None
    location: str | None = None
    text_file: str | None = None
    races: list[ManifestRace] = field(default_factory=list)
    base_dir: Path | None = None

    @property
    def race_headers(self) -> dict[str, str]:
        """Header line → race key, as PdfTextParser expects."""
        return {r.header: r.key for r in self.races}

    @property
    def text_path(self) -> Path | None:
        if not self.text_file:
            return None
        path = Path(self.text_file)
        if not path.is_absolute() and self.base_dir:
            path = self.base_dir / path
        return path

    def get_race(self, key: str) -> ManifestRace | None:
        return next((r for r in self.races if r.key == key), None)

    def meta_for(self, key: str, replace: bool = False) -> ImportMeta:
        """ImportMeta for one race of this event."""
        race = self.get_race(key)
        return ImportMeta(
            event_name=self.event_name,
            race_name=(race.name if race else None) or key,
            event_date=self.event_date,
            distance_m=race.distance_m if race else None,
            location=self.location,
            replace=replace,
        )


def parse_manifest(data: dict, base_dir: Path | None = None) -> ImportManifest:
    """Build an ImportManifest from already-loaded YAML data."""
    if not isinstance(data, dict):
        raise ValueError("Manifest must be a mapping")
    for key in ("event_id", "event_name"):
        if not data.get(key):
            raise ValueError(f"Manifest is missing '{key}'")

    races = []
    seen_headers = set()
    for r in data.get("races", []):
        if "key" not in r or "header" not in r:
            raise ValueError(f"Race entry needs 'key' and 'header': {r}")
        if r["header"] in seen_headers:
            raise ValueError(f"Duplicate race header: {r['header']}")
        seen_headers.add(r["header"])
        races.append(
            ManifestRace(
                key=str(r["key"]),
                header=str(r["header"]),
                name=r.get("name"),
                distance_m=r.get("distance_m"),
            )
        )

    event_date = data.get("event_date")
    return ImportManifest(
        event_id=str(data["event_id"]),
        event_name=data["event_name"],
        event_date=str(event_date) if event_date else None,
        location=data.get("location"),
        text_file=data.get("text_file"),
        races=races,
        base_dir=base_dir,
    )


def load_manifest(path: str | Path) -> ImportManifest:
    """Load a manifest from a YAML file; relative text_file paths resolve next to it."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return parse_manifest(data or {}, base_dir=path.parent)
