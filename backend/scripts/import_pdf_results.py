#!/usr/bin/env python3
"""CLI script for importing race results from a PDF booklet flattened to text.

Usage:
    # Parse and show what would be imported
    python backend/scripts/import_pdf_results.py \
        --manifest content/imports/csilo_2025.yaml --dry-run

    # Import every race of the manifest
    python backend/scripts/import_pdf_results.py \
        --manifest content/imports/csilo_2025.yaml

    # Re-import with a different text file, replacing previous rows
    python backend/scripts/import_pdf_results.py \
        --manifest content/imports/csilo_2025.yaml \
        --text /tmp/csilo_2025_v2.txt --replace

Manifest (YAML):
    event_id: csilo-2025
    event_name: CSILO Run 2025
    event_date: 2025-08-24
    location: San Juan, PR
    text_file: csilo_2025.txt
    races:
      - {key: hm, header: Half Marathon, name: Half Marathon, distance_m: 21097}
      - {key: 5k, header: 5K, name: 5K, distance_m: 5000}
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from raceimport.config import settings
from raceimport.db.session import create_engine_for, create_session_factory, init_db
from raceimport.features.races.errors import ResultsImportError
from raceimport.features.races.ingestion import IngestionService
from raceimport.features.races.manifest import ImportManifest, load_manifest
from raceimport.features.races.records import SourceRecord
from raceimport.features.races.sources.pdf_text import PdfTextParser, PdfTextSource
from raceimport.features.races.timing import format_time


def print_race_summary(manifest: ImportManifest, race_key: str, records: list[SourceRecord]) -> None:
    """Print finisher count, category breakdown and the podium of one race."""
    race = manifest.get_race(race_key)
    title = race.name if race and race.name else race_key

    print(f"\n=== {manifest.event_name}: {title} ===")
    print(f"Finishers: {len(records)}")

    categories: dict[str, int] = {}
    for r in records:
        label = r.age_group or "Unknown"
        categories[label] = categories.get(label, 0) + 1
    for label, count in sorted(categories.items()):
        print(f"  {label:>16s}  {count:4d}")

    ranked = sorted(
        (r for r in records if r.overall_rank),
        key=lambda r: r.overall_rank,
    )
    if ranked:
        print("Top 3:")
    for r in ranked[:3]:
        print(f"  #{r.overall_rank}  {r.bib}  {r.name}  {format_time(r.chip_time_s) or '-'}")


async def ingest_races(
    manifest: ImportManifest,
    parsed: dict[str, dict[str, SourceRecord]],
    database_url: str,
    replace: bool,
) -> int:
    """Ingest every parsed race. Returns the number of races that failed."""
    engine = create_engine_for(database_url)
    failures = 0
    try:
        await init_db(engine)
        service = IngestionService(create_session_factory(engine))

        for race_key, by_bib in parsed.items():
            source = PdfTextSource(manifest.event_id, race_key, list(by_bib.values()))
            try:
                outcome = await service.ingest(source, manifest.meta_for(race_key, replace=replace))
            except ResultsImportError as e:
                failures += 1
                print(f"[{race_key}] FAILED: {e}")
                continue

            if outcome.already_imported:
                print(f"[{race_key}] {outcome.message}")
            else:
                print(
                    f"[{race_key}] Imported {outcome.total_finishers} finishers "
                    f"(race_event_id={outcome.race_event_id})"
                )
    finally:
        await engine.dispose()
    return failures


def main() -> None:
    parser = argparse.ArgumentParser(description="Import race results from PDF text")
    parser.add_argument("--manifest", required=True, help="Event manifest (YAML)")
    parser.add_argument("--text", help="Text file (overrides manifest text_file)")
    parser.add_argument("--replace", action="store_true", help="Replace existing imports")
    parser.add_argument("--dry-run", action="store_true", help="Parse and print, don't write")
    parser.add_argument("--database-url", help="Database URL (defaults to DATABASE_URL)")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        manifest = load_manifest(args.manifest)
    except (OSError, ValueError) as e:
        print(f"Cannot load manifest: {e}")
        sys.exit(1)

    text_path = Path(args.text) if args.text else manifest.text_path
    if not text_path:
        parser.error("No text file: pass --text or set text_file in the manifest")
    if not text_path.exists():
        print(f"File not found: {text_path}")
        sys.exit(1)

    pdf_parser = PdfTextParser(manifest.race_headers or None)
    parsed = pdf_parser.parse_file(text_path)
    if not parsed:
        print("No finishers found in any race")
        sys.exit(1)

    for race_key, by_bib in parsed.items():
        print_race_summary(manifest, race_key, list(by_bib.values()))

    if args.dry_run:
        print("\nDry run: nothing written")
        return

    failures = asyncio.run(
        ingest_races(
            manifest,
            parsed,
            args.database_url or settings.database_url,
            args.replace,
        )
    )
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
