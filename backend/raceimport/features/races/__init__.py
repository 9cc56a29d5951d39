"""Races feature module: results imports from Sporthive, RaceResult and PDF text, plus queries."""

from .models import RaceEvent, Finisher
from .records import SourceRecord, ImportMeta, ImportOutcome, EventRace
from .errors import (
    ResultsImportError,
    LocatorError,
    DiscoveryError,
    UpstreamError,
    EmptyResultError,
)
from .timing import parse_time, format_time
from .ingestion import IngestionService
from .importer import import_results
from .query import ResultsQueryService
from .manifest import ImportManifest, load_manifest

__all__ = [
    "RaceEvent",
    "Finisher",
    "SourceRecord",
    "ImportMeta",
    "ImportOutcome",
    "EventRace",
    "ResultsImportError",
    "LocatorError",
    "DiscoveryError",
    "UpstreamError",
    "EmptyResultError",
    "parse_time",
    "format_time",
    "IngestionService",
    "import_results",
    "ResultsQueryService",
    "ImportManifest",
    "load_manifest",
]
