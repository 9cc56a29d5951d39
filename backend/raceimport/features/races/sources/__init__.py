"""Result source adapters: Sporthive, RaceResult, PDF text."""

from .base import ResultSource
from .pdf_text import PdfTextParser, PdfTextSource
from .raceresult import RaceResultSource
from .sporthive import SporthiveSource

__all__ = [
    "ResultSource",
    "PdfTextParser",
    "PdfTextSource",
    "RaceResultSource",
    "SporthiveSource",
]
