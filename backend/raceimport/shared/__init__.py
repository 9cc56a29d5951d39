"""
Shared utilities (NOT business logic).

Usage:
    from raceimport.shared import BaseRepository
"""
from .repository import BaseRepository

__all__ = [
    "BaseRepository",
]
