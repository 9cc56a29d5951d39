"""
Database Models

Import all models here to ensure they are registered with SQLAlchemy.

Note: Feature models are imported lazily to avoid circular imports.
Use direct imports from features/ modules when possible.
"""

from raceimport.models.base import Base


def _get_race_models():
    """Lazy import of race result models."""
    from raceimport.features.races.models import RaceEvent, Finisher
    return RaceEvent, Finisher


def __getattr__(name):
    if name == "RaceEvent":
        return _get_race_models()[0]
    if name == "Finisher":
        return _get_race_models()[1]

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Base",
    "RaceEvent",
    "Finisher",
]
