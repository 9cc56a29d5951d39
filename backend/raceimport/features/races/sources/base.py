"""
Base Results Source

Abstract base class for every results adapter the orchestrator can ingest.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..records import SourceRecord

ProgressCallback = Callable[[int], None]


class ResultSource(ABC):
    """
    Abstract base class for results sources.

    A source knows its identity (source event id + source race id) before
    any network activity, and produces the full list of normalized
    finisher records on fetch().
    """

    #: Stored in race_events.source
    kind: str = ""

    @property
    @abstractmethod
    def source_event_id(self) -> str:
        """Source-side event identifier."""
        pass

    @property
    @abstractmethod
    def source_race_id(self) -> str:
        """Source-side race identifier (or a per-source sentinel)."""
        pass

    @property
    def default_event_name(self) -> str:
        """Event name used when the caller supplies none."""
        return f"Race {self.source_event_id}"

    @property
    def list_name(self) -> Optional[str]:
        """Upstream list used for the import, where the source has one."""
        return None

    @abstractmethod
    async def fetch(self, on_progress: Optional[ProgressCallback] = None) -> list[SourceRecord]:
        """
        Fetch every finisher.

        Args:
            on_progress: Called with the running record count

        Returns:
            Normalized records in discovery order
        """
        pass

    def describe(self) -> dict:
        """Source-specific fields added to the import outcome."""
        return {
            "event_id": self.source_event_id,
            "race_id": self.source_race_id,
            "source": self.kind,
        }
