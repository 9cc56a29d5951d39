"""
Race results database models.

Models:
- RaceEvent: one imported race (source event + source race pair)
- Finisher: one competitor's result within a RaceEvent
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from raceimport.models.base import Base

# RaceResult events have no native race id
RACERESULT_RACE_ID = "rr"


class RaceEvent(Base):
    """
    One imported race.

    (source_event_id, source_race_id) is unique: a re-import either no-ops
    or replaces the whole event with its finishers.
    """

    __tablename__ = "race_events"
    __table_args__ = (
        UniqueConstraint("source_event_id", "source_race_id", name="uq_race_events_source"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Source identity
    source_event_id = Column(String(64), nullable=False)
    source_race_id = Column(String(64), nullable=False)
    source = Column(String(20), nullable=True)  # sporthive / raceresult / pdf_text
    list_name = Column(String(100), nullable=True)  # RaceResult list used

    # Display
    event_name = Column(String(255), nullable=True)
    race_name = Column(String(255), nullable=True)
    event_date = Column(String(10), nullable=True)  # "2025-08-24"
    distance_m = Column(Integer, nullable=True)
    location = Column(String(255), nullable=True)

    total_finishers = Column(Integer, nullable=False, default=0)
    imported_at = Column(DateTime, default=datetime.utcnow)

    finishers = relationship(
        "Finisher",
        back_populates="race_event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<RaceEvent {self.source_event_id}/{self.source_race_id} {self.total_finishers} finishers>"


class Finisher(Base):
    """
    One competitor's result.

    Ranks are independently nullable: sources supply some scopes and not others.
    athlete_id is set by a claim, never by ingestion.
    """

    __tablename__ = "race_finishers"
    __table_args__ = (
        Index("ix_race_finishers_event_bib", "race_event_id", "bib"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    race_event_id = Column(
        Integer,
        ForeignKey("race_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    bib = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)
    gender = Column(SmallInteger, nullable=True)  # 1=M, 2=F
    age_group = Column(String(100), nullable=True)

    overall_rank = Column(Integer, nullable=True)
    gender_rank = Column(Integer, nullable=True)
    age_group_rank = Column(Integer, nullable=True)

    chip_time_s = Column(Integer, nullable=True)
    country_code = Column(String(8), nullable=True)

    athlete_id = Column(String(36), nullable=True, index=True)

    race_event = relationship("RaceEvent", back_populates="finishers")

    def __repr__(self):
        return f"<Finisher #{self.bib} {self.name} rank={self.overall_rank}>"
