"""ORM tables for league configuration and scored results.

All timestamps are stored as integer Unix seconds (UTC). Rank and points are
never stored; they are derived from ``result`` rows at read time.
"""

from __future__ import annotations

import time
from typing import List

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _now() -> int:
    return int(time.time())


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Configuration (read-only for the engine)
# ---------------------------------------------------------------------------


class SeasonRecord(Base):
    __tablename__ = "season"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    start_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)

    weeks: Mapped[List[WeekRecord]] = relationship(back_populates="season")


class SegmentRecord(Base):
    __tablename__ = "segment"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    distance: Mapped[float | None] = mapped_column(Float)
    average_grade: Mapped[float | None] = mapped_column(Float)
    total_elevation_gain: Mapped[float | None] = mapped_column(Float)
    climb_category: Mapped[int | None] = mapped_column(Integer)
    city: Mapped[str | None] = mapped_column(Text)
    state: Mapped[str | None] = mapped_column(Text)
    country: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)


class WeekRecord(Base):
    __tablename__ = "week"
    __table_args__ = (
        CheckConstraint("required_laps >= 1", name="ck_week_required_laps"),
        CheckConstraint("multiplier >= 1", name="ck_week_multiplier"),
        Index("idx_week_season", "season_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("season.id"), nullable=False)
    segment_id: Mapped[int] = mapped_column(ForeignKey("segment.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    required_laps: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    multiplier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)

    season: Mapped[SeasonRecord] = relationship(back_populates="weeks")
    segment: Mapped[SegmentRecord] = relationship()


class ParticipantRecord(Base):
    __tablename__ = "participant"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)


# ---------------------------------------------------------------------------
# Results (written only by ResultStore)
# ---------------------------------------------------------------------------


class ActivityRecord(Base):
    __tablename__ = "activity"
    __table_args__ = (
        UniqueConstraint("week_id", "participant_id", name="uq_activity_week_participant"),
        Index("idx_activity_external", "external_activity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week_id: Mapped[int] = mapped_column(ForeignKey("week.id"), nullable=False)
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participant.id"), nullable=False
    )
    external_activity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    start_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    device_name: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)

    efforts: Mapped[List[SegmentEffortRecord]] = relationship(
        back_populates="activity", order_by="SegmentEffortRecord.effort_index"
    )


class SegmentEffortRecord(Base):
    __tablename__ = "segment_effort"
    __table_args__ = (
        UniqueConstraint("activity_id", "effort_index", name="uq_segment_effort_index"),
        Index("idx_segment_effort_activity", "activity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(ForeignKey("activity.id"), nullable=False)
    # Efforts on segments outside the league are kept too, so no FK to segment.
    segment_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    external_effort_id: Mapped[str | None] = mapped_column(String(64))
    effort_index: Mapped[int] = mapped_column(Integer, nullable=False)
    elapsed_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    start_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    pr_achieved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    activity: Mapped[ActivityRecord] = relationship(back_populates="efforts")


class ResultRecord(Base):
    __tablename__ = "result"
    __table_args__ = (
        UniqueConstraint("week_id", "participant_id", name="uq_result_week_participant"),
        Index("idx_result_participant", "participant_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week_id: Mapped[int] = mapped_column(ForeignKey("week.id"), nullable=False)
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participant.id"), nullable=False
    )
    activity_id: Mapped[int] = mapped_column(ForeignKey("activity.id"), nullable=False)
    total_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=_now)
    updated_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=_now, onupdate=_now
    )

    participant: Mapped[ParticipantRecord] = relationship()
    activity: Mapped[ActivityRecord] = relationship()


__all__ = [
    "Base",
    "SeasonRecord",
    "SegmentRecord",
    "WeekRecord",
    "ParticipantRecord",
    "ActivityRecord",
    "SegmentEffortRecord",
    "ResultRecord",
]
