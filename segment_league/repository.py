"""Configuration loaders.

Seasons, segments, weeks and participants are owned by whoever administers
the league; the engine only reads them. Each loader takes an open session and
returns plain dataclasses so nothing downstream holds on to ORM state.
``save_configuration`` is the one write path, used by the workbook importer.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import ParticipantNotFoundError, SeasonNotFoundError, WeekNotFoundError
from .models import Participant, Season, Segment, Week
from .schema import ParticipantRecord, SeasonRecord, SegmentRecord, WeekRecord

LOGGER = logging.getLogger(__name__)


def _season(row: SeasonRecord) -> Season:
    return Season(
        id=row.id,
        name=row.name,
        start_at=row.start_at,
        end_at=row.end_at,
        is_active=bool(row.is_active),
    )


def _segment(row: SegmentRecord) -> Segment:
    return Segment(
        id=row.id,
        name=row.name,
        distance=row.distance,
        average_grade=row.average_grade,
        total_elevation_gain=row.total_elevation_gain,
        climb_category=row.climb_category,
        city=row.city,
        state=row.state,
        country=row.country,
    )


def _week(row: WeekRecord) -> Week:
    return Week(
        id=row.id,
        season_id=row.season_id,
        segment_id=row.segment_id,
        name=row.name,
        start_at=row.start_at,
        end_at=row.end_at,
        required_laps=row.required_laps,
        multiplier=row.multiplier,
        notes=row.notes or "",
    )


def _participant(row: ParticipantRecord) -> Participant:
    return Participant(id=row.id, name=row.name, active=bool(row.active))


def load_seasons(session: Session) -> List[Season]:
    rows = session.scalars(select(SeasonRecord).order_by(SeasonRecord.start_at))
    return [_season(row) for row in rows]


def get_season(session: Session, season_id: int) -> Season:
    row = session.get(SeasonRecord, season_id)
    if row is None:
        raise SeasonNotFoundError(season_id)
    return _season(row)


def load_weeks(session: Session, season_id: int | None = None) -> List[Week]:
    stmt = select(WeekRecord).order_by(WeekRecord.start_at, WeekRecord.id)
    if season_id is not None:
        stmt = stmt.where(WeekRecord.season_id == season_id)
    return [_week(row) for row in session.scalars(stmt)]


def get_week(session: Session, week_id: int) -> Week:
    row = session.get(WeekRecord, week_id)
    if row is None:
        raise WeekNotFoundError(week_id)
    return _week(row)


def load_segments(session: Session) -> Dict[int, Segment]:
    return {row.id: _segment(row) for row in session.scalars(select(SegmentRecord))}


def get_segment(session: Session, segment_id: int) -> Segment | None:
    row = session.get(SegmentRecord, segment_id)
    return _segment(row) if row is not None else None


def load_participants(session: Session) -> List[Participant]:
    rows = session.scalars(select(ParticipantRecord).order_by(ParticipantRecord.name))
    return [_participant(row) for row in rows]


def get_participant(session: Session, participant_id: int) -> Participant:
    row = session.get(ParticipantRecord, participant_id)
    if row is None:
        raise ParticipantNotFoundError(participant_id)
    return _participant(row)


def save_configuration(
    session: Session,
    *,
    seasons: Iterable[Season] = (),
    segments: Iterable[Segment] = (),
    weeks: Iterable[Week] = (),
    participants: Iterable[Participant] = (),
) -> Dict[str, int]:
    """Insert or update configuration rows keyed by id.

    Parents are written before weeks so foreign keys resolve within the same
    transaction. Returns the number of rows written per kind.
    """

    counts = {"seasons": 0, "segments": 0, "weeks": 0, "participants": 0}
    for season in seasons:
        session.merge(
            SeasonRecord(
                id=season.id,
                name=season.name,
                start_at=season.start_at,
                end_at=season.end_at,
                is_active=season.is_active,
            )
        )
        counts["seasons"] += 1
    for segment in segments:
        session.merge(
            SegmentRecord(
                id=segment.id,
                name=segment.name,
                distance=segment.distance,
                average_grade=segment.average_grade,
                total_elevation_gain=segment.total_elevation_gain,
                climb_category=segment.climb_category,
                city=segment.city,
                state=segment.state,
                country=segment.country,
            )
        )
        counts["segments"] += 1
    for participant in participants:
        session.merge(
            ParticipantRecord(
                id=participant.id, name=participant.name, active=participant.active
            )
        )
        counts["participants"] += 1
    session.flush()
    for week in weeks:
        session.merge(
            WeekRecord(
                id=week.id,
                season_id=week.season_id,
                segment_id=week.segment_id,
                name=week.name,
                start_at=week.start_at,
                end_at=week.end_at,
                required_laps=week.required_laps,
                multiplier=week.multiplier,
                notes=week.notes,
            )
        )
        counts["weeks"] += 1
    session.flush()
    LOGGER.info(
        "Saved configuration seasons=%d segments=%d weeks=%d participants=%d",
        counts["seasons"],
        counts["segments"],
        counts["weeks"],
        counts["participants"],
    )
    return counts


__all__ = [
    "get_participant",
    "get_season",
    "get_segment",
    "get_week",
    "load_participants",
    "load_seasons",
    "load_segments",
    "load_weeks",
    "save_configuration",
]
