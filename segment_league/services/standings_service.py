"""Season standings and jerseys built from the weekly leaderboards.

A week ridden on a segment steeper than ``HILL_CLIMB_MIN_GRADE`` is a hill
climb. Its rank-1 rider collects a polka dot win. The season's polka dot
jersey goes to whoever collected the most, the yellow jersey to the points
leader.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from ..config import HILL_CLIMB_MIN_GRADE
from ..database import SessionFactory, session_scope
from ..models import SeasonJerseys, StandingsEntry
from ..repository import get_season, load_segments, load_weeks
from .leaderboard_service import LeaderboardService


def is_hill_climb(average_grade: float | None) -> bool:
    return (average_grade or 0) > HILL_CLIMB_MIN_GRADE


class StandingsService:
    def __init__(
        self,
        session_factory: SessionFactory,
        leaderboard_service: LeaderboardService | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._leaderboards = leaderboard_service or LeaderboardService(session_factory)
        self._log = logging.getLogger(self.__class__.__name__)

    def season_standings(self, season_id: int) -> List[StandingsEntry]:
        """Total points per participant, most points first.

        Ties on points go to whoever completed more weeks, then by name.
        """

        with session_scope(self._session_factory) as session:
            get_season(session, season_id)
            weeks = load_weeks(session, season_id)
            segments = load_segments(session)

        totals: Dict[int, StandingsEntry] = {}
        for week in weeks:
            segment = segments.get(week.segment_id)
            hill_climb = is_hill_climb(segment.average_grade if segment else None)
            for entry in self._leaderboards.score_week(week.id):
                standing = totals.get(entry.participant_id)
                if standing is None:
                    standing = StandingsEntry(
                        participant_id=entry.participant_id,
                        name=entry.participant_name,
                        total_points=0,
                        weeks_completed=0,
                    )
                    totals[entry.participant_id] = standing
                standing.total_points += entry.total_points
                standing.weeks_completed += 1
                if hill_climb and entry.rank == 1:
                    standing.polka_dot_wins += 1

        ordered = sorted(
            totals.values(),
            key=lambda s: (-s.total_points, -s.weeks_completed, s.name, s.participant_id),
        )
        for rank, standing in enumerate(ordered, start=1):
            standing.rank = rank
        self._log.debug(
            "Season %s standings: %d participants over %d weeks",
            season_id,
            len(ordered),
            len(weeks),
        )
        return ordered

    def season_jerseys(self, season_id: int) -> SeasonJerseys:
        """Yellow (points leader) and polka dot (most hill climb wins) holders.

        Equal polka dot counts go to the rider placed higher in the standings.
        """

        standings = self.season_standings(season_id)
        yellow = standings[0] if standings else None
        polka_dot = None
        for standing in standings:
            if standing.polka_dot_wins == 0:
                continue
            if polka_dot is None or standing.polka_dot_wins > polka_dot.polka_dot_wins:
                polka_dot = standing
        return SeasonJerseys(season_id=season_id, yellow=yellow, polka_dot=polka_dot)


__all__ = ["StandingsService", "is_hill_climb"]
