"""Week qualification for a single observed activity.

Pure functions over the activity's efforts and the configured seasons and
weeks. Nothing here touches the database: callers load configuration, call
``resolve`` and decide what to persist from the returned ``MatchOutcome``.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from ..errors import MalformedActivityError
from ..models import (
    EffortObservation,
    MatchOutcome,
    MatchStatus,
    Season,
    SeasonMatch,
    Week,
    WeekCheck,
)

OUTSIDE_TIME_WINDOW = "Outside time window"

LOGGER = logging.getLogger(__name__)


def in_window(timestamp: int, start_at: int, end_at: int) -> bool:
    """Inclusive on both edges."""

    return start_at <= timestamp <= end_at


def seasons_containing(timestamp: int, seasons: Iterable[Season]) -> List[Season]:
    """Seasons whose range contains the timestamp, latest start first."""

    found = [s for s in seasons if in_window(timestamp, s.start_at, s.end_at)]
    found.sort(key=lambda s: (s.start_at, s.id), reverse=True)
    return found


def efforts_on_segment(
    efforts: Iterable[EffortObservation], segment_id: int
) -> List[EffortObservation]:
    matching = [e for e in efforts if e.segment_id == segment_id]
    matching.sort(key=lambda e: e.effort_index)
    return matching


def qualifying_laps(
    efforts: Sequence[EffortObservation], required_laps: int
) -> List[EffortObservation]:
    """First ``required_laps`` efforts in ride order (not the fastest)."""

    if required_laps < 1:
        raise MalformedActivityError(
            f"required_laps must be at least 1, got {required_laps}"
        )
    ordered = sorted(efforts, key=lambda e: e.effort_index)
    if len(ordered) < required_laps:
        return []
    return ordered[:required_laps]


def check_week(
    week: Week, efforts: Sequence[EffortObservation], activity_start_at: int
) -> WeekCheck:
    base = dict(
        week_id=week.id,
        week_name=week.name,
        season_id=week.season_id,
        segment_id=week.segment_id,
        required_laps=week.required_laps,
    )
    if not in_window(activity_start_at, week.start_at, week.end_at):
        return WeekCheck(
            **base,
            in_time_window=False,
            efforts_found=0,
            matched=False,
            reason=OUTSIDE_TIME_WINDOW,
        )
    matching = efforts_on_segment(efforts, week.segment_id)
    if not matching:
        return WeekCheck(
            **base,
            in_time_window=True,
            efforts_found=0,
            matched=False,
            reason=f"No efforts on segment {week.segment_id}",
        )
    laps = qualifying_laps(matching, week.required_laps)
    reason = f"{len(matching)}/{week.required_laps} laps"
    if not laps:
        return WeekCheck(
            **base,
            in_time_window=True,
            efforts_found=len(matching),
            matched=False,
            reason=reason,
        )
    return WeekCheck(
        **base,
        in_time_window=True,
        efforts_found=len(matching),
        matched=True,
        reason=reason,
        total_time_seconds=sum(e.elapsed_seconds for e in laps),
        qualifying_efforts=tuple(laps),
    )


def _overall_status(checks: Sequence[WeekCheck]) -> MatchStatus:
    if any(c.matched for c in checks):
        return MatchStatus.QUALIFIED
    eligible = [c for c in checks if c.in_time_window]
    if any(c.efforts_found > 0 for c in eligible):
        return MatchStatus.INSUFFICIENT_LAPS
    if eligible:
        return MatchStatus.NO_SEGMENTS
    return MatchStatus.NO_MATCHING_WEEKS


class MatchResolver:
    """Classifies an activity against every season/week it could belong to."""

    def __init__(self) -> None:
        self._log = logging.getLogger(self.__class__.__name__)

    def resolve(
        self,
        efforts: Sequence[EffortObservation],
        activity_start_at: int,
        seasons: Iterable[Season],
        weeks: Iterable[Week],
    ) -> MatchOutcome:
        candidate_seasons = seasons_containing(activity_start_at, seasons)
        if not candidate_seasons:
            self._log.info(
                "No season contains activity start %s", activity_start_at
            )
            return MatchOutcome(
                status=MatchStatus.NO_MATCHING_WEEKS,
                activity_start_at=activity_start_at,
            )

        weeks_by_season: Dict[int, List[Week]] = {}
        for week in weeks:
            weeks_by_season.setdefault(week.season_id, []).append(week)

        season_matches: List[SeasonMatch] = []
        for season in candidate_seasons:
            season_weeks = sorted(
                weeks_by_season.get(season.id, []), key=lambda w: (w.start_at, w.id)
            )
            checks = [check_week(w, efforts, activity_start_at) for w in season_weeks]
            season_matches.append(
                SeasonMatch(season_id=season.id, season_name=season.name, weeks=checks)
            )
            for check in checks:
                self._log.debug(
                    "season=%s week=%s matched=%s reason=%s",
                    season.id,
                    check.week_id,
                    check.matched,
                    check.reason,
                )

        all_checks = [c for sm in season_matches for c in sm.weeks]
        outcome = MatchOutcome(
            status=_overall_status(all_checks),
            activity_start_at=activity_start_at,
            seasons=season_matches,
        )
        self._log.info(
            "Resolved activity start=%s status=%s weeks_checked=%d matched=%d",
            activity_start_at,
            outcome.status.value,
            outcome.weeks_checked,
            len(outcome.matched_weeks),
        )
        return outcome


_DEFAULT_RESOLVER = MatchResolver()


def resolve(
    efforts: Sequence[EffortObservation],
    activity_start_at: int,
    seasons: Iterable[Season],
    weeks: Iterable[Week],
) -> MatchOutcome:
    return _DEFAULT_RESOLVER.resolve(efforts, activity_start_at, seasons, weeks)


__all__ = [
    "MatchResolver",
    "OUTSIDE_TIME_WINDOW",
    "check_week",
    "efforts_on_segment",
    "in_window",
    "qualifying_laps",
    "resolve",
    "seasons_containing",
]
