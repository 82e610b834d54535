"""Weekly leaderboard scoring.

Ranks and points are never stored: every call derives them from the current
``result`` rows so a retracted or corrected activity is reflected at once.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..config import ACTIVITY_URL_TEMPLATE, PR_BONUS_POINTS
from ..database import SessionFactory, session_scope
from ..models import LapDetail, RankedResult
from ..repository import get_segment, get_week
from ..schema import ActivityRecord, ParticipantRecord, ResultRecord
from ..utils import format_time, unix_to_iso
from .ghost_service import GhostService


def base_points(rank: int, field_size: int) -> int:
    """Last place earns 1, each place above earns one more."""

    return field_size - rank + 1


def total_points(base: int, pr_bonus: int, multiplier: int) -> int:
    return (base + pr_bonus) * multiplier


class LeaderboardService:
    def __init__(
        self,
        session_factory: SessionFactory,
        ghost_service: GhostService | None = None,
        pr_bonus_points: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ghosts = ghost_service or GhostService(session_factory)
        self._pr_bonus_points = (
            PR_BONUS_POINTS if pr_bonus_points is None else pr_bonus_points
        )
        self._log = logging.getLogger(self.__class__.__name__)

    def score_week(self, week_id: int) -> List[RankedResult]:
        """Ranked entries for the week; ``[]`` when nobody has a result yet."""

        with session_scope(self._session_factory) as session:
            week = get_week(session, week_id)
            rows = session.execute(
                select(ResultRecord, ParticipantRecord.name)
                .join(ParticipantRecord, ResultRecord.participant_id == ParticipantRecord.id)
                .options(
                    selectinload(ResultRecord.activity).selectinload(
                        ActivityRecord.efforts
                    )
                )
                .where(ResultRecord.week_id == week_id)
                .order_by(
                    ResultRecord.total_time_seconds,
                    ParticipantRecord.name,
                    ResultRecord.participant_id,
                )
            ).all()

            field_size = len(rows)
            entries: List[RankedResult] = []
            for rank, (result, name) in enumerate(rows, start=1):
                activity = result.activity
                efforts = list(activity.efforts) if activity is not None else []
                had_pr = any(e.pr_achieved for e in efforts)
                pr_bonus = self._pr_bonus_points if had_pr else 0
                base = base_points(rank, field_size)
                entries.append(
                    RankedResult(
                        rank=rank,
                        participant_id=result.participant_id,
                        participant_name=name,
                        total_time_seconds=result.total_time_seconds,
                        base_points=base,
                        pr_bonus=pr_bonus,
                        multiplier=week.multiplier,
                        total_points=total_points(base, pr_bonus, week.multiplier),
                        activity_id=result.activity_id,
                        external_activity_id=(
                            activity.external_activity_id if activity else None
                        ),
                        activity_start_at=activity.start_at if activity else None,
                        device_name=activity.device_name if activity else None,
                        laps=[
                            LapDetail(
                                lap=lap,
                                segment_id=e.segment_id,
                                elapsed_seconds=e.elapsed_seconds,
                                time_hhmmss=format_time(e.elapsed_seconds),
                                pr_achieved=bool(e.pr_achieved),
                                external_effort_id=e.external_effort_id,
                            )
                            for lap, e in enumerate(
                                (eff for eff in efforts if eff.segment_id == week.segment_id),
                                start=1,
                            )
                        ],
                    )
                )
        self._log.debug("Scored week %s: %d entries", week_id, len(entries))
        return entries

    def week_leaderboard(self, week_id: int) -> Dict[str, Any]:
        """Leaderboard document with week, segment and per-entry ghost details."""

        with session_scope(self._session_factory) as session:
            week = get_week(session, week_id)
            segment = get_segment(session, week.segment_id)
        entries = self.score_week(week_id)
        ghosts = self._ghosts.compare_week(week_id)

        hydrated: List[Dict[str, Any]] = []
        for entry in entries:
            ghost = ghosts.get(entry.participant_id)
            hydrated.append(
                {
                    "rank": entry.rank,
                    "participant_id": entry.participant_id,
                    "name": entry.participant_name,
                    "total_time_seconds": entry.total_time_seconds,
                    "time_hhmmss": format_time(entry.total_time_seconds),
                    "base_points": entry.base_points,
                    "pr_bonus_points": entry.pr_bonus,
                    "multiplier": entry.multiplier,
                    "total_points": entry.total_points,
                    "pr_achieved": entry.pr_achieved,
                    "device_name": entry.device_name,
                    "activity_start": unix_to_iso(entry.activity_start_at),
                    "activity_url": (
                        ACTIVITY_URL_TEMPLATE.format(
                            activity_id=entry.external_activity_id
                        )
                        if entry.external_activity_id is not None
                        else None
                    ),
                    "effort_breakdown": [
                        {
                            "lap": lap.lap,
                            "time_seconds": lap.elapsed_seconds,
                            "time_hhmmss": lap.time_hhmmss,
                            "is_pr": lap.pr_achieved,
                        }
                        for lap in entry.laps
                    ],
                    "ghost_comparison": (
                        {
                            "previous_time_seconds": ghost.previous_time_seconds,
                            "previous_week_id": ghost.previous_week_id,
                            "previous_week_name": ghost.previous_week_name,
                            "time_diff_seconds": ghost.diff_seconds,
                            "time_diff_hhmmss": format_time(ghost.diff_seconds),
                            "faster": ghost.faster,
                        }
                        if ghost is not None
                        else None
                    ),
                }
            )

        return {
            "week": {
                "id": week.id,
                "season_id": week.season_id,
                "name": week.name,
                "segment_id": week.segment_id,
                "required_laps": week.required_laps,
                "multiplier": week.multiplier,
                "start_at": unix_to_iso(week.start_at),
                "end_at": unix_to_iso(week.end_at),
                "notes": week.notes,
                "segment_name": segment.name if segment else None,
                "segment_distance": segment.distance if segment else None,
                "segment_average_grade": segment.average_grade if segment else None,
                "segment_city": segment.city if segment else None,
            },
            "leaderboard": hydrated,
        }


__all__ = ["LeaderboardService", "base_points", "total_points"]
