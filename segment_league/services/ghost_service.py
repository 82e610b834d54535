"""Comparison of a participant's time against their last ride of the same segment."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..database import SessionFactory, session_scope
from ..models import GhostComparison, Week
from ..repository import get_week
from ..schema import ActivityRecord, ResultRecord, WeekRecord


class GhostService:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._log = logging.getLogger(self.__class__.__name__)

    def compare(self, participant_id: int, week_id: int) -> GhostComparison | None:
        """Diff against the most recent earlier week on the same segment.

        Returns ``None`` when the participant has no result this week or never
        completed the segment in an earlier week.
        """

        with session_scope(self._session_factory) as session:
            week = get_week(session, week_id)
            current = session.scalar(
                select(ResultRecord.total_time_seconds).where(
                    ResultRecord.week_id == week_id,
                    ResultRecord.participant_id == participant_id,
                )
            )
            if current is None:
                return None
            previous = self._previous_results(session, week, [participant_id])
        return self._build(current, previous.get(participant_id))

    def compare_week(self, week_id: int) -> Dict[int, GhostComparison]:
        """Ghost comparisons for every participant with a result in the week."""

        with session_scope(self._session_factory) as session:
            week = get_week(session, week_id)
            current = dict(
                session.execute(
                    select(
                        ResultRecord.participant_id, ResultRecord.total_time_seconds
                    ).where(ResultRecord.week_id == week_id)
                ).all()
            )
            if not current:
                return {}
            previous = self._previous_results(session, week, current.keys())
        comparisons: Dict[int, GhostComparison] = {}
        for participant_id, time_seconds in current.items():
            ghost = self._build(time_seconds, previous.get(participant_id))
            if ghost is not None:
                comparisons[participant_id] = ghost
        self._log.debug(
            "Week %s ghosts: %d of %d participants", week_id, len(comparisons), len(current)
        )
        return comparisons

    @staticmethod
    def _previous_results(
        session: Session, week: Week, participant_ids: Iterable[int]
    ) -> Dict[int, tuple]:
        # Latest first, so the first row seen per participant wins.
        rows = session.execute(
            select(
                ResultRecord.participant_id,
                ResultRecord.total_time_seconds,
                WeekRecord.id,
                WeekRecord.name,
                ActivityRecord.external_activity_id,
            )
            .join(WeekRecord, ResultRecord.week_id == WeekRecord.id)
            .join(ActivityRecord, ResultRecord.activity_id == ActivityRecord.id)
            .where(
                WeekRecord.segment_id == week.segment_id,
                WeekRecord.start_at < week.start_at,
                ResultRecord.participant_id.in_(list(participant_ids)),
            )
            .order_by(WeekRecord.start_at.desc(), WeekRecord.id.desc())
        ).all()
        previous: Dict[int, tuple] = {}
        for participant_id, time_seconds, prev_week_id, prev_name, external_id in rows:
            previous.setdefault(
                participant_id, (time_seconds, prev_week_id, prev_name, external_id)
            )
        return previous

    @staticmethod
    def _build(current: int, previous: tuple | None) -> GhostComparison | None:
        if previous is None:
            return None
        time_seconds, prev_week_id, prev_name, external_id = previous
        return GhostComparison(
            previous_time_seconds=time_seconds,
            previous_week_id=prev_week_id,
            previous_week_name=prev_name,
            diff_seconds=current - time_seconds,
            previous_external_activity_id=external_id,
        )


__all__ = ["GhostService"]
