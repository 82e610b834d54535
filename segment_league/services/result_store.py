"""Write path for weekly results.

A result for one ``(week, participant)`` pair is three kinds of rows: the
counted activity, all of its segment efforts, and the result itself. They are
always replaced together inside a single transaction (delete, then insert),
so replaying the same observation converges on the same stored state and a
corrected observation never leaves stale laps behind.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..database import SessionFactory, session_scope
from ..errors import (
    MalformedActivityError,
    ParticipantNotFoundError,
    ResultConflictError,
    WeekNotFoundError,
)
from ..ingest import validate_efforts
from ..models import EffortObservation, Retraction
from ..schema import (
    ActivityRecord,
    ParticipantRecord,
    ResultRecord,
    SegmentEffortRecord,
    WeekRecord,
)

PairKey = Tuple[int, int]

# Driver messages for lock contention: SQLite "database is locked" / "busy",
# PostgreSQL deadlock and serialization failures.
_CONTENTION_MARKERS = ("locked", "busy", "deadlock", "could not serialize")


def _require_int(value: object, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedActivityError(f"{label} must be an integer, got {value!r}")
    return value


def _is_contention(exc: Exception) -> bool:
    if isinstance(exc, IntegrityError):
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


class ResultStore:
    """Commits and retracts results; the only writer of the result tables."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._log = logging.getLogger(self.__class__.__name__)
        self._pair_locks: Dict[PairKey, threading.Lock] = {}
        self._pair_locks_lock = threading.Lock()

    def _lock_for(self, week_id: int, participant_id: int) -> threading.Lock:
        key = (week_id, participant_id)
        with self._pair_locks_lock:
            if key not in self._pair_locks:
                self._pair_locks[key] = threading.Lock()
            return self._pair_locks[key]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def commit(
        self,
        participant_id: int,
        week_id: int,
        activity_external_id: int,
        device_name: str | None,
        efforts: Sequence[EffortObservation],
        total_time_seconds: int,
        start_at: int,
    ) -> int:
        """Replace the stored result for the pair and return the new activity id.

        Raises ``MalformedActivityError`` before touching the database when
        any input is unusable, and ``ResultConflictError`` when a concurrent
        writer won the race or held the database lock too long (safe to retry).
        """

        participant_id = _require_int(participant_id, "participant_id")
        week_id = _require_int(week_id, "week_id")
        activity_external_id = _require_int(
            activity_external_id, "activity_external_id"
        )
        start_at = _require_int(start_at, "start_at")
        total_time_seconds = _require_int(total_time_seconds, "total_time_seconds")
        if total_time_seconds < 0:
            raise MalformedActivityError(
                f"total_time_seconds must not be negative, got {total_time_seconds}"
            )
        efforts = list(efforts)
        validate_efforts(efforts)
        ordered = sorted(efforts, key=lambda e: e.effort_index)

        with self._lock_for(week_id, participant_id):
            try:
                with session_scope(self._session_factory) as session:
                    self._ensure_configured(session, week_id, participant_id)
                    removed = self._delete_pair(session, week_id, participant_id)
                    activity = ActivityRecord(
                        week_id=week_id,
                        participant_id=participant_id,
                        external_activity_id=activity_external_id,
                        start_at=start_at,
                        device_name=device_name,
                    )
                    session.add(activity)
                    session.flush()
                    for index, effort in enumerate(ordered):
                        session.add(
                            SegmentEffortRecord(
                                activity_id=activity.id,
                                segment_id=effort.segment_id,
                                external_effort_id=effort.external_effort_id,
                                effort_index=index,
                                elapsed_seconds=effort.elapsed_seconds,
                                start_at=effort.start_at,
                                pr_achieved=bool(effort.pr_achieved),
                            )
                        )
                    session.add(
                        ResultRecord(
                            week_id=week_id,
                            participant_id=participant_id,
                            activity_id=activity.id,
                            total_time_seconds=total_time_seconds,
                        )
                    )
                    activity_id = activity.id
            except (IntegrityError, OperationalError) as exc:
                if not _is_contention(exc):
                    raise
                self._log.warning(
                    "Result conflict week=%s participant=%s: %s",
                    week_id,
                    participant_id,
                    exc.orig,
                )
                raise ResultConflictError(
                    f"Concurrent write for week {week_id} participant {participant_id}"
                ) from exc

        self._log.info(
            "Committed result week=%s participant=%s activity=%s time=%ss efforts=%d replaced=%s",
            week_id,
            participant_id,
            activity_external_id,
            total_time_seconds,
            len(ordered),
            removed.deleted,
        )
        return activity_id

    def retract(self, participant_id: int, week_id: int) -> Retraction:
        """Remove the pair's result, efforts and activity; absent pairs are a no-op."""

        participant_id = _require_int(participant_id, "participant_id")
        week_id = _require_int(week_id, "week_id")
        with self._lock_for(week_id, participant_id):
            try:
                with session_scope(self._session_factory) as session:
                    removed = self._delete_pair(session, week_id, participant_id)
            except (IntegrityError, OperationalError) as exc:
                if not _is_contention(exc):
                    raise
                raise ResultConflictError(
                    f"Concurrent retract for week {week_id} participant {participant_id}"
                ) from exc
        if removed.deleted:
            self._log.info(
                "Retracted result week=%s participant=%s (results=%d efforts=%d activities=%d)",
                week_id,
                participant_id,
                removed.results,
                removed.efforts,
                removed.activities,
            )
        else:
            self._log.debug(
                "Nothing to retract for week=%s participant=%s", week_id, participant_id
            )
        return removed

    # ------------------------------------------------------------------
    # Reads used by orchestration
    # ------------------------------------------------------------------
    def pairs_for_activity(self, external_activity_id: int) -> List[PairKey]:
        """``(week_id, participant_id)`` pairs currently counting this activity."""

        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(ActivityRecord.week_id, ActivityRecord.participant_id)
                .where(ActivityRecord.external_activity_id == external_activity_id)
                .order_by(ActivityRecord.week_id)
            ).all()
        return [(row.week_id, row.participant_id) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _ensure_configured(session: Session, week_id: int, participant_id: int) -> None:
        if session.get(WeekRecord, week_id) is None:
            raise WeekNotFoundError(week_id)
        if session.get(ParticipantRecord, participant_id) is None:
            raise ParticipantNotFoundError(participant_id)

    @staticmethod
    def _delete_pair(session: Session, week_id: int, participant_id: int) -> Retraction:
        activity_ids = list(
            session.scalars(
                select(ActivityRecord.id).where(
                    ActivityRecord.week_id == week_id,
                    ActivityRecord.participant_id == participant_id,
                )
            )
        )
        results = session.execute(
            delete(ResultRecord).where(
                ResultRecord.week_id == week_id,
                ResultRecord.participant_id == participant_id,
            )
        ).rowcount
        efforts = 0
        activities = 0
        if activity_ids:
            efforts = session.execute(
                delete(SegmentEffortRecord).where(
                    SegmentEffortRecord.activity_id.in_(activity_ids)
                )
            ).rowcount
            activities = session.execute(
                delete(ActivityRecord).where(ActivityRecord.id.in_(activity_ids))
            ).rowcount
        return Retraction(
            week_id=week_id,
            participant_id=participant_id,
            activities=activities or 0,
            efforts=efforts or 0,
            results=results or 0,
        )


__all__ = ["ResultStore"]
