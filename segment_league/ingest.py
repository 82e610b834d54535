"""Conversion of raw activity payloads into engine observations.

The activity-tracking client hands over the detailed activity record exactly
as the upstream API returned it. This module turns that record into an
``ActivityObservation``: timestamps become Unix seconds (UTC), efforts are
numbered in arrival order, and the upstream ``pr_rank`` is reduced to a
boolean PR flag. Anything that would make a stored result untrustworthy is
rejected here, before the write path is ever reached.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from .errors import MalformedActivityError
from .models import ActivityObservation, EffortObservation
from .utils import iso_to_unix

LOGGER = logging.getLogger(__name__)


def pr_achieved_from_rank(pr_rank: Any) -> bool:
    """Only a truthy rank counts as a PR; ``None`` and ``0`` do not."""

    return bool(pr_rank)


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _coerce_elapsed(value: Any, label: str) -> int:
    if value is None:
        raise MalformedActivityError(f"{label} is missing elapsed_time")
    if isinstance(value, bool):
        raise MalformedActivityError(f"{label} has invalid elapsed_time {value!r}")
    try:
        elapsed = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedActivityError(
            f"{label} has invalid elapsed_time {value!r}"
        ) from exc
    if elapsed != elapsed or elapsed < 0:
        raise MalformedActivityError(f"{label} has negative elapsed_time {value!r}")
    return int(round(elapsed))


def _effort_segment_id(effort: Mapping[str, Any], label: str) -> int:
    segment_obj = effort.get("segment")
    raw = segment_obj.get("id") if isinstance(segment_obj, Mapping) else None
    if raw is None:
        raw = effort.get("segment_id")
    segment_id = _coerce_int(raw)
    if segment_id is None:
        raise MalformedActivityError(f"{label} has no segment id")
    return segment_id


def parse_effort(
    effort: Mapping[str, Any], effort_index: int, activity_start_at: int
) -> EffortObservation:
    label = f"Effort {effort_index}"
    if not isinstance(effort, Mapping):
        raise MalformedActivityError(f"{label} is not an object")
    segment_id = _effort_segment_id(effort, label)
    elapsed = _coerce_elapsed(effort.get("elapsed_time"), label)
    raw_start = effort.get("start_date")
    if raw_start:
        start_at = iso_to_unix(str(raw_start))
        if start_at is None:
            raise MalformedActivityError(
                f"{label} has unparseable start_date {raw_start!r}"
            )
    else:
        start_at = activity_start_at
    effort_id = effort.get("id")
    return EffortObservation(
        segment_id=segment_id,
        elapsed_seconds=elapsed,
        start_at=start_at,
        effort_index=effort_index,
        pr_achieved=pr_achieved_from_rank(effort.get("pr_rank")),
        external_effort_id=str(effort_id) if effort_id is not None else None,
    )


def parse_activity(payload: Mapping[str, Any]) -> ActivityObservation:
    """Build an ``ActivityObservation`` from a detailed activity record.

    Uses ``start_date`` (UTC) and never ``start_date_local``.
    """

    if not isinstance(payload, Mapping):
        raise MalformedActivityError("Activity payload must be an object")
    activity_id = _coerce_int(payload.get("id"))
    if activity_id is None:
        raise MalformedActivityError(f"Activity has invalid id {payload.get('id')!r}")
    start_at = iso_to_unix(payload.get("start_date"))
    if start_at is None:
        raise MalformedActivityError(
            f"Activity {activity_id} has unparseable start_date "
            f"{payload.get('start_date')!r}"
        )
    raw_efforts = payload.get("segment_efforts") or []
    if not isinstance(raw_efforts, list):
        raise MalformedActivityError(
            f"Activity {activity_id} segment_efforts must be a list"
        )
    efforts: List[EffortObservation] = [
        parse_effort(effort, index, start_at)
        for index, effort in enumerate(raw_efforts)
    ]
    device = payload.get("device_name")
    LOGGER.debug(
        "Parsed activity %s start_at=%s efforts=%d",
        activity_id,
        start_at,
        len(efforts),
    )
    return ActivityObservation(
        external_activity_id=activity_id,
        start_at=start_at,
        device_name=str(device) if device else None,
        efforts=tuple(efforts),
        name=payload.get("name"),
    )


def validate_efforts(efforts: Any) -> None:
    """Reject effort sequences that cannot be stored as-is."""

    for position, effort in enumerate(efforts):
        if not isinstance(effort, EffortObservation):
            raise MalformedActivityError(
                f"Effort {position} is {type(effort).__name__}, expected EffortObservation"
            )
        if effort.elapsed_seconds is None or effort.elapsed_seconds < 0:
            raise MalformedActivityError(
                f"Effort {position} has invalid elapsed time {effort.elapsed_seconds!r}"
            )
        if effort.start_at is None:
            raise MalformedActivityError(f"Effort {position} is missing start time")


__all__ = [
    "parse_activity",
    "parse_effort",
    "pr_achieved_from_rank",
    "validate_efforts",
]
