"""Activity-to-week matching."""

from .resolver import (
    MatchResolver,
    OUTSIDE_TIME_WINDOW,
    check_week,
    efforts_on_segment,
    qualifying_laps,
    resolve,
)

__all__ = [
    "MatchResolver",
    "OUTSIDE_TIME_WINDOW",
    "check_week",
    "efforts_on_segment",
    "qualifying_laps",
    "resolve",
]
