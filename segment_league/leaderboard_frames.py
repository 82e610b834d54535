"""Leaderboard aggregation helpers.

Pure functions that turn scored weeks and season standings into DataFrames
ready to be written to Excel. Kept apart from the writer so the tabular shape
can be tested without touching a workbook.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import pandas as pd

from .models import RankedResult, StandingsEntry, Week
from .utils import format_time

RANK_COL = "Rank"
PARTICIPANT_COL = "Participant"
TIME_SEC_COL = "Time (sec)"
TIME_FMT_COL = "Time (h:mm:ss)"
LAPS_COL = "Laps"
BASE_POINTS_COL = "Base Points"
PR_BONUS_COL = "PR Bonus"
MULTIPLIER_COL = "Multiplier"
TOTAL_POINTS_COL = "Total Points"
DEVICE_COL = "Device"

STANDINGS_COLUMNS = [
    "Rank",
    "Participant",
    "Total Points",
    "Weeks Completed",
    "Polka Dot Wins",
]

WeekLeaderboard = Tuple[Week, Sequence[RankedResult]]

__all__ = [
    "build_leaderboard_outputs",
    "build_standings_frame",
    "leaderboard_frame",
]


def _rows_for_week(entries: Sequence[RankedResult]) -> List[dict]:
    rows: List[dict] = []
    for entry in entries:
        rows.append(
            {
                RANK_COL: entry.rank,
                PARTICIPANT_COL: entry.participant_name,
                TIME_SEC_COL: entry.total_time_seconds,
                TIME_FMT_COL: format_time(entry.total_time_seconds),
                LAPS_COL: ", ".join(
                    lap.time_hhmmss or "" for lap in entry.laps
                ),
                BASE_POINTS_COL: entry.base_points,
                PR_BONUS_COL: entry.pr_bonus,
                MULTIPLIER_COL: entry.multiplier,
                TOTAL_POINTS_COL: entry.total_points,
                DEVICE_COL: entry.device_name,
            }
        )
    return rows


def _order_columns(df: pd.DataFrame) -> pd.DataFrame:
    from .config import LEADERBOARD_COLUMN_ORDER, LEADERBOARD_ENFORCE_COLUMN_ORDER

    if not LEADERBOARD_ENFORCE_COLUMN_ORDER:
        return df
    preferred = [c for c in LEADERBOARD_COLUMN_ORDER if c in df.columns]
    remaining = [c for c in df.columns if c not in preferred]
    return df[preferred + remaining]


def leaderboard_frame(entries: Sequence[RankedResult]) -> pd.DataFrame:
    df = pd.DataFrame(_rows_for_week(entries))
    if df.empty:
        from .config import LEADERBOARD_COLUMN_ORDER

        return pd.DataFrame(columns=LEADERBOARD_COLUMN_ORDER)
    df.sort_values(by=[RANK_COL], inplace=True)
    return _order_columns(df.reset_index(drop=True))


def build_leaderboard_outputs(
    weeks: Sequence[WeekLeaderboard],
) -> List[Tuple[str, pd.DataFrame]]:
    """Return ``(sheet_base_name, frame)`` per week in week order.

    Empty weeks are skipped unless ``LEADERBOARD_CREATE_EMPTY_WEEK_SHEETS``.
    """

    from .config import LEADERBOARD_CREATE_EMPTY_WEEK_SHEETS

    outputs: List[Tuple[str, pd.DataFrame]] = []
    for week, entries in sorted(weeks, key=lambda item: (item[0].start_at, item[0].id)):
        if not entries and not LEADERBOARD_CREATE_EMPTY_WEEK_SHEETS:
            continue
        df = leaderboard_frame(entries)
        df.attrs["week_id"] = week.id
        df.attrs["multiplier"] = week.multiplier
        outputs.append((week.name, df))
    return outputs


def build_standings_frame(standings: Sequence[StandingsEntry]) -> pd.DataFrame:
    if not standings:
        return pd.DataFrame(columns=STANDINGS_COLUMNS)
    return pd.DataFrame(
        [
            {
                "Rank": s.rank,
                "Participant": s.name,
                "Total Points": s.total_points,
                "Weeks Completed": s.weeks_completed,
                "Polka Dot Wins": s.polka_dot_wins,
            }
            for s in standings
        ],
        columns=STANDINGS_COLUMNS,
    )
