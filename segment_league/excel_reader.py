"""Workbook reading layer for league configuration (pure reads + validation).

Dates in the workbook are interpreted as UTC and converted to Unix seconds.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import pandas as pd

from .errors import ExcelFormatError
from .models import Participant, Season, Segment, Week
from .utils import datetime_to_unix, unix_to_iso

SEASONS_SHEET = "Seasons"
SEGMENTS_SHEET = "Segments"
WEEKS_SHEET = "Weeks"
PARTICIPANTS_SHEET = "Participants"

_START_COL = "Start Date"
_END_COL = "End Date"

_REQUIRED_SEASON_COLS = {"Season ID", "Name", _START_COL, _END_COL}
_REQUIRED_SEGMENT_COLS = {"Segment ID", "Name"}
_REQUIRED_WEEK_COLS = {
    "Week ID",
    "Season ID",
    "Segment ID",
    "Name",
    _START_COL,
    _END_COL,
}
_REQUIRED_PARTICIPANT_COLS = {"Name", "Strava ID"}


def _is_blank(value: object) -> bool:
    return value is None or pd.isna(value) or str(value).strip() == ""


def _normalise_id(raw: str) -> str:
    candidate = raw.strip()
    if candidate.endswith(".0"):
        candidate = candidate[:-2]
    return candidate


def _parse_id(value: object, label: str, sheet: str, row_label: str) -> int:
    if _is_blank(value):
        raise ExcelFormatError(f"{label} missing in {row_label} of '{sheet}' sheet")
    candidate = _normalise_id(str(value))
    if not candidate.isdigit():
        raise ExcelFormatError(
            f"{row_label} of '{sheet}' sheet has invalid {label} '{value}' (expected digits only)"
        )
    return int(candidate)


def _clean_required_text(value: object, label: str, sheet: str, row_label: str) -> str:
    if _is_blank(value):
        raise ExcelFormatError(f"{label} missing in {row_label} of '{sheet}' sheet")
    return str(value).strip()


def _clean_optional_text(value: object) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def _optional_float(value: object) -> Optional[float]:
    if _is_blank(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value: object) -> Optional[int]:
    number = _optional_float(value)
    return int(number) if number is not None else None


def _parse_bool(value: object, default: bool = True) -> bool:
    if _is_blank(value):
        return default
    if isinstance(value, (bool, int, float)):
        return bool(value)
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_timestamp(value: object, label: str, sheet: str, row_label: str) -> int:
    if _is_blank(value):
        raise ExcelFormatError(f"{label} missing in {row_label} of '{sheet}' sheet")
    stamp = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(stamp):
        raise ExcelFormatError(
            f"{row_label} of '{sheet}' sheet has unparseable {label} '{value}'"
        )
    return datetime_to_unix(stamp.to_pydatetime())


def _parse_positive_int(
    value: object, label: str, sheet: str, row_label: str, default: int = 1
) -> int:
    if _is_blank(value):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError) as exc:
        raise ExcelFormatError(
            f"{row_label} of '{sheet}' sheet has invalid {label} '{value}'"
        ) from exc
    if number < 1:
        raise ExcelFormatError(
            f"{row_label} of '{sheet}' sheet has {label} {number}; must be at least 1"
        )
    return number


def _check_range(start_at: int, end_at: int, sheet: str, row_label: str) -> None:
    if start_at > end_at:
        raise ExcelFormatError(
            f"{row_label} of '{sheet}' sheet ends before it starts "
            f"({unix_to_iso(start_at)} > {unix_to_iso(end_at)})"
        )


def _assert_file_exists(path: str | Path) -> None:
    if not Path(path).is_file():
        raise FileNotFoundError(f"Workbook not found: {path}")


def _coerce_path(pathlike: str | Path) -> str:
    return str(Path(pathlike))


class _WorkbookReader:
    """Caches parsed sheets so each Excel workbook is read once."""

    def __init__(self, filepath: str) -> None:
        self._excel = pd.ExcelFile(filepath)
        self._cache: dict[str, pd.DataFrame] = {}

    def parse(self, sheet_name: str) -> pd.DataFrame:
        if sheet_name not in self._cache:
            self._cache[sheet_name] = self._excel.parse(sheet_name=sheet_name)
        return self._cache[sheet_name]

    def close(self) -> None:
        self._excel.close()


def _validate_columns(df: pd.DataFrame, required: set[str], sheet: str) -> None:
    missing = required - set(df.columns)
    if missing:
        raise ExcelFormatError(
            f"Missing columns in '{sheet}' sheet: {', '.join(sorted(missing))}. Present: {list(df.columns)}"
        )


def _load_sheet(
    filepath: str | Path,
    workbook: Optional[_WorkbookReader],
    sheet_name: str,
    required: set[str],
) -> pd.DataFrame:
    filepath = _coerce_path(filepath)
    if workbook is None:
        _assert_file_exists(filepath)
    try:
        if workbook is not None:
            df = workbook.parse(sheet_name)
        else:
            df = pd.read_excel(filepath, sheet_name=sheet_name)
    except ValueError as exc:
        raise ExcelFormatError(f"Sheet '{sheet_name}' not found: {exc}") from exc
    _validate_columns(df, required, sheet_name)
    return df


def _rows(df: pd.DataFrame) -> Iterator[tuple[str, dict]]:
    for row_offset, record in enumerate(df.to_dict(orient="records"), start=2):
        if all(_is_blank(value) for value in record.values()):
            continue
        yield f"row {row_offset}", record


def read_seasons(
    filepath: str | Path, workbook: Optional[_WorkbookReader] = None
) -> List[Season]:
    df = _load_sheet(filepath, workbook, SEASONS_SHEET, _REQUIRED_SEASON_COLS)
    seasons: List[Season] = []
    for row_label, row in _rows(df):
        start_at = _parse_timestamp(row[_START_COL], _START_COL, SEASONS_SHEET, row_label)
        end_at = _parse_timestamp(row[_END_COL], _END_COL, SEASONS_SHEET, row_label)
        _check_range(start_at, end_at, SEASONS_SHEET, row_label)
        seasons.append(
            Season(
                id=_parse_id(row["Season ID"], "Season ID", SEASONS_SHEET, row_label),
                name=_clean_required_text(row["Name"], "Name", SEASONS_SHEET, row_label),
                start_at=start_at,
                end_at=end_at,
                is_active=_parse_bool(row.get("Active")),
            )
        )
    return seasons


def read_segments(
    filepath: str | Path, workbook: Optional[_WorkbookReader] = None
) -> List[Segment]:
    df = _load_sheet(filepath, workbook, SEGMENTS_SHEET, _REQUIRED_SEGMENT_COLS)
    segments: List[Segment] = []
    for row_label, row in _rows(df):
        segments.append(
            Segment(
                id=_parse_id(row["Segment ID"], "Segment ID", SEGMENTS_SHEET, row_label),
                name=_clean_required_text(row["Name"], "Name", SEGMENTS_SHEET, row_label),
                distance=_optional_float(row.get("Distance (m)")),
                average_grade=_optional_float(row.get("Average Grade")),
                total_elevation_gain=_optional_float(row.get("Elevation Gain (m)")),
                climb_category=_optional_int(row.get("Climb Category")),
                city=_clean_optional_text(row.get("City")),
                state=_clean_optional_text(row.get("State")),
                country=_clean_optional_text(row.get("Country")),
            )
        )
    return segments


def read_weeks(
    filepath: str | Path, workbook: Optional[_WorkbookReader] = None
) -> List[Week]:
    df = _load_sheet(filepath, workbook, WEEKS_SHEET, _REQUIRED_WEEK_COLS)
    weeks: List[Week] = []
    for row_label, row in _rows(df):
        start_at = _parse_timestamp(row[_START_COL], _START_COL, WEEKS_SHEET, row_label)
        end_at = _parse_timestamp(row[_END_COL], _END_COL, WEEKS_SHEET, row_label)
        _check_range(start_at, end_at, WEEKS_SHEET, row_label)
        weeks.append(
            Week(
                id=_parse_id(row["Week ID"], "Week ID", WEEKS_SHEET, row_label),
                season_id=_parse_id(row["Season ID"], "Season ID", WEEKS_SHEET, row_label),
                segment_id=_parse_id(
                    row["Segment ID"], "Segment ID", WEEKS_SHEET, row_label
                ),
                name=_clean_required_text(row["Name"], "Name", WEEKS_SHEET, row_label),
                start_at=start_at,
                end_at=end_at,
                required_laps=_parse_positive_int(
                    row.get("Required Laps"), "Required Laps", WEEKS_SHEET, row_label
                ),
                multiplier=_parse_positive_int(
                    row.get("Multiplier"), "Multiplier", WEEKS_SHEET, row_label
                ),
                notes=_clean_optional_text(row.get("Notes")) or "",
            )
        )
    return weeks


def read_participants(
    filepath: str | Path, workbook: Optional[_WorkbookReader] = None
) -> List[Participant]:
    df = _load_sheet(
        filepath, workbook, PARTICIPANTS_SHEET, _REQUIRED_PARTICIPANT_COLS
    )
    participants: List[Participant] = []
    for row_label, row in _rows(df):
        name = _clean_required_text(row["Name"], "Name", PARTICIPANTS_SHEET, row_label)
        participants.append(
            Participant(
                id=_parse_id(
                    row["Strava ID"],
                    f"Strava ID for '{name}'",
                    PARTICIPANTS_SHEET,
                    row_label,
                ),
                name=name,
                active=_parse_bool(row.get("Active")),
            )
        )
    return participants


@contextmanager
def workbook_context(filepath: str | Path) -> Iterator[_WorkbookReader]:
    """Yield a caching workbook reader so callers reuse a single file handle."""

    file_path = _coerce_path(filepath)
    _assert_file_exists(file_path)
    reader = _WorkbookReader(file_path)
    try:
        yield reader
    finally:
        reader.close()


__all__ = [
    "ExcelFormatError",
    "read_participants",
    "read_seasons",
    "read_segments",
    "read_weeks",
    "workbook_context",
]
