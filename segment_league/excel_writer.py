"""Excel writer for weekly leaderboards and season standings (reads live in excel_reader)."""

from __future__ import annotations

import logging
from os import PathLike
from pathlib import Path
from typing import Sequence

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from .leaderboard_frames import (
    WeekLeaderboard,
    build_leaderboard_outputs,
    build_standings_frame,
)
from .models import StandingsEntry

STANDINGS_SHEET = "Standings"
SUMMARY_SHEET = "Summary"
MAX_SHEET_NAME_LEN = 31
# Characters Excel refuses in sheet titles.
_INVALID_SHEET_CHARS = set('[]:*?/\\')

__all__ = ["write_leaderboards"]

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(patternType="solid", fgColor="FFFF40FF")
HEADER_BORDER = Border(
    left=Side(style="thin", color="000000"),
    right=Side(style="thin", color="000000"),
    top=Side(style="thin", color="000000"),
    bottom=Side(style="thin", color="000000"),
)

LOGGER = logging.getLogger(__name__)

PathInput = str | Path | PathLike[str]


def _coerce_path(pathlike: PathInput) -> str:
    return str(Path(pathlike))


def _unique_sheet_name(base: str, used: set[str]) -> str:
    cleaned = "".join("_" if ch in _INVALID_SHEET_CHARS else ch for ch in base).strip()
    base = (cleaned or "Sheet")[:MAX_SHEET_NAME_LEN]
    name = base
    i = 1
    while name in used:
        suffix = f"_{i}"
        name = base[: MAX_SHEET_NAME_LEN - len(suffix)] + suffix
        i += 1
    used.add(name)
    return name


def _autosize(ws: Worksheet) -> None:
    from .config import (
        EXCEL_AUTOSIZE_COLUMNS,
        EXCEL_AUTOSIZE_MAX_ROWS,
        EXCEL_AUTOSIZE_MAX_WIDTH,
        EXCEL_AUTOSIZE_MIN_WIDTH,
        EXCEL_AUTOSIZE_PADDING,
    )

    if not EXCEL_AUTOSIZE_COLUMNS or ws.max_row > EXCEL_AUTOSIZE_MAX_ROWS:
        return
    for col_cells in ws.columns:
        col_letter = getattr(col_cells[0], "column_letter", None)
        if not col_letter:
            continue
        max_len = max(
            (len(str(cell.value)) for cell in col_cells if cell.value is not None),
            default=0,
        )
        ws.column_dimensions[col_letter].width = min(
            EXCEL_AUTOSIZE_MAX_WIDTH,
            max(EXCEL_AUTOSIZE_MIN_WIDTH, max_len + EXCEL_AUTOSIZE_PADDING),
        )


def _style_header_row(ws: Worksheet, row_idx: int, max_col: int | None = None) -> None:
    if row_idx <= 0:
        return
    max_col = max_col or ws.max_column
    for col_idx in range(1, max_col + 1):
        cell = ws.cell(row=row_idx, column=col_idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER


def _write_frame(
    writer: pd.ExcelWriter, df: pd.DataFrame, base_name: str, used: set[str]
) -> str:
    sheet_name = _unique_sheet_name(base_name, used)
    df.to_excel(writer, sheet_name=sheet_name, index=False)
    ws = writer.sheets[sheet_name]
    _style_header_row(ws, 1, len(df.columns))
    _autosize(ws)
    return sheet_name


def write_leaderboards(
    filepath: PathInput,
    weeks: Sequence[WeekLeaderboard],
    standings: Sequence[StandingsEntry] | None = None,
) -> list[str]:
    """Write one sheet per week plus an optional standings sheet.

    Returns the sheet names in workbook order.
    """

    filepath = _coerce_path(filepath)
    written: list[str] = []
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        used_sheet_names: set[str] = set()
        if standings is not None:
            written.append(
                _write_frame(
                    writer,
                    build_standings_frame(standings),
                    STANDINGS_SHEET,
                    used_sheet_names,
                )
            )
        for base_name, df in build_leaderboard_outputs(weeks):
            sheet_name = _write_frame(writer, df, base_name, used_sheet_names)
            LOGGER.info(
                "Wrote leaderboard sheet: %s rows=%s (empty=%s)",
                sheet_name,
                len(df),
                df.empty,
            )
            written.append(sheet_name)
        if not written:
            df = pd.DataFrame({"Message": ["No results to display."]})
            written.append(_write_frame(writer, df, SUMMARY_SHEET, used_sheet_names))
    LOGGER.info("Wrote %d sheet(s) to %s", len(written), filepath)
    return written
