from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Sequence

from .config import INPUT_FILE, OUTPUT_FILE, OUTPUT_FILE_TIMESTAMP_ENABLED
from .database import (
    SessionFactory,
    create_db_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from .errors import (
    ConfigurationNotFoundError,
    ExcelFormatError,
    MalformedActivityError,
    ResultConflictError,
)
from .excel_reader import (
    read_participants,
    read_seasons,
    read_segments,
    read_weeks,
    workbook_context,
)
from .excel_writer import write_leaderboards
from .models import StandingsEntry
from .repository import get_season, load_weeks, save_configuration
from .services import ActivityProcessor, LeaderboardService, StandingsService
from .utils import json_dumps_sorted


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _resolve_output_path(output: str | None) -> str:
    if output:
        return output
    if OUTPUT_FILE_TIMESTAMP_ENABLED:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{OUTPUT_FILE}_{timestamp}.xlsx"
    return f"{OUTPUT_FILE}.xlsx"


def _emit(document: Any) -> None:
    sys.stdout.write(json_dumps_sorted(document, indent=2) + "\n")


def _read_payload(source: str) -> Dict[str, Any]:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, "r", encoding="utf-8") as handle:
        return json.load(handle)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_import_config(args: argparse.Namespace, factory: SessionFactory) -> int:
    input_file = args.input or INPUT_FILE
    logging.info("Loading league configuration from %s ...", input_file)
    with workbook_context(input_file) as workbook:
        seasons = read_seasons(input_file, workbook=workbook)
        segments = read_segments(input_file, workbook=workbook)
        weeks = read_weeks(input_file, workbook=workbook)
        participants = read_participants(input_file, workbook=workbook)
    with session_scope(factory) as session:
        counts = save_configuration(
            session,
            seasons=seasons,
            segments=segments,
            weeks=weeks,
            participants=participants,
        )
    _emit(counts)
    return 0


def _cmd_process(args: argparse.Namespace, factory: SessionFactory) -> int:
    payload = _read_payload(args.activity_json)
    report = ActivityProcessor(factory).process_payload(args.participant, payload)
    _emit(report.to_dict())
    return 0


def _cmd_delete(args: argparse.Namespace, factory: SessionFactory) -> int:
    retractions = ActivityProcessor(factory).delete(args.activity)
    _emit(
        {
            "activity_id": args.activity,
            "retracted": [
                {
                    "week_id": r.week_id,
                    "participant_id": r.participant_id,
                    "results": r.results,
                    "efforts": r.efforts,
                    "activities": r.activities,
                }
                for r in retractions
            ],
        }
    )
    return 0


def _cmd_leaderboard(args: argparse.Namespace, factory: SessionFactory) -> int:
    _emit(LeaderboardService(factory).week_leaderboard(args.week))
    return 0


def _cmd_standings(args: argparse.Namespace, factory: SessionFactory) -> int:
    standings = StandingsService(factory).season_standings(args.season)
    _emit(
        [
            {
                "rank": s.rank,
                "participant_id": s.participant_id,
                "name": s.name,
                "total_points": s.total_points,
                "weeks_completed": s.weeks_completed,
                "polka_dot_wins": s.polka_dot_wins,
            }
            for s in standings
        ]
    )
    return 0


def _jersey_holder(standing: StandingsEntry | None) -> Dict[str, Any] | None:
    if standing is None:
        return None
    return {
        "participant_id": standing.participant_id,
        "name": standing.name,
        "total_points": standing.total_points,
        "polka_dot_wins": standing.polka_dot_wins,
    }


def _cmd_jerseys(args: argparse.Namespace, factory: SessionFactory) -> int:
    jerseys = StandingsService(factory).season_jerseys(args.season)
    _emit(
        {
            "season_id": jerseys.season_id,
            "yellow": _jersey_holder(jerseys.yellow),
            "polka_dot": _jersey_holder(jerseys.polka_dot),
        }
    )
    return 0


def _cmd_export(args: argparse.Namespace, factory: SessionFactory) -> int:
    output_file = _resolve_output_path(args.output)
    with session_scope(factory) as session:
        season = get_season(session, args.season)
        weeks = load_weeks(session, season.id)
    leaderboards = LeaderboardService(factory)
    scored = [(week, leaderboards.score_week(week.id)) for week in weeks]
    standings = StandingsService(factory, leaderboards).season_standings(season.id)
    sheets = write_leaderboards(output_file, scored, standings=standings)
    logging.info(
        "Results for season '%s' saved to %s (sheets=%d)",
        season.name,
        output_file,
        len(sheets),
    )
    return 0


Command = Callable[[argparse.Namespace, SessionFactory], int]

_COMMANDS: Dict[str, Command] = {
    "import-config": _cmd_import_config,
    "process": _cmd_process,
    "delete": _cmd_delete,
    "leaderboard": _cmd_leaderboard,
    "standings": _cmd_standings,
    "jerseys": _cmd_jerseys,
    "export": _cmd_export,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Weekly segment league: match activities, score weeks, export results"
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy database URL (default: SEGMENT_LEAGUE_DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser(
        "import-config", help="Load seasons, segments, weeks and participants from a workbook"
    )
    p_import.add_argument("--input", help=f"Workbook path (default: {INPUT_FILE})")

    p_process = sub.add_parser("process", help="Match and store one activity")
    p_process.add_argument("--participant", type=int, required=True, help="Athlete id")
    p_process.add_argument(
        "--activity-json",
        required=True,
        help="Path to the detailed activity JSON, or '-' for stdin",
    )

    p_delete = sub.add_parser("delete", help="Remove an activity from every week")
    p_delete.add_argument("--activity", type=int, required=True, help="Activity id")

    p_board = sub.add_parser("leaderboard", help="Print a week's leaderboard")
    p_board.add_argument("--week", type=int, required=True, help="Week id")

    p_standings = sub.add_parser("standings", help="Print season standings")
    p_standings.add_argument("--season", type=int, required=True, help="Season id")

    p_jerseys = sub.add_parser(
        "jerseys", help="Print the season's yellow and polka dot jersey holders"
    )
    p_jerseys.add_argument("--season", type=int, required=True, help="Season id")

    p_export = sub.add_parser("export", help="Write a season's leaderboards to Excel")
    p_export.add_argument("--season", type=int, required=True, help="Season id")
    p_export.add_argument(
        "--output", help=f"Output workbook (default: {OUTPUT_FILE}[_timestamp].xlsx)"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.log_level)

    engine = create_db_engine(args.database_url)
    try:
        init_db(engine)
        factory = create_session_factory(engine)
        return _COMMANDS[args.command](args, factory)
    except (ExcelFormatError, FileNotFoundError) as exc:
        logging.error("Failed to load input workbook: %s", exc)
        return 1
    except ConfigurationNotFoundError as exc:
        logging.error("%s", exc)
        return 1
    except (MalformedActivityError, json.JSONDecodeError) as exc:
        logging.error("Rejected activity: %s", exc)
        return 1
    except ResultConflictError as exc:
        logging.error("Result write kept conflicting, try again: %s", exc)
        return 1
    finally:
        engine.dispose()


__all__ = ["main"]
