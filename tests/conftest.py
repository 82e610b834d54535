"""Global pytest fixtures & helpers.

Adds project root to path and provides an in-memory league database seeded
with a small, overlapping season layout shared across the service tests.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime

import pandas as pd
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from segment_league.database import (
    create_db_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from segment_league.models import EffortObservation, Participant, Season, Segment, Week
from segment_league.repository import save_configuration
from segment_league.utils import iso_to_unix

OLD_LA_HONDA = 111
KINGS_MOUNTAIN = 222
UNRELATED_SEGMENT = 999

ALICE = 1001
BOB = 1002
CARA = 1003


# --- Factory helpers -------------------------------------------------
def ts(iso: str) -> int:
    value = iso_to_unix(iso)
    assert value is not None
    return value


def make_effort(segment_id, elapsed, index, *, pr=False, start=None, effort_id=None):
    return EffortObservation(
        segment_id=segment_id,
        elapsed_seconds=elapsed,
        start_at=start if start is not None else ts("2025-04-09T08:00:00Z") + index * 600,
        effort_index=index,
        pr_achieved=pr,
        external_effort_id=effort_id,
    )


def make_payload(activity_id, start_date, efforts, device="Garmin Edge 540"):
    """Detailed activity record shaped like the upstream API response."""

    return {
        "id": activity_id,
        "name": f"Ride {activity_id}",
        "start_date": start_date,
        "start_date_local": start_date.replace("Z", ""),
        "device_name": device,
        "segment_efforts": [
            {
                "id": 50_000 + position,
                "segment": {"id": segment_id},
                "elapsed_time": elapsed,
                "start_date": start_date,
                "pr_rank": pr_rank,
            }
            for position, (segment_id, elapsed, pr_rank) in enumerate(efforts)
        ],
    }


def league_configuration():
    """Two seasons overlapping in April; weeks 1 and 3 share a window."""

    seasons = [
        Season(1, "Spring 2025", ts("2025-03-01T00:00:00Z"), ts("2025-05-31T23:59:59Z")),
        Season(2, "Hill Climb Series", ts("2025-04-01T00:00:00Z"), ts("2025-04-30T23:59:59Z")),
    ]
    segments = [
        Segment(OLD_LA_HONDA, "Old La Honda", distance=4800.0, average_grade=7.3),
        Segment(KINGS_MOUNTAIN, "Kings Mountain", distance=6400.0, average_grade=6.9),
    ]
    weeks = [
        Week(1, 1, OLD_LA_HONDA, "Week 1", ts("2025-04-07T00:00:00Z"), ts("2025-04-13T23:59:59Z")),
        Week(
            2,
            1,
            KINGS_MOUNTAIN,
            "Week 2",
            ts("2025-04-14T00:00:00Z"),
            ts("2025-04-20T23:59:59Z"),
            required_laps=2,
            multiplier=2,
        ),
        Week(3, 2, OLD_LA_HONDA, "Hill Week 1", ts("2025-04-07T00:00:00Z"), ts("2025-04-13T23:59:59Z")),
        Week(4, 1, OLD_LA_HONDA, "Week 4", ts("2025-04-21T00:00:00Z"), ts("2025-04-27T23:59:59Z")),
    ]
    participants = [
        Participant(ALICE, "Alice"),
        Participant(BOB, "Bob"),
        Participant(CARA, "Cara"),
    ]
    return seasons, segments, weeks, participants


def write_league_workbook(path, weeks_rows=None):
    seasons = pd.DataFrame(
        [
            {
                "Season ID": 1,
                "Name": "Spring 2025",
                "Start Date": datetime(2025, 3, 1),
                "End Date": datetime(2025, 5, 31, 23, 59, 59),
                "Active": "yes",
            }
        ]
    )
    segments = pd.DataFrame(
        [
            {"Segment ID": 111.0, "Name": "Old La Honda", "Distance (m)": 4800, "City": "Woodside"},
            {"Segment ID": 222, "Name": "Kings Mountain", "Distance (m)": None, "City": None},
        ]
    )
    weeks = pd.DataFrame(
        weeks_rows
        or [
            {
                "Week ID": 1,
                "Season ID": 1,
                "Segment ID": 111,
                "Name": "Week 1",
                "Start Date": datetime(2025, 4, 7),
                "End Date": datetime(2025, 4, 13, 23, 59, 59),
                "Required Laps": None,
                "Multiplier": None,
                "Notes": None,
            },
            {
                "Week ID": 2,
                "Season ID": 1,
                "Segment ID": 222,
                "Name": "Week 2: Double",
                "Start Date": datetime(2025, 4, 14),
                "End Date": datetime(2025, 4, 20, 23, 59, 59),
                "Required Laps": 2,
                "Multiplier": 2,
                "Notes": "Two laps",
            },
        ]
    )
    participants = pd.DataFrame(
        [
            {"Name": "Alice", "Strava ID": "1001", "Active": None},
            {"Name": None, "Strava ID": None, "Active": None},
            {"Name": "Bob", "Strava ID": 1002.0, "Active": "no"},
        ]
    )
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        seasons.to_excel(writer, sheet_name="Seasons", index=False)
        segments.to_excel(writer, sheet_name="Segments", index=False)
        weeks.to_excel(writer, sheet_name="Weeks", index=False)
        participants.to_excel(writer, sheet_name="Participants", index=False)


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://", echo=False)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def league(session_factory):
    seasons, segments, weeks, participants = league_configuration()
    with session_scope(session_factory) as session:
        save_configuration(
            session,
            seasons=seasons,
            segments=segments,
            weeks=weeks,
            participants=participants,
        )
    return session_factory


@pytest.fixture
def file_league(tmp_path):
    """Seeded league on a file database so threads get separate connections."""

    eng = create_db_engine(f"sqlite:///{tmp_path / 'league.db'}", echo=False)
    init_db(eng)
    factory = create_session_factory(eng)
    seasons, segments, weeks, participants = league_configuration()
    with session_scope(factory) as session:
        save_configuration(
            session,
            seasons=seasons,
            segments=segments,
            weeks=weeks,
            participants=participants,
        )
    yield factory
    eng.dispose()
