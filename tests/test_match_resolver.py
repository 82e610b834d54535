"""Unit tests for week qualification."""

from __future__ import annotations

import pytest

from conftest import KINGS_MOUNTAIN, OLD_LA_HONDA, UNRELATED_SEGMENT, league_configuration, make_effort, ts
from segment_league.errors import MalformedActivityError
from segment_league.matching import (
    OUTSIDE_TIME_WINDOW,
    MatchResolver,
    check_week,
    qualifying_laps,
    resolve,
)
from segment_league.models import MatchStatus, Season, Week


@pytest.fixture
def config():
    seasons, _segments, weeks, _participants = league_configuration()
    return seasons, weeks


def _week(required_laps=2, start="2025-04-14T00:00:00Z", end="2025-04-20T23:59:59Z"):
    return Week(
        id=10,
        season_id=1,
        segment_id=KINGS_MOUNTAIN,
        name="Double Kings",
        start_at=ts(start),
        end_at=ts(end),
        required_laps=required_laps,
    )


def test_outside_every_season_checks_no_weeks(config):
    seasons, weeks = config
    outcome = resolve([make_effort(OLD_LA_HONDA, 900, 0)], ts("2024-12-25T09:00:00Z"), seasons, weeks)
    assert outcome.status is MatchStatus.NO_MATCHING_WEEKS
    assert outcome.weeks_checked == 0
    assert outcome.matched_weeks == []
    assert outcome.to_dict()["summary"]["total_seasons"] == 0


def test_overlapping_seasons_match_both_weeks(config):
    seasons, weeks = config
    start = ts("2025-04-09T08:00:00Z")
    outcome = resolve([make_effort(OLD_LA_HONDA, 900, 0)], start, seasons, weeks)

    assert outcome.status is MatchStatus.QUALIFIED
    assert sorted(c.week_id for c in outcome.matched_weeks) == [1, 3]
    # Every week of both surviving seasons is reported.
    assert outcome.weeks_checked == 4
    reasons = {c.week_id: c.reason for c in outcome.week_checks}
    assert reasons[2] == OUTSIDE_TIME_WINDOW
    assert reasons[4] == OUTSIDE_TIME_WINDOW
    assert reasons[1] == "1/1 laps"
    assert all(c.total_time_seconds == 900 for c in outcome.matched_weeks)


def test_latest_season_reported_first(config):
    seasons, weeks = config
    outcome = resolve([make_effort(OLD_LA_HONDA, 900, 0)], ts("2025-04-09T08:00:00Z"), seasons, weeks)
    assert [s.season_id for s in outcome.seasons] == [2, 1]


def test_one_lap_short_of_double_lap_week():
    week = _week()
    start = ts("2025-04-15T07:00:00Z")
    check = check_week(week, [make_effort(KINGS_MOUNTAIN, 1200, 0)], start)
    assert check.matched is False
    assert check.reason == "1/2 laps"
    assert check.efforts_found == 1
    assert check.total_time_seconds is None


def test_two_laps_sum_elapsed_time():
    week = _week()
    efforts = [make_effort(KINGS_MOUNTAIN, 1200, 0), make_effort(KINGS_MOUNTAIN, 1150, 1)]
    check = check_week(week, efforts, ts("2025-04-15T07:00:00Z"))
    assert check.matched is True
    assert check.reason == "2/2 laps"
    assert check.total_time_seconds == 2350


def test_qualifying_laps_are_first_in_ride_order_not_fastest():
    efforts = [
        make_effort(KINGS_MOUNTAIN, 1300, 2),
        make_effort(KINGS_MOUNTAIN, 1200, 0),
        make_effort(KINGS_MOUNTAIN, 1000, 4),
        make_effort(KINGS_MOUNTAIN, 1250, 3),
    ]
    laps = qualifying_laps(efforts, 2)
    assert [e.effort_index for e in laps] == [0, 2]


def test_qualifying_laps_rejects_non_positive_requirement():
    with pytest.raises(MalformedActivityError):
        qualifying_laps([make_effort(KINGS_MOUNTAIN, 1200, 0)], 0)


@pytest.mark.parametrize(
    "start_iso,expected",
    [
        ("2025-04-14T00:00:00Z", True),
        ("2025-04-20T23:59:59Z", True),
        ("2025-04-13T23:59:59Z", False),
        ("2025-04-21T00:00:00Z", False),
    ],
)
def test_week_window_edges_are_inclusive(start_iso, expected):
    week = _week(required_laps=1)
    check = check_week(week, [make_effort(KINGS_MOUNTAIN, 1200, 0)], ts(start_iso))
    assert check.matched is expected
    if not expected:
        assert check.reason == OUTSIDE_TIME_WINDOW


def test_week_window_gated_independently_of_season():
    season = Season(7, "Long", ts("2025-01-01T00:00:00Z"), ts("2025-12-31T23:59:59Z"))
    week = Week(70, 7, OLD_LA_HONDA, "June", ts("2025-06-01T00:00:00Z"), ts("2025-06-07T23:59:59Z"))
    outcome = resolve(
        [make_effort(OLD_LA_HONDA, 900, 0)], ts("2025-05-15T10:00:00Z"), [season], [week]
    )
    assert outcome.status is MatchStatus.NO_MATCHING_WEEKS
    assert outcome.weeks_checked == 1
    assert outcome.week_checks[0].reason == OUTSIDE_TIME_WINDOW


def test_no_efforts_on_segment_reports_no_segments(config):
    seasons, weeks = config
    outcome = resolve(
        [make_effort(UNRELATED_SEGMENT, 400, 0)], ts("2025-04-09T08:00:00Z"), seasons, weeks
    )
    assert outcome.status is MatchStatus.NO_SEGMENTS
    eligible = [c for c in outcome.week_checks if c.in_time_window]
    assert {c.reason for c in eligible} == {f"No efforts on segment {OLD_LA_HONDA}"}


def test_insufficient_laps_takes_precedence_over_no_segments(config):
    seasons, weeks = config
    outcome = resolve(
        [make_effort(KINGS_MOUNTAIN, 1200, 0)], ts("2025-04-16T08:00:00Z"), seasons, weeks
    )
    assert outcome.status is MatchStatus.INSUFFICIENT_LAPS
    assert "Activity did not complete enough laps" in outcome.message


def test_diagnostics_document_shape(config):
    seasons, weeks = config
    outcome = MatchResolver().resolve(
        [make_effort(OLD_LA_HONDA, 900, 0)], ts("2025-04-09T08:00:00Z"), seasons, weeks
    )
    document = outcome.to_dict()
    assert document["summary"] == {
        "status": "qualified",
        "message": "Activity qualified for 2 of 4 weeks",
        "total_weeks_checked": 4,
        "total_weeks_matched": 2,
        "total_seasons": 2,
    }
    spring = next(s for s in document["matching_seasons"] if s["season_id"] == 1)
    assert spring["matched_weeks_count"] == 1
    assert len(spring["matched_weeks"]) == 3
