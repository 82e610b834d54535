from __future__ import annotations

import pytest

from conftest import ALICE, BOB, CARA, KINGS_MOUNTAIN, OLD_LA_HONDA, make_effort, ts
from segment_league.database import session_scope
from segment_league.errors import SeasonNotFoundError
from segment_league.schema import SegmentRecord
from segment_league.services import ResultStore, StandingsService
from segment_league.services.standings_service import is_hill_climb


def _record(store, participant, week, efforts, total, activity):
    store.commit(
        participant_id=participant,
        week_id=week,
        activity_external_id=activity,
        device_name=None,
        efforts=efforts,
        total_time_seconds=total,
        start_at=ts("2025-04-10T08:00:00Z"),
    )


def test_points_summed_across_season_weeks(league):
    store = ResultStore(league)
    # Week 1 (x1): Bob 3, Alice 2, Cara 1.
    _record(store, BOB, 1, [make_effort(OLD_LA_HONDA, 880, 0)], 880, 1)
    _record(store, ALICE, 1, [make_effort(OLD_LA_HONDA, 900, 0)], 900, 2)
    _record(store, CARA, 1, [make_effort(OLD_LA_HONDA, 990, 0)], 990, 3)
    # Week 2 (x2): Alice 2*2=4, Cara 1*2=2.
    laps = [make_effort(KINGS_MOUNTAIN, 1200, 0), make_effort(KINGS_MOUNTAIN, 1210, 1)]
    _record(store, ALICE, 2, laps, 2410, 4)
    _record(store, CARA, 2, laps, 2500, 5)
    # Week 3 belongs to the other season and must not count here.
    _record(store, BOB, 3, [make_effort(OLD_LA_HONDA, 870, 0)], 870, 6)

    standings = StandingsService(league).season_standings(1)

    assert [(s.name, s.total_points, s.weeks_completed, s.rank) for s in standings] == [
        ("Alice", 6, 2, 1),
        ("Cara", 3, 2, 2),
        ("Bob", 3, 1, 3),
    ]


def test_equal_points_prefer_more_weeks_completed(league):
    store = ResultStore(league)
    _record(store, BOB, 1, [make_effort(OLD_LA_HONDA, 880, 0)], 880, 1)
    _record(store, ALICE, 1, [make_effort(OLD_LA_HONDA, 900, 0)], 900, 2)
    _record(store, ALICE, 4, [make_effort(OLD_LA_HONDA, 900, 0)], 900, 3)

    standings = StandingsService(league).season_standings(1)
    assert [(s.name, s.total_points, s.weeks_completed) for s in standings] == [
        ("Alice", 2, 2),
        ("Bob", 2, 1),
    ]


def test_season_without_results_is_empty(league):
    assert StandingsService(league).season_standings(2) == []


def test_unknown_season_raises(league):
    with pytest.raises(SeasonNotFoundError):
        StandingsService(league).season_standings(42)


@pytest.mark.parametrize(
    "grade,expected",
    [(None, False), (0.0, False), (2.0, False), (2.1, True), (7.3, True)],
)
def test_is_hill_climb(grade, expected):
    assert is_hill_climb(grade) is expected


def _flatten(factory, segment_id):
    with session_scope(factory) as session:
        session.get(SegmentRecord, segment_id).average_grade = 1.5


def test_polka_dot_wins_count_only_hill_climb_weeks(league):
    _flatten(league, KINGS_MOUNTAIN)
    store = ResultStore(league)
    _record(store, BOB, 1, [make_effort(OLD_LA_HONDA, 880, 0)], 880, 1)
    _record(store, ALICE, 1, [make_effort(OLD_LA_HONDA, 900, 0)], 900, 2)
    laps = [make_effort(KINGS_MOUNTAIN, 1200, 0), make_effort(KINGS_MOUNTAIN, 1210, 1)]
    _record(store, ALICE, 2, laps, 2410, 3)
    _record(store, BOB, 2, laps, 2500, 4)
    _record(store, BOB, 4, [make_effort(OLD_LA_HONDA, 870, 0)], 870, 5)
    _record(store, ALICE, 4, [make_effort(OLD_LA_HONDA, 905, 0)], 905, 6)

    service = StandingsService(league)
    standings = service.season_standings(1)

    assert [
        (s.name, s.total_points, s.weeks_completed, s.polka_dot_wins) for s in standings
    ] == [
        ("Alice", 6, 3, 0),
        ("Bob", 6, 3, 2),
    ]
    jerseys = service.season_jerseys(1)
    assert jerseys.yellow.participant_id == ALICE
    assert jerseys.polka_dot.participant_id == BOB
    assert jerseys.polka_dot.polka_dot_wins == 2


def test_polka_dot_tie_goes_to_higher_standing(league):
    _flatten(league, KINGS_MOUNTAIN)
    store = ResultStore(league)
    # One climb win each; Bob also takes the flat week 2 and leads on points.
    _record(store, ALICE, 1, [make_effort(OLD_LA_HONDA, 880, 0)], 880, 1)
    _record(store, BOB, 1, [make_effort(OLD_LA_HONDA, 900, 0)], 900, 2)
    _record(store, BOB, 4, [make_effort(OLD_LA_HONDA, 870, 0)], 870, 3)
    _record(store, ALICE, 4, [make_effort(OLD_LA_HONDA, 905, 0)], 905, 4)
    laps = [make_effort(KINGS_MOUNTAIN, 1200, 0), make_effort(KINGS_MOUNTAIN, 1210, 1)]
    _record(store, BOB, 2, laps, 2410, 5)

    service = StandingsService(league)
    standings = service.season_standings(1)
    assert [(s.name, s.total_points, s.polka_dot_wins) for s in standings] == [
        ("Bob", 5, 1),
        ("Alice", 3, 1),
    ]
    jerseys = service.season_jerseys(1)
    assert jerseys.yellow.name == "Bob"
    assert (jerseys.polka_dot.name, jerseys.polka_dot.polka_dot_wins) == ("Bob", 1)


def test_jerseys_unclaimed_without_results(league):
    jerseys = StandingsService(league).season_jerseys(2)
    assert jerseys.season_id == 2
    assert jerseys.yellow is None
    assert jerseys.polka_dot is None


def test_no_polka_dot_jersey_when_every_week_is_flat(league):
    _flatten(league, OLD_LA_HONDA)
    store = ResultStore(league)
    _record(store, ALICE, 1, [make_effort(OLD_LA_HONDA, 880, 0)], 880, 1)

    jerseys = StandingsService(league).season_jerseys(1)

    assert jerseys.yellow.name == "Alice"
    assert jerseys.polka_dot is None
