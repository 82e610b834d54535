from __future__ import annotations

import math

import pytest

from conftest import KINGS_MOUNTAIN, make_payload, ts
from segment_league.errors import MalformedActivityError
from segment_league.ingest import parse_activity, pr_achieved_from_rank, validate_efforts
from segment_league.models import EffortObservation


@pytest.mark.parametrize(
    "pr_rank,expected",
    [(None, False), (0, False), (1, True), (2, True), (3, True)],
)
def test_pr_rank_truthiness(pr_rank, expected):
    assert pr_achieved_from_rank(pr_rank) is expected


def test_parse_activity_numbers_efforts_in_arrival_order():
    payload = make_payload(
        987654,
        "2025-04-15T07:00:00Z",
        [(KINGS_MOUNTAIN, 1200, None), (KINGS_MOUNTAIN, 1150.4, 1)],
    )
    activity = parse_activity(payload)
    assert activity.external_activity_id == 987654
    assert activity.start_at == ts("2025-04-15T07:00:00Z")
    assert activity.device_name == "Garmin Edge 540"
    assert [e.effort_index for e in activity.efforts] == [0, 1]
    assert [e.elapsed_seconds for e in activity.efforts] == [1200, 1150]
    assert [e.pr_achieved for e in activity.efforts] == [False, True]
    assert activity.efforts[0].external_effort_id == "50000"


def test_parse_activity_uses_utc_start_not_local():
    payload = make_payload(1, "2025-04-15T07:00:00Z", [])
    payload["start_date_local"] = "2025-04-14T23:00:00"
    assert parse_activity(payload).start_at == ts("2025-04-15T07:00:00Z")


def test_effort_without_start_date_inherits_activity_start():
    payload = make_payload(1, "2025-04-15T07:00:00Z", [(KINGS_MOUNTAIN, 1200, None)])
    del payload["segment_efforts"][0]["start_date"]
    assert parse_activity(payload).efforts[0].start_at == ts("2025-04-15T07:00:00Z")


def test_missing_device_name_is_none():
    payload = make_payload(1, "2025-04-15T07:00:00Z", [])
    payload["device_name"] = None
    assert parse_activity(payload).device_name is None


@pytest.mark.parametrize("elapsed", [None, -1, "fast", math.nan, True])
def test_bad_elapsed_time_rejected(elapsed):
    payload = make_payload(1, "2025-04-15T07:00:00Z", [(KINGS_MOUNTAIN, elapsed, None)])
    with pytest.raises(MalformedActivityError):
        parse_activity(payload)


@pytest.mark.parametrize("start_date", ["yesterday", 1744700400, ["2025-04-15"]])
def test_unparseable_start_date_rejected(start_date):
    payload = make_payload(1, "2025-04-15T07:00:00Z", [])
    payload["start_date"] = start_date
    with pytest.raises(MalformedActivityError):
        parse_activity(payload)


def test_unparseable_effort_start_rejected():
    payload = make_payload(1, "2025-04-15T07:00:00Z", [(KINGS_MOUNTAIN, 1200, None)])
    payload["segment_efforts"][0]["start_date"] = "not-a-date"
    with pytest.raises(MalformedActivityError):
        parse_activity(payload)


def test_effort_without_segment_rejected():
    payload = make_payload(1, "2025-04-15T07:00:00Z", [(KINGS_MOUNTAIN, 1200, None)])
    payload["segment_efforts"][0]["segment"] = {}
    with pytest.raises(MalformedActivityError):
        parse_activity(payload)


def test_validate_efforts_rejects_foreign_objects():
    with pytest.raises(MalformedActivityError):
        validate_efforts([{"segment_id": 1, "elapsed_seconds": 10}])


def test_validate_efforts_rejects_negative_elapsed():
    effort = EffortObservation(
        segment_id=KINGS_MOUNTAIN, elapsed_seconds=-5, start_at=0, effort_index=0
    )
    with pytest.raises(MalformedActivityError):
        validate_efforts([effort])
