from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Season:
    id: int
    name: str
    start_at: int
    end_at: int
    is_active: bool = True


@dataclass
class Segment:
    id: int
    name: str
    distance: float | None = None
    average_grade: float | None = None
    total_elevation_gain: float | None = None
    climb_category: int | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None


@dataclass
class Week:
    id: int
    season_id: int
    segment_id: int
    name: str
    start_at: int
    end_at: int
    required_laps: int = 1
    multiplier: int = 1
    notes: str = ""


@dataclass
class Participant:
    id: int
    name: str
    active: bool = True


@dataclass(frozen=True, slots=True)
class EffortObservation:
    """One lap attempt as reported upstream, numbered in arrival order."""

    segment_id: int
    elapsed_seconds: int
    start_at: int
    effort_index: int
    pr_achieved: bool = False
    external_effort_id: str | None = None


@dataclass(frozen=True, slots=True)
class ActivityObservation:
    """A parsed upstream activity with its ordered efforts."""

    external_activity_id: int
    start_at: int
    device_name: str | None
    efforts: Tuple[EffortObservation, ...]
    name: str | None = None


class MatchStatus(str, Enum):
    QUALIFIED = "qualified"
    NO_MATCHING_WEEKS = "no_matching_weeks"
    NO_SEGMENTS = "no_segments"
    INSUFFICIENT_LAPS = "insufficient_laps"


@dataclass(slots=True)
class WeekCheck:
    """Verdict for a single week considered during matching."""

    week_id: int
    week_name: str
    season_id: int
    segment_id: int
    required_laps: int
    in_time_window: bool
    efforts_found: int
    matched: bool
    reason: str
    total_time_seconds: int | None = None
    qualifying_efforts: Tuple[EffortObservation, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_id": self.week_id,
            "week_name": self.week_name,
            "segment_id": self.segment_id,
            "required_laps": self.required_laps,
            "segment_efforts_found": self.efforts_found,
            "matched": self.matched,
            "reason": self.reason,
            "total_time_seconds": self.total_time_seconds,
        }


@dataclass(slots=True)
class SeasonMatch:
    season_id: int
    season_name: str
    weeks: List[WeekCheck] = field(default_factory=list)

    @property
    def matched_weeks(self) -> List[WeekCheck]:
        return [w for w in self.weeks if w.matched]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "season_id": self.season_id,
            "season_name": self.season_name,
            "matched_weeks_count": len(self.matched_weeks),
            "matched_weeks": [w.to_dict() for w in self.weeks],
        }


@dataclass(slots=True)
class MatchOutcome:
    """Qualification verdict plus the per-week diagnostic trail."""

    status: MatchStatus
    activity_start_at: int
    seasons: List[SeasonMatch] = field(default_factory=list)

    @property
    def week_checks(self) -> List[WeekCheck]:
        return [check for season in self.seasons for check in season.weeks]

    @property
    def matched_weeks(self) -> List[WeekCheck]:
        return [check for check in self.week_checks if check.matched]

    @property
    def weeks_checked(self) -> int:
        return len(self.week_checks)

    @property
    def message(self) -> str:
        matched = len(self.matched_weeks)
        if self.status is MatchStatus.QUALIFIED:
            return f"Activity qualified for {matched} of {self.weeks_checked} weeks"
        if self.status is MatchStatus.INSUFFICIENT_LAPS:
            return "Activity did not complete enough laps for any week"
        if self.status is MatchStatus.NO_SEGMENTS:
            return "Activity has no efforts on any eligible week's segment"
        return "Activity does not fall inside any season/week window"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matching_seasons": [season.to_dict() for season in self.seasons],
            "summary": {
                "status": self.status.value,
                "message": self.message,
                "total_weeks_checked": self.weeks_checked,
                "total_weeks_matched": len(self.matched_weeks),
                "total_seasons": len(self.seasons),
            },
        }


@dataclass(frozen=True, slots=True)
class Retraction:
    """Rows removed for one week/participant pair."""

    week_id: int
    participant_id: int
    activities: int = 0
    efforts: int = 0
    results: int = 0

    @property
    def deleted(self) -> bool:
        return (self.activities + self.efforts + self.results) > 0


@dataclass(frozen=True, slots=True)
class LapDetail:
    lap: int
    segment_id: int
    elapsed_seconds: int
    time_hhmmss: str
    pr_achieved: bool
    external_effort_id: str | None = None


@dataclass(slots=True)
class RankedResult:
    rank: int
    participant_id: int
    participant_name: str
    total_time_seconds: int
    base_points: int
    pr_bonus: int
    multiplier: int
    total_points: int
    activity_id: int | None = None
    external_activity_id: int | None = None
    activity_start_at: int | None = None
    device_name: str | None = None
    laps: List[LapDetail] = field(default_factory=list)

    @property
    def pr_achieved(self) -> bool:
        return self.pr_bonus > 0


@dataclass(frozen=True, slots=True)
class GhostComparison:
    previous_time_seconds: int
    previous_week_id: int
    previous_week_name: str
    diff_seconds: int
    previous_external_activity_id: Optional[int] = None

    @property
    def faster(self) -> bool:
        return self.diff_seconds < 0


@dataclass(slots=True)
class StandingsEntry:
    participant_id: int
    name: str
    total_points: int
    weeks_completed: int
    polka_dot_wins: int = 0
    rank: int = 0


@dataclass(frozen=True, slots=True)
class SeasonJerseys:
    """Season jersey holders; ``None`` while nobody has earned one."""

    season_id: int
    yellow: Optional[StandingsEntry] = None
    polka_dot: Optional[StandingsEntry] = None
