"""Central error types used across the application."""

from __future__ import annotations


class ExcelFormatError(RuntimeError):
    """Raised when the Excel workbook structure or required columns are invalid."""


class ConfigurationNotFoundError(RuntimeError):
    """Base error for league configuration that does not exist."""


class WeekNotFoundError(ConfigurationNotFoundError):
    """Raised when a week id is unknown."""

    def __init__(self, week_id: int) -> None:
        super().__init__(f"Week {week_id} not found")
        self.week_id = week_id


class SeasonNotFoundError(ConfigurationNotFoundError):
    """Raised when a season id is unknown."""

    def __init__(self, season_id: int) -> None:
        super().__init__(f"Season {season_id} not found")
        self.season_id = season_id


class ParticipantNotFoundError(ConfigurationNotFoundError):
    """Raised when an athlete has no participant record."""

    def __init__(self, participant_id: int) -> None:
        super().__init__(f"Participant {participant_id} not found")
        self.participant_id = participant_id


class MalformedActivityError(ValueError):
    """Raised when upstream activity or effort data cannot be trusted."""


class ResultConflictError(RuntimeError):
    """Raised when a concurrent write on the same week/participant pair collides.

    The commit is idempotent, so callers should simply retry it.
    """


__all__ = [
    "ExcelFormatError",
    "ConfigurationNotFoundError",
    "WeekNotFoundError",
    "SeasonNotFoundError",
    "ParticipantNotFoundError",
    "MalformedActivityError",
    "ResultConflictError",
]
