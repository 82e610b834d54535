"""Weekly segment league: activity matching, result persistence and scoring."""

from .main import main
from .models import (
    ActivityObservation,
    EffortObservation,
    MatchOutcome,
    MatchStatus,
    RankedResult,
)
from .errors import (
    ConfigurationNotFoundError,
    ExcelFormatError,
    MalformedActivityError,
    ResultConflictError,
    WeekNotFoundError,
)

__all__ = [
    "main",
    "ActivityObservation",
    "EffortObservation",
    "MatchOutcome",
    "MatchStatus",
    "RankedResult",
    "ConfigurationNotFoundError",
    "ExcelFormatError",
    "MalformedActivityError",
    "ResultConflictError",
    "WeekNotFoundError",
]
