"""Service layer package.

Exports the write path, the read-side scorers and the activity processor
consumed by the CLI and any embedding application.
"""

from .result_store import ResultStore
from .ghost_service import GhostService
from .leaderboard_service import LeaderboardService
from .standings_service import StandingsService
from .activity_service import ActivityProcessor, ProcessingReport

__all__ = [
    "ResultStore",
    "GhostService",
    "LeaderboardService",
    "StandingsService",
    "ActivityProcessor",
    "ProcessingReport",
]
