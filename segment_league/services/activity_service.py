"""Orchestration of a single observed activity.

Loads the configured seasons and weeks, asks the resolver which weeks the
activity qualifies for, commits one result per matched week and retracts any
week the same activity counted for previously but no longer qualifies for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from ..config import COMMIT_MAX_RETRIES
from ..database import SessionFactory, session_scope
from ..errors import ResultConflictError
from ..ingest import parse_activity, validate_efforts
from ..matching import MatchResolver
from ..models import ActivityObservation, MatchOutcome, Retraction, WeekCheck
from ..repository import get_participant, load_seasons, load_weeks
from .result_store import ResultStore


@dataclass
class ProcessingReport:
    participant_id: int
    external_activity_id: int
    outcome: MatchOutcome
    committed: Dict[int, int] = field(default_factory=dict)
    retracted: List[Retraction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        document = self.outcome.to_dict()
        document["participant_id"] = self.participant_id
        document["activity_id"] = self.external_activity_id
        document["committed_weeks"] = sorted(self.committed)
        document["retracted_weeks"] = [r.week_id for r in self.retracted if r.deleted]
        return document


class ActivityProcessor:
    def __init__(
        self,
        session_factory: SessionFactory,
        result_store: ResultStore | None = None,
        resolver: MatchResolver | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._store = result_store or ResultStore(session_factory)
        self._resolver = resolver or MatchResolver()
        self._max_retries = max(1, max_retries or COMMIT_MAX_RETRIES)
        self._log = logging.getLogger(self.__class__.__name__)

    def process_payload(
        self, participant_id: int, payload: Mapping[str, Any]
    ) -> ProcessingReport:
        return self.process(participant_id, parse_activity(payload))

    def process(
        self, participant_id: int, observation: ActivityObservation
    ) -> ProcessingReport:
        validate_efforts(observation.efforts)
        with session_scope(self._session_factory) as session:
            get_participant(session, participant_id)
            seasons = load_seasons(session)
            weeks = load_weeks(session)

        outcome = self._resolver.resolve(
            observation.efforts, observation.start_at, seasons, weeks
        )
        report = ProcessingReport(
            participant_id=participant_id,
            external_activity_id=observation.external_activity_id,
            outcome=outcome,
        )

        previously_counted = {
            week_id
            for week_id, owner in self._store.pairs_for_activity(
                observation.external_activity_id
            )
            if owner == participant_id
        }

        for check in outcome.matched_weeks:
            report.committed[check.week_id] = self._commit_with_retry(
                participant_id, observation, check
            )

        for week_id in sorted(previously_counted - set(report.committed)):
            report.retracted.append(self._store.retract(participant_id, week_id))

        self._log.info(
            "Processed activity %s for participant %s: status=%s committed=%s retracted=%s",
            observation.external_activity_id,
            participant_id,
            outcome.status.value,
            sorted(report.committed),
            [r.week_id for r in report.retracted],
        )
        return report

    def delete(self, external_activity_id: int) -> List[Retraction]:
        """Retract every week currently counting the activity."""

        retractions = [
            self._store.retract(participant_id, week_id)
            for week_id, participant_id in self._store.pairs_for_activity(
                external_activity_id
            )
        ]
        self._log.info(
            "Deleted activity %s from %d week(s)", external_activity_id, len(retractions)
        )
        return retractions

    def _commit_with_retry(
        self, participant_id: int, observation: ActivityObservation, check: WeekCheck
    ) -> int:
        attempt = 1
        while True:
            try:
                return self._store.commit(
                    participant_id=participant_id,
                    week_id=check.week_id,
                    activity_external_id=observation.external_activity_id,
                    device_name=observation.device_name,
                    efforts=observation.efforts,
                    total_time_seconds=check.total_time_seconds,
                    start_at=observation.start_at,
                )
            except ResultConflictError:
                if attempt >= self._max_retries:
                    raise
                self._log.warning(
                    "Retrying commit week=%s participant=%s (attempt %d/%d)",
                    check.week_id,
                    participant_id,
                    attempt + 1,
                    self._max_retries,
                )
                attempt += 1


__all__ = ["ActivityProcessor", "ProcessingReport"]
