"""History & statistics store.

Appends one HistoryEntry per completed tournament and keeps aggregate
Stats per owner id (participant id and team id). Recording is idempotent:
the stats document remembers which tournaments it has already absorbed,
so repeating ``record_completion`` after a PersistenceError finishes any
half-done write and otherwise changes nothing.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

from battlebracket.core.persistence import MemoryRepository, Repository
from battlebracket.errors import InvalidStateError
from battlebracket.models import (
    HistoryEntry,
    MatchStatus,
    Stats,
    Tournament,
    TournamentStatus,
)

logger = logging.getLogger(__name__)


class HistoryView:
    """Lazy, restartable, newest-first view over the history log.

    Every ``iter()`` re-reads the repository, so entries recorded after the
    view was created show up on the next pass.
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository

    def __iter__(self) -> Iterator[HistoryEntry]:
        return self._repository.iter_history()


class HistoryStore:
    """Owns the history log and the stats document of a repository."""

    def __init__(self, repository: Repository | None = None) -> None:
        self._repository = repository or MemoryRepository()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_completion(self, tournament: Tournament) -> bool:
        """Log a completed tournament and fold it into Stats.

        Returns True if anything was written, False for a repeat call.
        """
        if tournament.status is not TournamentStatus.COMPLETED or not tournament.champion_id:
            raise InvalidStateError(
                f"Tournament {tournament.id} is {tournament.status.value}, not completed"
            )

        entry = HistoryEntry(
            tournament_id=tournament.id,
            name=tournament.name,
            participant_count=tournament.participant_count,
            champion_id=tournament.champion_id,
            completed_at=tournament.completed_at,
            player_won=tournament.champion_id == tournament.player_id,
        )

        with self._lock:
            doc = self._repository.load_stats()
            applied = set(doc.get("applied", []))
            appended = self._repository.append_history(entry)
            if tournament.id in applied:
                return appended

            owners = {k: Stats.from_dict(v) for k, v in doc.get("owners", {}).items()}
            _apply(tournament, owners)
            applied.add(tournament.id)
            self._repository.save_stats({
                "owners": {k: s.to_dict() for k, s in owners.items()},
                "applied": sorted(applied),
            })

        logger.info(
            "Recorded tournament %s (%s): champion %s",
            tournament.id, tournament.name, tournament.champion_id,
        )
        return True

    def is_recorded(self, tournament_id: str) -> bool:
        return tournament_id in self._repository.load_stats().get("applied", [])

    def list_history(self) -> HistoryView:
        return HistoryView(self._repository)

    def get_stats(self, owner_id: str) -> Stats:
        raw = self._repository.load_stats().get("owners", {}).get(owner_id)
        return Stats.from_dict(raw) if raw else Stats()

    def reset_stats(self) -> None:
        """Zero every counter. Already-recorded tournaments stay recorded."""
        with self._lock:
            doc = self._repository.load_stats()
            self._repository.save_stats({"owners": {}, "applied": doc.get("applied", [])})
        logger.info("Stats reset")


def _apply(tournament: Tournament, owners: dict[str, Stats]) -> None:
    """Increment per-owner counters for one completed tournament."""

    def keys(participant_id: str) -> set[str]:
        p = tournament.participants[participant_id]
        return {p.id, p.team_id}

    def stats(key: str) -> Stats:
        return owners.setdefault(key, Stats())

    for pid in tournament.participants:
        for key in keys(pid):
            stats(key).tournaments_entered += 1

    for match in tournament.all_matches():
        if not match.is_finished:
            continue
        loser = match.opponent_of(match.winner_id)
        for key in keys(match.winner_id):
            stats(key).matches_won += 1
        for key in keys(loser):
            stats(key).matches_lost += 1
            if match.status is MatchStatus.FORFEITED:
                stats(key).matches_forfeited += 1

    for key in keys(tournament.champion_id):
        stats(key).tournaments_won += 1
