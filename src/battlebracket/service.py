"""TournamentService — the facade the UI talks to.

Wires the collaborators together (team provider, repository, history
store, resolver, state machine) and keeps player battle sessions between
turns. Every method takes and returns ids or snapshots; live Tournament
objects never leave the service.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid

from battlebracket.battle.engine import TurnRecord
from battlebracket.bracket import build
from battlebracket.config import EngineConfig
from battlebracket.core.persistence import JsonFileRepository, MemoryRepository, Repository
from battlebracket.core.seed import SeedManager
from battlebracket.errors import InvalidStateError, NotFoundError, ValidationError
from battlebracket.history import HistoryStore, HistoryView
from battlebracket.models import (
    ALLOWED_SIZES,
    Match,
    MatchStatus,
    Participant,
    ParticipantKind,
    Stats,
    Tournament,
    TournamentStatus,
)
from battlebracket.resolver import BattleSession, MatchResolver
from battlebracket.rosters import (
    MAX_TEAM_SIZE,
    InMemoryTeamProvider,
    TeamProvider,
    generate_opponents,
)
from battlebracket.tournament import TournamentStateMachine

logger = logging.getLogger(__name__)

PLAYER_PARTICIPANT_ID = "player"


def repository_from_config(config: EngineConfig) -> Repository:
    """Mongo when configured, else JSON files under data_dir, else memory."""
    if config.mongo is not None:
        uri = os.environ.get(config.mongo.uri_env)
        if not uri:
            raise ValueError(f"MongoDB configured but {config.mongo.uri_env} is not set")
        from battlebracket.core.mongo_store import MongoRepository

        return MongoRepository(uri, config.mongo.db_name, timeout_ms=config.mongo.timeout_ms)
    if config.data_dir is not None:
        return JsonFileRepository(config.data_dir)
    return MemoryRepository()


class TournamentService:
    """Create, run and inspect tournaments for one human player."""

    def __init__(
        self,
        teams: TeamProvider,
        repository: Repository | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.teams = teams
        self.repository = repository or MemoryRepository()
        self.seeds = SeedManager(self.config.seed)
        self.history = HistoryStore(self.repository)
        self.resolver = MatchResolver(
            catalog=self.config.catalog,
            policy=self.config.policy,
            max_turns=self.config.max_turns,
            telemetry_dir=self.config.telemetry_dir,
        )
        self.machine = TournamentStateMachine(
            self.resolver,
            self.history,
            self.repository,
            background=self.config.background_simulation,
            max_workers=self.config.simulation_workers,
            persistence_retries=self.config.persistence_retries,
        )
        self._tournaments: dict[str, Tournament] = {}
        self._sessions: dict[tuple[str, str], BattleSession] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: EngineConfig) -> TournamentService:
        return cls(InMemoryTeamProvider(config.teams), repository_from_config(config), config)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> TournamentService:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self.machine.shutdown()
        self.repository.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_tournament(self, name: str, participant_count: int, team_id: str) -> Tournament:
        """Build and store a CREATED tournament around the player's team.

        Inputs are checked in order (name, count, team, team size, members)
        and the first failure is raised as a ValidationError.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tournament name must not be empty", field="name")
        if participant_count not in ALLOWED_SIZES:
            raise ValidationError(
                f"Participant count must be one of {list(ALLOWED_SIZES)}, got {participant_count}",
                field="participant_count",
            )
        team = self.teams.get_team(team_id)
        if team is None:
            raise ValidationError(f"Unknown team {team_id!r}", field="team_id")
        if not 1 <= len(team.members) <= MAX_TEAM_SIZE:
            raise ValidationError(
                f"Team {team_id!r} has {len(team.members)} members, expected 1-{MAX_TEAM_SIZE}",
                field="team",
            )
        unknown = [m for m in team.members if m not in self.resolver.catalog]
        if unknown:
            raise ValidationError(f"Unknown team members: {unknown}", field="team")

        opponents = generate_opponents(
            participant_count - 1,
            self.resolver.catalog,
            self.seeds.get_rng(self.seeds.derive(name, "opponents")),
        )
        participants = {
            PLAYER_PARTICIPANT_ID: Participant(
                id=PLAYER_PARTICIPANT_ID,
                kind=ParticipantKind.PLAYER,
                team_id=team.id,
                display_name=team.name,
            )
        }
        rosters = {PLAYER_PARTICIPANT_ID: list(team.members)}
        for opp in opponents:
            participants[opp.participant_id] = Participant(
                id=opp.participant_id,
                kind=ParticipantKind.AI,
                team_id=opp.team.id,
                display_name=opp.display_name,
            )
            rosters[opp.participant_id] = list(opp.team.members)

        order = list(participants)
        self.seeds.get_rng(self.seeds.derive(name, "shuffle")).shuffle(order)

        tournament = build(
            order,
            PLAYER_PARTICIPANT_ID,
            name=name,
            team_id=team.id,
            participants=participants,
            rosters=rosters,
            tournament_id=uuid.uuid4().hex[:12],
            seed=self.seeds.base_seed,
        )
        self.machine.persist(tournament)
        with self._lock:
            self._tournaments[tournament.id] = tournament
        logger.info(
            "Created tournament %s (%s, %d participants, team %s)",
            tournament.id, name, participant_count, team.id,
        )
        return self.machine.snapshot(tournament)

    def start_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._get(tournament_id)
        self.machine.start(tournament)
        return self.machine.snapshot(tournament)

    def get_bracket(self, tournament_id: str) -> Tournament:
        """Deep-copied snapshot; safe to read while simulations run."""
        return self.machine.snapshot(self._get(tournament_id))

    def list_tournaments(self) -> list[str]:
        with self._lock:
            known = set(self._tournaments)
        return sorted(known | set(self.repository.list_tournaments()))

    # ------------------------------------------------------------------
    # Player matches
    # ------------------------------------------------------------------

    def pending_player_match(self, tournament_id: str) -> Match | None:
        tournament = self._get(tournament_id)
        match = self.machine.pending_player_match(tournament)
        if match is None:
            return None
        return self.machine.snapshot(tournament).match(match.id)

    def open_battle(self, tournament_id: str, match_id: str) -> BattleSession:
        """Return the live session for a player match, creating it on first use."""
        return self._session_for(self._get(tournament_id), match_id)

    def submit_player_action(
        self, tournament_id: str, match_id: str, action: dict
    ) -> TurnRecord | None:
        """Apply one player action; report the result once the battle ends."""
        tournament = self._get(tournament_id)
        session = self._session_for(tournament, match_id)
        record = session.submit(action)
        if session.finished:
            self._finish_session(tournament, session)
        return record

    def forfeit(self, tournament_id: str, match_id: str) -> Match:
        """Concede the player's match. The opponent advances."""
        tournament = self._get(tournament_id)
        with self._lock:
            session = self._sessions.get((tournament_id, match_id))
        if session is not None:
            session.forfeit()
            self._finish_session(tournament, session)
        else:
            with self.machine.lock_for(tournament_id):
                match = tournament.match(match_id)
                if match is None:
                    raise NotFoundError(f"No match {match_id!r} in tournament {tournament_id}")
                if not tournament.is_player_match(match):
                    raise InvalidStateError(f"Match {match_id} is not the player's match")
            self.machine.report_result(
                tournament, match_id, forfeited_by=tournament.player_id
            )
        return self.machine.snapshot(tournament).match(match_id)

    # ------------------------------------------------------------------
    # History & stats
    # ------------------------------------------------------------------

    def list_history(self) -> HistoryView:
        return self.history.list_history()

    def get_stats(self, owner_id: str) -> Stats:
        return self.history.get_stats(owner_id)

    def record_completion(self, tournament_id: str) -> bool:
        """Retry history recording after a PersistenceError (idempotent)."""
        return self.machine.record_completion(self._get(tournament_id))

    def wait_idle(self, timeout: float | None = None) -> None:
        self.machine.wait_idle(timeout)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get(self, tournament_id: str) -> Tournament:
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            if tournament is not None:
                return tournament
            tournament = self.repository.load_tournament(tournament_id)
            if tournament is None:
                raise NotFoundError(f"Unknown tournament {tournament_id!r}")
            self._tournaments[tournament_id] = tournament
        logger.info("Loaded tournament %s from storage", tournament_id)
        if tournament.status is TournamentStatus.COMPLETED:
            self.machine.record_completion(tournament)
        else:
            self.machine.resume(tournament)
        return tournament

    def _session_for(self, tournament: Tournament, match_id: str) -> BattleSession:
        key = (tournament.id, match_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                return session
            match = tournament.match(match_id)
            if match is None:
                raise NotFoundError(f"No match {match_id!r} in tournament {tournament.id}")
            if not tournament.is_player_match(match):
                raise InvalidStateError(f"Match {match_id} is not the player's match")
            if match.status is not MatchStatus.ACTIVE:
                raise InvalidStateError(
                    f"Match {match_id} is {match.status.value}, not active"
                )
            session = self.resolver.open_session(
                match,
                tournament.rosters[match.participant_a],
                tournament.rosters[match.participant_b],
                tournament.player_id,
                context={"tournament_id": tournament.id, "tournament_name": tournament.name},
            )
            self._sessions[key] = session
            return session

    def _finish_session(self, tournament: Tournament, session: BattleSession) -> None:
        with self._lock:
            self._sessions.pop((tournament.id, session.match.id), None)
        self.machine.apply_resolution(tournament, session.outcome)
