"""TournamentStateMachine — lifecycle, result reporting and advancement.

Owns every status transition of a tournament and its matches:

    tournament: CREATED -> ACTIVE -> COMPLETED
    match:      PENDING -> READY -> ACTIVE -> COMPLETED | FORFEITED

``report_result`` is the single entry point for finishing a match, whether
the result comes from a player battle, a background simulation or a
forfeit. Each call is atomic under a per-tournament lock: the match is
finished, its winner forwarded, the next match readied, and completion
detected before the lock is released. Simulations run outside the lock,
so AI-only matches resolve concurrently with each other and with the
player's battle.
"""

from __future__ import annotations

import copy
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Sequence

from battlebracket.bracket import next_slot
from battlebracket.core.persistence import Repository
from battlebracket.errors import (
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from battlebracket.history import HistoryStore
from battlebracket.models import Match, MatchStatus, Tournament, TournamentStatus
from battlebracket.resolver import MatchResolver, Resolution

logger = logging.getLogger(__name__)

PlayerTurnListener = Callable[[Tournament, Match], None]

_REPORTABLE = (MatchStatus.READY, MatchStatus.ACTIVE)


class TournamentStateMachine:
    """Drives tournaments from creation to completion.

    With ``auto_simulate=False`` AI-only matches are never simulated and
    wait for an external ``report_result``.
    """

    def __init__(
        self,
        resolver: MatchResolver,
        history: HistoryStore,
        repository: Repository | None = None,
        *,
        background: bool = True,
        max_workers: int = 4,
        persistence_retries: int = 3,
        auto_simulate: bool = True,
    ) -> None:
        self.resolver = resolver
        self.auto_simulate = auto_simulate
        self.history = history
        self.repository = repository
        self.persistence_retries = max(1, persistence_retries)
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="simulate")
            if background
            else None
        )
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._futures: set[Future] = set()
        self._futures_lock = threading.Lock()
        self._listeners: list[PlayerTurnListener] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def lock_for(self, tournament_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(tournament_id, threading.RLock())

    def on_player_turn(self, listener: PlayerTurnListener) -> None:
        """Register a callback fired whenever a player match becomes ACTIVE."""
        self._listeners.append(listener)

    def start(self, tournament: Tournament) -> None:
        """CREATED -> ACTIVE; open player matches, simulate the rest."""
        with self.lock_for(tournament.id):
            if tournament.status is not TournamentStatus.CREATED:
                raise InvalidStateError(
                    f"Tournament {tournament.id} is {tournament.status.value}, not created"
                )
            saved = _capture(tournament)
            try:
                to_simulate, opened = self._activate(tournament)
                self.persist(tournament)
            except PersistenceError:
                _restore(tournament, saved)
                raise

        logger.info(
            "Started tournament %s (%s, %d participants)",
            tournament.id, tournament.name, tournament.participant_count,
        )
        self._announce(tournament, opened)
        self._dispatch(tournament, to_simulate)

    def resume(self, tournament: Tournament) -> None:
        """Re-drive an ACTIVE tournament loaded from storage.

        Simulations interrupted by a restart left AI-only matches ACTIVE;
        they go back to READY and are scheduled again.
        """
        with self.lock_for(tournament.id):
            if tournament.status is not TournamentStatus.ACTIVE:
                return
            ready = []
            for match in tournament.all_matches():
                if not match.is_filled or match.is_finished:
                    continue
                if match.status is MatchStatus.ACTIVE and not tournament.is_player_match(match):
                    match.status = MatchStatus.READY
                if match.status is MatchStatus.READY:
                    ready.append(match)
            to_simulate, opened = self._open_ready(tournament, ready)

        if to_simulate or opened:
            logger.info(
                "Resumed tournament %s: %d simulations, %d player matches",
                tournament.id, len(to_simulate), len(opened),
            )
        self._announce(tournament, opened)
        self._dispatch(tournament, to_simulate)

    def report_result(
        self,
        tournament: Tournament,
        match_id: str,
        winner_id: str | None = None,
        forfeited_by: str | None = None,
        *,
        turns: int | None = None,
        log: Sequence[str] | None = None,
    ) -> Match:
        """Finish a match and advance the bracket.

        Pass exactly one of ``winner_id`` (normal completion) or
        ``forfeited_by`` (the conceding participant; the other one wins).
        A CREATED tournament is started by its first result: round 0 opens
        exactly as ``start`` would open it.

        If the tournament cannot be saved, every in-memory change is undone
        before the PersistenceError propagates, so the same call can be
        repeated.
        """
        if (winner_id is None) == (forfeited_by is None):
            raise ValidationError(
                "Exactly one of winner_id or forfeited_by is required", field="result"
            )

        completed = False
        with self.lock_for(tournament.id):
            if tournament.status is TournamentStatus.COMPLETED:
                raise InvalidStateError(f"Tournament {tournament.id} is already completed")
            match = self._get_match(tournament, match_id)
            if match.status not in _REPORTABLE or not match.is_filled:
                raise InvalidStateError(
                    f"Match {match_id} is {match.status.value}, not ready or active"
                )
            if forfeited_by is not None:
                if not match.involves(forfeited_by):
                    raise InvalidStateError(
                        f"{forfeited_by!r} is not a participant of match {match_id}"
                    )
                winner_id = match.opponent_of(forfeited_by)
            elif not match.involves(winner_id):
                raise InvalidStateError(
                    f"{winner_id!r} is not a participant of match {match_id}"
                )

            saved = _capture(tournament)
            try:
                activated = tournament.status is TournamentStatus.CREATED
                if activated:
                    tournament.status = TournamentStatus.ACTIVE
                    tournament.started_at = datetime.now(timezone.utc)

                match.status = MatchStatus.FORFEITED if forfeited_by else MatchStatus.COMPLETED
                match.winner_id = winner_id
                match.forfeited_by = forfeited_by
                if turns is not None:
                    match.turns = turns
                if log is not None:
                    match.log = list(log)

                to_simulate: list[Match] = []
                opened: list[Match] = []
                if match.round == tournament.num_rounds - 1:
                    tournament.status = TournamentStatus.COMPLETED
                    tournament.champion_id = winner_id
                    tournament.completed_at = datetime.now(timezone.utc)
                    completed = True
                else:
                    to_simulate, opened = self._forward(tournament, match)
                if activated:
                    first_sim, first_open = self._open_ready(tournament, tournament.rounds[0])
                    to_simulate += first_sim
                    opened += first_open
                self.persist(tournament)
            except PersistenceError:
                _restore(tournament, saved)
                logger.warning(
                    "Result for match %s of %s rolled back: save failed",
                    match_id, tournament.id,
                )
                raise

        logger.info(
            "Match %s of %s: %s beat %s%s",
            match.id, tournament.id, winner_id, match.opponent_of(winner_id),
            " by forfeit" if forfeited_by else "",
        )
        if completed:
            logger.info("Tournament %s completed, champion %s", tournament.id, winner_id)
            self.record_completion(tournament)
        self._announce(tournament, opened)
        self._dispatch(tournament, to_simulate)
        return match

    def apply_resolution(self, tournament: Tournament, resolution: Resolution) -> Match:
        """Report a resolver outcome (simulated or player-driven)."""
        return self.report_result(
            tournament,
            resolution.match_id,
            winner_id=None if resolution.forfeited_by else resolution.winner_id,
            forfeited_by=resolution.forfeited_by,
            turns=resolution.turns,
            log=resolution.log,
        )

    def claim(self, tournament: Tournament, match_id: str) -> Match | None:
        """Atomically move an AI-only match READY -> ACTIVE for simulation.

        Returns None if the match is no longer READY (someone else owns it).
        """
        with self.lock_for(tournament.id):
            match = self._get_match(tournament, match_id)
            if match.status is not MatchStatus.READY or tournament.is_player_match(match):
                return None
            match.status = MatchStatus.ACTIVE
            return match

    def simulate(self, tournament: Tournament, match_id: str) -> Match | None:
        """Claim, resolve and report one AI-only match.

        On failure the match goes back to READY; ``resume`` schedules it
        again.
        """
        match = self.claim(tournament, match_id)
        if match is None:
            return None
        context = {"tournament_id": tournament.id, "tournament_name": tournament.name}
        try:
            resolution = self.resolver.simulate(
                match,
                tournament.rosters[match.participant_a],
                tournament.rosters[match.participant_b],
                context=context,
            )
            return self.apply_resolution(tournament, resolution)
        except Exception:
            with self.lock_for(tournament.id):
                reset = match.status is MatchStatus.ACTIVE
                if reset:
                    match.status = MatchStatus.READY
            if reset:
                logger.exception("Simulation of match %s in %s failed", match_id, tournament.id)
            raise

    def pending_player_match(self, tournament: Tournament) -> Match | None:
        """The player's ACTIVE match ("your turn"), if any."""
        with self.lock_for(tournament.id):
            for match in tournament.all_matches():
                if match.status is MatchStatus.ACTIVE and tournament.is_player_match(match):
                    return match
        return None

    def snapshot(self, tournament: Tournament) -> Tournament:
        """Deep copy taken under the tournament lock."""
        with self.lock_for(tournament.id):
            return copy.deepcopy(tournament)

    def record_completion(self, tournament: Tournament) -> bool:
        """Notify the history store, retrying transient persistence failures."""
        return self._with_retries(
            lambda: self.history.record_completion(tournament),
            f"record completion of {tournament.id}",
        )

    def persist(self, tournament: Tournament) -> None:
        if self.repository is None:
            return
        self._with_retries(
            lambda: self.repository.save_tournament(tournament),
            f"save tournament {tournament.id}",
        )

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until no simulation is pending; re-raise the first failure."""
        first_error: BaseException | None = None
        while True:
            with self._futures_lock:
                pending = list(self._futures)
            if not pending:
                break
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                raise TimeoutError(f"{len(not_done)} simulations still running")
            with self._futures_lock:
                self._futures.difference_update(done)
            for future in done:
                exc = future.exception()
                if exc is not None and first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Internal: advancement
    # ------------------------------------------------------------------

    def _activate(self, tournament: Tournament) -> tuple[list[Match], list[Match]]:
        tournament.status = TournamentStatus.ACTIVE
        tournament.started_at = datetime.now(timezone.utc)
        return self._open_ready(tournament, tournament.rounds[0])

    def _forward(self, tournament: Tournament, match: Match) -> tuple[list[Match], list[Match]]:
        next_round, next_index, side = next_slot(match.round, match.slot)
        target = tournament.rounds[next_round][next_index]
        if side == 0:
            target.participant_a = match.winner_id
        else:
            target.participant_b = match.winner_id
        if target.is_filled and target.status is MatchStatus.PENDING:
            target.status = MatchStatus.READY
            return self._open_ready(tournament, [target])
        return [], []

    def _open_ready(
        self, tournament: Tournament, matches: list[Match]
    ) -> tuple[list[Match], list[Match]]:
        """Activate READY player matches; return (ai_matches, player_matches)."""
        ai_matches, player_matches = [], []
        for match in matches:
            if match.status is not MatchStatus.READY:
                continue
            if tournament.is_player_match(match):
                match.status = MatchStatus.ACTIVE
                player_matches.append(match)
            else:
                ai_matches.append(match)
        return ai_matches, player_matches

    def _announce(self, tournament: Tournament, matches: list[Match]) -> None:
        for match in matches:
            logger.info("Your turn: match %s in %s", match.id, tournament.id)
            for listener in self._listeners:
                listener(tournament, match)

    def _dispatch(self, tournament: Tournament, matches: list[Match]) -> None:
        if not self.auto_simulate:
            return
        for match in matches:
            if self._executor is None:
                self.simulate(tournament, match.id)
                continue
            future = self._executor.submit(self.simulate, tournament, match.id)
            with self._futures_lock:
                self._futures.add(future)
            future.add_done_callback(self._forget_if_clean)

    def _forget_if_clean(self, future: Future) -> None:
        if future.cancelled() or future.exception() is None:
            with self._futures_lock:
                self._futures.discard(future)

    # ------------------------------------------------------------------
    # Internal: helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_match(tournament: Tournament, match_id: str) -> Match:
        match = tournament.match(match_id)
        if match is None:
            raise NotFoundError(f"No match {match_id!r} in tournament {tournament.id}")
        return match

    def _with_retries(self, fn, what: str):
        last: PersistenceError | None = None
        for attempt in range(1, self.persistence_retries + 1):
            try:
                return fn()
            except PersistenceError as exc:
                last = exc
                logger.warning(
                    "Attempt %d/%d to %s failed: %s",
                    attempt, self.persistence_retries, what, exc,
                )
        raise last


_TOURNAMENT_STATE = ("status", "started_at", "completed_at", "champion_id")


def _capture(tournament: Tournament) -> tuple[dict, list[Match]]:
    return (
        {name: getattr(tournament, name) for name in _TOURNAMENT_STATE},
        [copy.copy(m) for m in tournament.all_matches()],
    )


def _restore(tournament: Tournament, saved: tuple[dict, list[Match]]) -> None:
    """Undo in-memory changes in place; Match objects keep their identity."""
    fields, matches = saved
    for name, value in fields.items():
        setattr(tournament, name, value)
    for live, before in zip(tournament.all_matches(), matches):
        vars(live).update(vars(before))
