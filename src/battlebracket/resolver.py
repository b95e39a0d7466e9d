"""MatchResolver — turns a READY/ACTIVE match into a winner.

Two modes share one output type, ``Resolution``:

- Simulation (``simulate``): both sides are driven by the configured AI
  policy until a team wipe. Runs to completion without suspending and is
  deterministic for identical rosters and policy.
- Player (``open_session``): a ``BattleSession`` advances one turn per
  submitted action; the opponent answers with the AI policy. ``forfeit``
  ends the battle at once with the forfeiting side as loser.

The resolver never mutates the match. Callers hand the ``Resolution`` to
the state machine's ``report_result``, which is the only path that
finishes a match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import battlebracket
from battlebracket.battle.catalog import DEFAULT_CATALOG, MemberSpec
from battlebracket.battle.engine import BattleState, TurnRecord
from battlebracket.battle.policies import Policy, first_move_policy, get_policy
from battlebracket.core.schemas import load_schema, schema_error
from battlebracket.core.telemetry import BattleTurnEntry, TelemetryLogger
from battlebracket.errors import InvalidStateError, ValidationError
from battlebracket.models import Match, MatchStatus

logger = logging.getLogger(__name__)

_ACTION_SCHEMA_PATH = Path(__file__).parent / "battle" / "schema.json"
_RESOLVABLE = (MatchStatus.READY, MatchStatus.ACTIVE)


@dataclass(frozen=True)
class Resolution:
    """Outcome of one match, from either resolution mode."""

    match_id: str
    winner_id: str
    forfeited_by: str | None
    turns: int
    log: tuple[str, ...]


def _format_turn(record: TurnRecord) -> list[str]:
    return [f"[{record.turn_number}] {event}" for event in record.events]


class BattleSession:
    """A player-driven battle, suspended between turns awaiting input."""

    def __init__(
        self,
        match: Match,
        state: BattleState,
        player_id: str,
        policy: Policy,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.match = match
        self.state = state
        self.player_id = player_id
        self._player_side = state.side_index(player_id)
        self._policy = policy
        self._telemetry = telemetry
        self._log: list[str] = []
        self._outcome: Resolution | None = None
        self._action_schema = load_schema(_ACTION_SCHEMA_PATH)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def finished(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Resolution | None:
        return self._outcome

    @property
    def log(self) -> list[str]:
        return list(self._log)

    def select_move(self, move_index: int) -> TurnRecord | None:
        return self.submit({"action": "move", "index": move_index})

    def switch_active(self, member_index: int) -> TurnRecord | None:
        return self.submit({"action": "switch", "index": member_index})

    def forfeit(self) -> TurnRecord | None:
        return self.submit({"action": "forfeit"})

    def submit(self, action: dict) -> TurnRecord | None:
        """Apply one player action. Returns the turn record (None on forfeit)."""
        self._check_open()

        error = schema_error(action, self._action_schema)
        if error is not None:
            raise ValidationError(f"Malformed action: {error}", field="action")

        if action["action"] == "forfeit":
            self._log.append(f"{self.player_id} forfeited the match.")
            opponent = self.state.opponent(self._player_side).participant_id
            self._finish(opponent, forfeited_by=self.player_id)
            return None

        validation = self.state.validate_action(self._player_side, action)
        if not validation.legal:
            raise ValidationError(validation.reason or "Illegal action", field="action")

        ai_side = 1 - self._player_side
        ai_action = self._policy(self.state, ai_side)
        if not self.state.validate_action(ai_side, ai_action).legal:
            ai_action = first_move_policy(self.state, ai_side)

        actions = [None, None]
        actions[self._player_side] = action
        actions[ai_side] = ai_action
        record = self.state.resolve_turn(actions[0], actions[1])
        self._log.extend(_format_turn(record))
        if self._telemetry:
            self._telemetry.log_turn(_turn_entry(record, self.state, "player"))
        logger.debug("match %s turn %d: %s", self.match.id, record.turn_number, record.events)

        if self.state.is_over:
            self._finish(self.state.winner)
        return record

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._outcome is not None:
            raise InvalidStateError(f"Match {self.match.id} is already resolved")
        if self.match.status is not MatchStatus.ACTIVE:
            raise InvalidStateError(
                f"Match {self.match.id} is {self.match.status.value}, not active"
            )

    def _finish(self, winner_id: str, forfeited_by: str | None = None) -> None:
        self._log.append(f"{winner_id} wins!")
        self._outcome = Resolution(
            match_id=self.match.id,
            winner_id=winner_id,
            forfeited_by=forfeited_by,
            turns=self.state.turn_number,
            log=tuple(self._log),
        )
        if self._telemetry:
            self._telemetry.finalize_match(
                winner_id, self.state.turn_number, forfeited_by, extra={"mode": "player"}
            )


class MatchResolver:
    """Builds battles for matches and resolves them."""

    def __init__(
        self,
        catalog: Mapping[str, MemberSpec] | None = None,
        policy: str | Policy = "highest_damage",
        max_turns: int = 500,
        telemetry_dir: Path | None = None,
    ) -> None:
        self.catalog = dict(catalog or DEFAULT_CATALOG)
        self.policy = get_policy(policy) if isinstance(policy, str) else policy
        self.max_turns = max_turns
        self.telemetry_dir = Path(telemetry_dir) if telemetry_dir else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def simulate(
        self,
        match: Match,
        roster_a: list[str],
        roster_b: list[str],
        context: dict | None = None,
    ) -> Resolution:
        """Simulate an AI-only match to completion."""
        state = self._new_battle(match, roster_a, roster_b)
        telemetry = self._telemetry_for(match, context)
        log: list[str] = []

        while not state.is_over:
            actions = [self._ai_action(state, side) for side in (0, 1)]
            record = state.resolve_turn(actions[0], actions[1])
            log.extend(_format_turn(record))
            if telemetry:
                telemetry.log_turn(_turn_entry(record, state, "simulation"))

        winner = state.winner
        log.append(f"{winner} wins!")
        if telemetry:
            telemetry.finalize_match(winner, state.turn_number, extra={"mode": "simulation"})
        logger.debug(
            "simulated match %s: %s won in %d turns", match.id, winner, state.turn_number
        )
        return Resolution(
            match_id=match.id,
            winner_id=winner,
            forfeited_by=None,
            turns=state.turn_number,
            log=tuple(log),
        )

    def open_session(
        self,
        match: Match,
        roster_a: list[str],
        roster_b: list[str],
        player_id: str,
        context: dict | None = None,
    ) -> BattleSession:
        """Start a player-driven battle for an ACTIVE player match."""
        if match.status is not MatchStatus.ACTIVE:
            raise InvalidStateError(
                f"Match {match.id} is {match.status.value}, not active"
            )
        if not match.involves(player_id):
            raise InvalidStateError(f"Match {match.id} does not involve {player_id}")
        state = self._new_battle(match, roster_a, roster_b)
        return BattleSession(
            match, state, player_id, self.policy, self._telemetry_for(match, context)
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_battle(
        self, match: Match, roster_a: list[str], roster_b: list[str]
    ) -> BattleState:
        if match.status not in _RESOLVABLE or not match.is_filled:
            raise InvalidStateError(
                f"Match {match.id} is {match.status.value} and cannot be resolved"
            )
        return BattleState.from_rosters(
            match.participant_a, roster_a,
            match.participant_b, roster_b,
            self.catalog,
            max_turns=self.max_turns,
        )

    def _ai_action(self, state: BattleState, side: int) -> dict:
        action = self.policy(state, side)
        if not state.validate_action(side, action).legal:
            return first_move_policy(state, side)
        return action

    def _telemetry_for(self, match: Match, context: dict | None) -> TelemetryLogger | None:
        if self.telemetry_dir is None:
            return None
        context = context or {}
        prefix = context.get("tournament_id", "match")
        return TelemetryLogger(
            self.telemetry_dir,
            f"{prefix}-{match.id}",
            tournament_context={**context, "round": match.round},
        )


def _turn_entry(record: TurnRecord, state: BattleState, mode: str) -> BattleTurnEntry:
    return BattleTurnEntry(
        turn_number=record.turn_number,
        mode=mode,
        actions=record.actions,
        events=record.events,
        damage=record.damage,
        state_snapshot=state.snapshot(),
        engine_version=battlebracket.__version__,
    )
