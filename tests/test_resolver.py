"""Tests for MatchResolver — simulation and player battle sessions."""

import json

import pytest

from battlebracket.errors import InvalidStateError, ValidationError
from battlebracket.models import Match, MatchStatus
from battlebracket.resolver import MatchResolver

ROSTER_A = ["pikachu", "bulbasaur", "charmander"]
ROSTER_B = ["squirtle", "geodude", "rattata"]


def _match(status=MatchStatus.READY, a="a", b="b"):
    return Match(id="r0m0", round=0, slot=0, participant_a=a, participant_b=b, status=status)


# ── Simulation ───────────────────────────────────────────────────


class TestSimulate:
    def test_produces_winner_and_log(self, resolver):
        result = resolver.simulate(_match(), ROSTER_A, ROSTER_B)
        assert result.winner_id in ("a", "b")
        assert result.forfeited_by is None
        assert result.turns > 0
        assert result.log[-1] == f"{result.winner_id} wins!"
        assert result.log[0].startswith("[1] ")

    def test_deterministic(self, resolver):
        first = resolver.simulate(_match(), ROSTER_A, ROSTER_B)
        second = resolver.simulate(_match(), ROSTER_A, ROSTER_B)
        assert first == second

    def test_does_not_mutate_match(self, resolver):
        match = _match(MatchStatus.ACTIVE)
        resolver.simulate(match, ROSTER_A, ROSTER_B)
        assert match.status is MatchStatus.ACTIVE
        assert match.winner_id is None

    @pytest.mark.parametrize("status", [
        MatchStatus.PENDING,
        MatchStatus.COMPLETED,
        MatchStatus.FORFEITED,
    ])
    def test_rejects_unplayable_status(self, resolver, status):
        with pytest.raises(InvalidStateError):
            resolver.simulate(_match(status), ROSTER_A, ROSTER_B)

    def test_rejects_unfilled_match(self, resolver):
        with pytest.raises(InvalidStateError):
            resolver.simulate(_match(b=None), ROSTER_A, ROSTER_B)

    def test_stronger_team_wins(self, resolver):
        result = resolver.simulate(_match(), ["mewtwo", "dragonite"], ["rattata"])
        assert result.winner_id == "a"

    def test_turn_cap_bounds_battle(self):
        resolver = MatchResolver(max_turns=2)
        result = resolver.simulate(_match(), ["snorlax"], ["snorlax"])
        assert result.turns == 2
        assert result.winner_id == "a"

    def test_policy_by_name(self):
        resolver = MatchResolver(policy="first_move")
        result = resolver.simulate(_match(), ROSTER_A, ROSTER_B)
        assert result.winner_id in ("a", "b")

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            MatchResolver(policy="nope")


# ── Player sessions ──────────────────────────────────────────────


class TestBattleSession:
    @pytest.fixture
    def session(self, resolver):
        return resolver.open_session(_match(MatchStatus.ACTIVE), ROSTER_A, ROSTER_B, "a")

    def test_requires_active_match(self, resolver):
        with pytest.raises(InvalidStateError):
            resolver.open_session(_match(MatchStatus.READY), ROSTER_A, ROSTER_B, "a")

    def test_requires_player_in_match(self, resolver):
        with pytest.raises(InvalidStateError):
            resolver.open_session(_match(MatchStatus.ACTIVE), ROSTER_A, ROSTER_B, "zed")

    def test_one_turn_per_action(self, session):
        record = session.select_move(0)
        assert record.turn_number == 1
        assert session.state.turn_number == 1
        assert record.actions["a"] == {"action": "move", "index": 0}
        assert session.log[0].startswith("[1] ")

    def test_switch_active(self, session):
        session.switch_active(1)
        assert session.state.sides[0].active.name == "Bulbasaur"

    @pytest.mark.parametrize("action", [
        {"action": "dance"},
        {"action": "move"},
        {"action": "move", "index": -1},
        {"action": "move", "index": "0"},
        {"action": "move", "index": 0, "extra": True},
        {},
    ])
    def test_malformed_action(self, session, action):
        with pytest.raises(ValidationError) as exc_info:
            session.submit(action)
        assert exc_info.value.field == "action"
        assert session.state.turn_number == 0

    def test_illegal_action(self, session):
        with pytest.raises(ValidationError, match="already active"):
            session.switch_active(0)
        with pytest.raises(ValidationError):
            session.select_move(9)
        assert session.state.turn_number == 0

    def test_forfeit(self, session):
        assert session.forfeit() is None
        assert session.finished
        assert session.outcome.winner_id == "b"
        assert session.outcome.forfeited_by == "a"
        assert session.log[-1] == "b wins!"

    def test_no_actions_after_finish(self, session):
        session.forfeit()
        with pytest.raises(InvalidStateError):
            session.select_move(0)

    def test_match_no_longer_active(self, session):
        session.match.status = MatchStatus.COMPLETED
        with pytest.raises(InvalidStateError):
            session.select_move(0)
        assert session.state.turn_number == 0

    def test_played_to_the_end(self, session):
        while not session.finished:
            session.select_move(0)
        outcome = session.outcome
        assert outcome.winner_id in ("a", "b")
        assert outcome.forfeited_by is None
        assert outcome.turns == session.state.turn_number


# ── Telemetry ────────────────────────────────────────────────────


class TestTelemetry:
    def test_simulation_writes_jsonl(self, tmp_path):
        resolver = MatchResolver(telemetry_dir=tmp_path)
        result = resolver.simulate(
            _match(), ROSTER_A, ROSTER_B, context={"tournament_id": "t1"}
        )
        path = tmp_path / "t1-r0m0.jsonl"
        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert len(lines) == result.turns + 1
        assert lines[0]["mode"] == "simulation"
        assert lines[-1]["record_type"] == "match_summary"
        assert lines[-1]["winner_id"] == result.winner_id
        assert lines[-1]["tournament_id"] == "t1"

    def test_forfeit_summary(self, tmp_path):
        resolver = MatchResolver(telemetry_dir=tmp_path)
        session = resolver.open_session(_match(MatchStatus.ACTIVE), ROSTER_A, ROSTER_B, "b")
        session.forfeit()
        last = json.loads((tmp_path / "match-r0m0.jsonl").read_text().splitlines()[-1])
        assert last["forfeited_by"] == "b"
        assert last["mode"] == "player"
