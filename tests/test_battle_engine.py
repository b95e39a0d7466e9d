"""Tests for battle rules — damage, turn order, fainting, turn cap."""

import pytest

from battlebracket.battle.catalog import DEFAULT_CATALOG
from battlebracket.battle.engine import BattleState
from battlebracket.battle.moves import (
    calculate_damage,
    effectiveness_message,
    moves_for,
    type_effectiveness,
)
from battlebracket.errors import InvalidStateError, ValidationError

C = DEFAULT_CATALOG


def _battle(roster_a, roster_b, max_turns=500):
    return BattleState.from_rosters("a", roster_a, "b", roster_b, C, max_turns=max_turns)


MOVE0 = {"action": "move", "index": 0}


# ── Moves and damage ─────────────────────────────────────────────


class TestMoves:
    def test_single_type_moveset(self):
        names = [m.name for m in moves_for(C["pikachu"])]
        assert names == ["Electric Strike", "Electric Blast", "Quick Attack"]

    def test_dual_type_adds_secondary_attack(self):
        moves = moves_for(C["gengar"])
        assert [m.name for m in moves] == [
            "Ghost Strike", "Ghost Blast", "Poison Attack", "Quick Attack",
        ]
        assert moves[-1].priority == 1

    def test_type_effectiveness_multiplies(self):
        assert type_effectiveness("electric", ("water", "flying")) == 4
        assert type_effectiveness("electric", ("ground",)) == 0
        assert type_effectiveness("fire", ("water",)) == 0.5

    def test_effectiveness_messages(self):
        assert effectiveness_message(2) == "It's super effective!"
        assert effectiveness_message(0.5) == "It's not very effective..."
        assert effectiveness_message(0) == "It doesn't affect the opponent!"
        assert effectiveness_message(1) == ""


class TestDamage:
    def test_known_value(self):
        strike = moves_for(C["pikachu"])[0]
        # ((22 * 80 * 55/65) / 50 + 2) * 1.5 STAB * 2 super effective
        assert calculate_damage(C["pikachu"], C["squirtle"], strike) == 95

    def test_immune_still_deals_one(self):
        strike = moves_for(C["pikachu"])[0]
        assert calculate_damage(C["pikachu"], C["geodude"], strike) == 1

    def test_special_uses_special_stats(self):
        blast = moves_for(C["alakazam"])[1]
        strike = moves_for(C["alakazam"])[0]
        assert calculate_damage(C["alakazam"], C["machamp"], blast) > \
            calculate_damage(C["alakazam"], C["machamp"], strike)

    def test_deterministic(self):
        move = moves_for(C["dragonite"])[0]
        results = {calculate_damage(C["dragonite"], C["lapras"], move) for _ in range(5)}
        assert len(results) == 1


# ── Turn resolution ──────────────────────────────────────────────


class TestTurnOrder:
    def test_faster_member_acts_first(self):
        state = _battle(["squirtle"], ["pikachu"])
        record = state.resolve_turn(MOVE0, MOVE0)
        assert record.events[0] == "Pikachu used Electric Strike!"

    def test_priority_beats_speed(self):
        state = _battle(["geodude"], ["pikachu"])
        quick = {"action": "move", "index": 3}  # geodude: rock/ground, 4 moves
        record = state.resolve_turn(quick, MOVE0)
        assert record.events[0] == "Geodude used Quick Attack!"

    def test_side_a_acts_first_on_exact_tie(self):
        state = _battle(["pikachu"], ["pikachu"])
        for side in state.sides:
            side.active.current_hp = 1
        state.resolve_turn(MOVE0, MOVE0)
        assert state.winner == "a"
        assert state.sides[0].active.current_hp == 1

    def test_switch_happens_before_attacks(self):
        state = _battle(["pikachu", "geodude"], ["squirtle"])
        record = state.resolve_turn({"action": "switch", "index": 1}, MOVE0)
        assert record.events[0] == "a sent out Geodude!"
        assert state.sides[0].active.name == "Geodude"
        assert state.sides[0].members[0].current_hp == C["pikachu"].hp

    def test_fainted_member_does_not_act(self):
        state = _battle(["pikachu"], ["squirtle", "bulbasaur"])
        state.sides[1].active.current_hp = 1
        record = state.resolve_turn(MOVE0, MOVE0)
        assert "Squirtle fainted!" in record.events
        assert not any(e.startswith("Squirtle used") for e in record.events)
        assert record.events[-1] == "b sent out Bulbasaur!"
        assert state.sides[1].active_index == 1

    def test_damage_capped_at_remaining_hp(self):
        state = _battle(["pikachu"], ["squirtle"])
        state.sides[1].active.current_hp = 10
        record = state.resolve_turn(MOVE0, MOVE0)
        assert record.damage["a"] == 10
        assert state.sides[1].active.current_hp == 0


class TestBattleEnd:
    def test_team_wipe_ends_battle(self):
        state = _battle(["pikachu"], ["squirtle"])
        state.sides[1].active.current_hp = 1
        state.resolve_turn(MOVE0, MOVE0)
        assert state.is_over
        assert state.winner == "a"

    def test_no_turn_after_end(self):
        state = _battle(["pikachu"], ["squirtle"])
        state.sides[1].active.current_hp = 1
        state.resolve_turn(MOVE0, MOVE0)
        with pytest.raises(InvalidStateError):
            state.resolve_turn(MOVE0, MOVE0)

    def test_turn_cap_higher_hp_share_wins(self):
        # Lapras ends at 55/130, Snorlax at 88/160
        state = _battle(["lapras"], ["snorlax"], max_turns=1)
        state.resolve_turn(MOVE0, MOVE0)
        assert state.is_over
        assert state.winner == "b"

    def test_turn_cap_tie_goes_to_side_a(self):
        state = _battle(["snorlax"], ["snorlax"], max_turns=1)
        state.resolve_turn(MOVE0, MOVE0)
        assert state.is_over
        assert state.winner == "a"

    def test_winner_none_while_running(self):
        state = _battle(["snorlax"], ["snorlax"])
        assert state.winner is None


class TestValidation:
    @pytest.fixture
    def state(self):
        return _battle(["pikachu", "geodude"], ["squirtle"])

    def test_legal_move(self, state):
        assert state.validate_action(0, MOVE0).legal

    def test_move_index_out_of_range(self, state):
        result = state.validate_action(0, {"action": "move", "index": 7})
        assert not result.legal
        assert "0-2" in result.reason

    def test_switch_to_active_rejected(self, state):
        assert not state.validate_action(0, {"action": "switch", "index": 0}).legal

    def test_switch_to_fainted_rejected(self, state):
        state.sides[0].members[1].current_hp = 0
        result = state.validate_action(0, {"action": "switch", "index": 1})
        assert not result.legal
        assert "fainted" in result.reason

    def test_unknown_member_in_roster(self):
        with pytest.raises(ValidationError) as exc_info:
            _battle(["pikachu"], ["missingno"])
        assert exc_info.value.field == "team"

    def test_empty_roster(self):
        with pytest.raises(ValidationError):
            _battle([], ["pikachu"])
