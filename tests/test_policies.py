"""Tests for AI battle policies."""

import pytest

from battlebracket.battle.catalog import DEFAULT_CATALOG
from battlebracket.battle.engine import BattleState
from battlebracket.battle.policies import (
    POLICIES,
    first_move_policy,
    get_policy,
    highest_damage_policy,
    type_effectiveness_policy,
)


def _battle(roster_a, roster_b):
    return BattleState.from_rosters("a", roster_a, "b", roster_b, DEFAULT_CATALOG)


class TestFirstMove:
    def test_always_move_zero(self):
        state = _battle(["pikachu"], ["squirtle"])
        assert first_move_policy(state, 0) == {"action": "move", "index": 0}


class TestTypeEffectiveness:
    def test_picks_super_effective_secondary(self):
        # Gyarados: Water Strike/Blast, Flying Attack; Flying is super effective on Machamp
        state = _battle(["gyarados"], ["machamp"])
        assert type_effectiveness_policy(state, 0) == {"action": "move", "index": 2}

    def test_lowest_index_on_tie(self):
        state = _battle(["pikachu"], ["snorlax"])
        assert type_effectiveness_policy(state, 0) == {"action": "move", "index": 0}


class TestHighestDamage:
    def test_prefers_stronger_category(self):
        # Alakazam's special attack dwarfs its physical attack
        state = _battle(["alakazam"], ["machamp"])
        assert highest_damage_policy(state, 0) == {"action": "move", "index": 1}

    def test_retreats_when_low(self):
        state = _battle(["pikachu", "snorlax"], ["squirtle"])
        state.sides[0].active.current_hp = 5
        assert highest_damage_policy(state, 0) == {"action": "switch", "index": 1}

    def test_no_retreat_without_healthy_bench(self):
        state = _battle(["pikachu", "snorlax"], ["squirtle"])
        state.sides[0].active.current_hp = 5
        state.sides[0].members[1].current_hp = 20
        assert highest_damage_policy(state, 0)["action"] == "move"

    def test_actions_are_always_legal(self):
        state = _battle(["gengar", "onix", "lapras"], ["dragonite", "jolteon"])
        while not state.is_over:
            actions = [highest_damage_policy(state, i) for i in (0, 1)]
            for i, action in enumerate(actions):
                assert state.validate_action(i, action).legal
            state.resolve_turn(*actions)
        assert state.winner in ("a", "b")


class TestRegistry:
    def test_known_names(self):
        assert set(POLICIES) == {"highest_damage", "type_effectiveness", "first_move"}
        assert get_policy("first_move") is first_move_policy

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown battle policy"):
            get_policy("psychic_powers")
