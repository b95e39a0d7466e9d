"""AI battle policies.

Each policy has the signature:
    (state: BattleState, side_index: int) -> action dict

Policies:
- highest_damage_policy: retreat a badly hurt member, otherwise pick the
  move with the highest expected damage.
- type_effectiveness_policy: pick the most type-effective move.
- first_move_policy: always use move 0.

All policies are pure functions of the battle state, so simulated matches
are reproducible.
"""

from __future__ import annotations

from typing import Callable

from battlebracket.battle.engine import BattleState
from battlebracket.battle.moves import calculate_damage, type_effectiveness

Policy = Callable[[BattleState, int], dict]

# Switch out below this HP share, to a bench member above _HEALTHY_FRACTION
_RETREAT_FRACTION = 0.3
_HEALTHY_FRACTION = 0.5


def first_move_policy(state: BattleState, side_index: int) -> dict:
    """Always use the first move."""
    return {"action": "move", "index": 0}


def _retreat_target(state: BattleState, side_index: int) -> int | None:
    side = state.sides[side_index]
    if side.active.hp_fraction >= _RETREAT_FRACTION:
        return None
    for i, member in enumerate(side.members):
        if i != side.active_index and member.hp_fraction > _HEALTHY_FRACTION:
            return i
    return None


def type_effectiveness_policy(state: BattleState, side_index: int) -> dict:
    """Retreat when low, else the most type-effective move (lowest index on ties)."""
    target = _retreat_target(state, side_index)
    if target is not None:
        return {"action": "switch", "index": target}

    attacker = state.sides[side_index].active
    defender = state.opponent(side_index).active
    best_index, best = 0, -1.0
    for i, move in enumerate(attacker.moves):
        eff = type_effectiveness(move.type, defender.spec.types)
        if eff > best:
            best_index, best = i, eff
    return {"action": "move", "index": best_index}


def highest_damage_policy(state: BattleState, side_index: int) -> dict:
    """Retreat when low, else the move with the highest expected damage."""
    target = _retreat_target(state, side_index)
    if target is not None:
        return {"action": "switch", "index": target}

    attacker = state.sides[side_index].active
    defender = state.opponent(side_index).active
    best_index, best = 0, -1
    for i, move in enumerate(attacker.moves):
        dmg = calculate_damage(attacker.spec, defender.spec, move)
        if dmg > best:
            best_index, best = i, dmg
    return {"action": "move", "index": best_index}


POLICIES: dict[str, Policy] = {
    "highest_damage": highest_damage_policy,
    "type_effectiveness": type_effectiveness_policy,
    "first_move": first_move_policy,
}


def get_policy(name: str) -> Policy:
    policy = POLICIES.get(name)
    if policy is None:
        raise ValueError(
            f"Unknown battle policy: {name!r}. Available: {list(POLICIES)}"
        )
    return policy
