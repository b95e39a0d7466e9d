"""Moves, type effectiveness and the deterministic damage formula.

Damage (level fixed at 50):

    base   = ((2 * 50 / 5 + 2) * power * atk / def) / 50 + 2
    damage = max(1, floor(base * stab * effectiveness))

Physical moves use attack/defense, special moves use special-attack/
special-defense. STAB is 1.5 when the move shares a type with the
attacker. There is no random roll, so identical teams always produce
identical battles. Every hit deals at least 1 HP, which guarantees a
battle of attacking sides ends in a team wipe.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from battlebracket.battle.catalog import MemberSpec

__all__ = [
    "BattleMove",
    "LEVEL",
    "calculate_damage",
    "effectiveness_message",
    "moves_for",
    "type_effectiveness",
]

LEVEL = 50
STAB_BONUS = 1.5

# Attacker type -> defender type -> multiplier (1.0 when absent)
_TYPE_CHART: dict[str, dict[str, float]] = {
    "normal": {"rock": 0.5, "ghost": 0, "steel": 0.5},
    "fire": {"fire": 0.5, "water": 0.5, "grass": 2, "ice": 2, "bug": 2,
             "rock": 0.5, "dragon": 0.5, "steel": 2},
    "water": {"fire": 2, "water": 0.5, "grass": 0.5, "ground": 2, "rock": 2,
              "dragon": 0.5},
    "electric": {"water": 2, "electric": 0.5, "grass": 0.5, "ground": 0,
                 "flying": 2, "dragon": 0.5},
    "grass": {"fire": 0.5, "water": 2, "grass": 0.5, "poison": 0.5,
              "ground": 2, "flying": 0.5, "bug": 0.5, "rock": 2,
              "dragon": 0.5, "steel": 0.5},
    "ice": {"fire": 0.5, "water": 0.5, "grass": 2, "ice": 0.5, "ground": 2,
            "flying": 2, "dragon": 2, "steel": 0.5},
    "fighting": {"normal": 2, "ice": 2, "poison": 0.5, "flying": 0.5,
                 "psychic": 0.5, "bug": 0.5, "rock": 2, "ghost": 0,
                 "dark": 2, "steel": 2, "fairy": 0.5},
    "poison": {"grass": 2, "poison": 0.5, "ground": 0.5, "rock": 0.5,
               "ghost": 0.5, "steel": 0, "fairy": 2},
    "ground": {"fire": 2, "electric": 2, "grass": 0.5, "poison": 2,
               "flying": 0, "bug": 0.5, "rock": 2, "steel": 2},
    "flying": {"electric": 0.5, "grass": 2, "fighting": 2, "bug": 2,
               "rock": 0.5, "steel": 0.5},
    "psychic": {"fighting": 2, "poison": 2, "psychic": 0.5, "dark": 0,
                "steel": 0.5},
    "bug": {"fire": 0.5, "grass": 2, "fighting": 0.5, "poison": 0.5,
            "flying": 0.5, "psychic": 2, "ghost": 0.5, "dark": 2,
            "steel": 0.5, "fairy": 0.5},
    "rock": {"fire": 2, "ice": 2, "fighting": 0.5, "ground": 0.5,
             "flying": 2, "bug": 2, "steel": 0.5},
    "ghost": {"normal": 0, "psychic": 2, "ghost": 2, "dark": 0.5},
    "dragon": {"dragon": 2, "steel": 0.5, "fairy": 0},
    "dark": {"fighting": 0.5, "psychic": 2, "ghost": 2, "dark": 0.5,
             "fairy": 0.5},
    "steel": {"fire": 0.5, "water": 0.5, "electric": 0.5, "ice": 2,
              "rock": 2, "steel": 0.5, "fairy": 2},
    "fairy": {"fire": 0.5, "fighting": 2, "poison": 0.5, "dragon": 2,
              "dark": 2, "steel": 0.5},
}


@dataclass(frozen=True)
class BattleMove:
    name: str
    type: str
    power: int
    category: str  # "physical" | "special"
    priority: int = 0


def type_effectiveness(attack_type: str, defender_types: tuple[str, ...]) -> float:
    multiplier = 1.0
    row = _TYPE_CHART.get(attack_type, {})
    for t in defender_types:
        multiplier *= row.get(t, 1.0)
    return multiplier


def effectiveness_message(multiplier: float) -> str:
    if multiplier == 0:
        return "It doesn't affect the opponent!"
    if multiplier < 1:
        return "It's not very effective..."
    if multiplier > 1:
        return "It's super effective!"
    return ""


def moves_for(member: MemberSpec) -> list[BattleMove]:
    """Derive a member's moveset from its types (at most four moves)."""
    primary = member.types[0] if member.types else "normal"
    moves = [
        BattleMove(f"{primary.capitalize()} Strike", primary, 80, "physical"),
        BattleMove(f"{primary.capitalize()} Blast", primary, 90, "special"),
    ]
    if len(member.types) > 1:
        secondary = member.types[1]
        moves.append(
            BattleMove(f"{secondary.capitalize()} Attack", secondary, 75, "physical")
        )
    moves.append(BattleMove("Quick Attack", "normal", 40, "physical", priority=1))
    return moves[:4]


def calculate_damage(
    attacker: MemberSpec, defender: MemberSpec, move: BattleMove
) -> int:
    if move.category == "physical":
        atk, dfn = attacker.attack, defender.defense
    else:
        atk, dfn = attacker.special_attack, defender.special_defense

    effectiveness = type_effectiveness(move.type, defender.types)
    stab = STAB_BONUS if move.type in attacker.types else 1.0

    base = ((2 * LEVEL / 5 + 2) * move.power * atk / max(1, dfn)) / 50 + 2
    return max(1, math.floor(base * stab * effectiveness))
