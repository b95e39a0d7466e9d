"""BattleState — simultaneous-turn team battle between two sides.

Each turn both sides submit one action. Resolution order:

1. Switches, side A then side B.
2. Attacks, ordered by move priority (high first), then the active
   member's speed (high first), then side order (A before B).
   A member that faints before its attack does not act.
3. End of turn: a side whose active member fainted sends out its first
   healthy member.

The battle ends when one side has no healthy members (team wipe), or when
``max_turns`` is reached, in which case the side with the larger share of
remaining HP wins and side A wins an exact tie.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from battlebracket.battle.catalog import MemberSpec
from battlebracket.battle.moves import (
    BattleMove,
    calculate_damage,
    effectiveness_message,
    moves_for,
    type_effectiveness,
)
from battlebracket.errors import InvalidStateError, ValidationError

__all__ = [
    "BattleMember",
    "BattleSide",
    "BattleState",
    "TurnRecord",
    "ValidationResult",
]


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a side's action against battle rules."""

    legal: bool
    reason: str | None = None


@dataclass
class BattleMember:
    spec: MemberSpec
    current_hp: int
    moves: list[BattleMove] = field(default_factory=list)

    @classmethod
    def from_spec(cls, spec: MemberSpec) -> BattleMember:
        return cls(spec=spec, current_hp=spec.hp, moves=moves_for(spec))

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def max_hp(self) -> int:
        return self.spec.hp

    @property
    def fainted(self) -> bool:
        return self.current_hp <= 0

    @property
    def hp_fraction(self) -> float:
        return self.current_hp / self.max_hp if self.max_hp else 0.0


class BattleSide:
    """One participant's team inside a battle."""

    def __init__(self, participant_id: str, members: list[BattleMember]) -> None:
        if not members:
            raise ValidationError(
                f"{participant_id} has an empty team", field="team"
            )
        self.participant_id = participant_id
        self.members = members
        self.active_index = 0

    @property
    def active(self) -> BattleMember:
        return self.members[self.active_index]

    def healthy_indices(self) -> list[int]:
        return [i for i, m in enumerate(self.members) if not m.fainted]

    @property
    def is_wiped(self) -> bool:
        return not self.healthy_indices()

    @property
    def hp_fraction(self) -> float:
        total = sum(m.max_hp for m in self.members)
        return sum(max(0, m.current_hp) for m in self.members) / total

    def snapshot(self) -> dict:
        return {
            "participant_id": self.participant_id,
            "active_index": self.active_index,
            "members": [
                {"id": m.spec.id, "hp": m.current_hp, "max_hp": m.max_hp}
                for m in self.members
            ],
        }


@dataclass
class TurnRecord:
    turn_number: int
    actions: dict[str, dict]  # participant_id -> action
    events: list[str]
    damage: dict[str, int]  # participant_id -> damage dealt this turn


class BattleState:
    """Full battle state plus the turn-resolution rules."""

    def __init__(
        self, side_a: BattleSide, side_b: BattleSide, max_turns: int = 500
    ) -> None:
        self.sides = (side_a, side_b)
        self.max_turns = max_turns
        self.turn_number = 0

    @classmethod
    def from_rosters(
        cls,
        participant_a: str,
        roster_a: list[str],
        participant_b: str,
        roster_b: list[str],
        catalog: Mapping[str, MemberSpec],
        max_turns: int = 500,
    ) -> BattleState:
        def side(pid: str, roster: list[str]) -> BattleSide:
            members = []
            for member_id in roster:
                spec = catalog.get(member_id)
                if spec is None:
                    raise ValidationError(
                        f"Unknown roster member {member_id!r} on {pid}",
                        field="team",
                    )
                members.append(BattleMember.from_spec(spec))
            return BattleSide(pid, members)

        return cls(
            side(participant_a, roster_a),
            side(participant_b, roster_b),
            max_turns=max_turns,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def side_index(self, participant_id: str) -> int:
        for i, s in enumerate(self.sides):
            if s.participant_id == participant_id:
                return i
        raise ValueError(f"{participant_id!r} is not in this battle")

    def opponent(self, side_index: int) -> BattleSide:
        return self.sides[1 - side_index]

    @property
    def is_over(self) -> bool:
        return (
            any(s.is_wiped for s in self.sides)
            or self.turn_number >= self.max_turns
        )

    @property
    def winner(self) -> str | None:
        """Winning participant id, or None while the battle is running."""
        side_a, side_b = self.sides
        if side_b.is_wiped:
            return side_a.participant_id
        if side_a.is_wiped:
            return side_b.participant_id
        if self.turn_number >= self.max_turns:
            if side_b.hp_fraction > side_a.hp_fraction:
                return side_b.participant_id
            return side_a.participant_id
        return None

    def snapshot(self) -> dict:
        return {
            "turn_number": self.turn_number,
            "sides": [s.snapshot() for s in self.sides],
        }

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def validate_action(self, side_index: int, action: dict) -> ValidationResult:
        side = self.sides[side_index]
        act = action.get("action")
        index = action.get("index")

        if act == "move":
            moves = side.active.moves
            if not isinstance(index, int) or not 0 <= index < len(moves):
                return ValidationResult(
                    legal=False,
                    reason=f"Move index must be 0-{len(moves) - 1}, got {index!r}.",
                )
            return ValidationResult(legal=True)

        if act == "switch":
            if not isinstance(index, int) or not 0 <= index < len(side.members):
                return ValidationResult(
                    legal=False,
                    reason=f"Member index must be 0-{len(side.members) - 1}, "
                    f"got {index!r}.",
                )
            if index == side.active_index:
                return ValidationResult(
                    legal=False,
                    reason=f"{side.members[index].name} is already active.",
                )
            if side.members[index].fainted:
                return ValidationResult(
                    legal=False,
                    reason=f"{side.members[index].name} has fainted.",
                )
            return ValidationResult(legal=True)

        return ValidationResult(
            legal=False, reason=f"Unknown action: {act!r}. Use 'move' or 'switch'."
        )

    def resolve_turn(self, action_a: dict, action_b: dict) -> TurnRecord:
        """Resolve one simultaneous turn. Actions must already be legal."""
        if self.is_over:
            raise InvalidStateError("Battle is already over")

        self.turn_number += 1
        actions = (action_a, action_b)
        events: list[str] = []
        damage = {s.participant_id: 0 for s in self.sides}

        for i, action in enumerate(actions):
            if action["action"] == "switch":
                side = self.sides[i]
                side.active_index = action["index"]
                events.append(f"{side.participant_id} sent out {side.active.name}!")

        attackers = [i for i, a in enumerate(actions) if a["action"] == "move"]
        attackers.sort(key=lambda i: self._order_key(i, actions[i]))

        for i in attackers:
            side = self.sides[i]
            attacker = side.active
            if attacker.fainted:
                continue
            defender = self.opponent(i).active
            move = attacker.moves[actions[i]["index"]]
            dealt = min(defender.current_hp, calculate_damage(attacker.spec, defender.spec, move))
            defender.current_hp -= dealt
            damage[side.participant_id] += dealt
            events.append(f"{attacker.name} used {move.name}!")
            msg = effectiveness_message(type_effectiveness(move.type, defender.spec.types))
            if msg:
                events.append(msg)
            if defender.fainted:
                events.append(f"{defender.name} fainted!")

        for side in self.sides:
            if side.active.fainted:
                healthy = side.healthy_indices()
                if healthy:
                    side.active_index = healthy[0]
                    events.append(
                        f"{side.participant_id} sent out {side.active.name}!"
                    )

        return TurnRecord(
            turn_number=self.turn_number,
            actions={s.participant_id: dict(a) for s, a in zip(self.sides, actions)},
            events=events,
            damage=damage,
        )

    def _order_key(self, side_index: int, action: dict) -> tuple[int, int, int]:
        member = self.sides[side_index].active
        move = member.moves[action["index"]]
        return (-move.priority, -member.spec.speed, side_index)
