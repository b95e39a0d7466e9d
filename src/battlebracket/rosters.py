"""Teams and AI opponents.

The engine never edits teams: a ``TeamProvider`` hands out finished
``Team`` values and the service copies their member ids into the
tournament. AI opponents are generated from named trainers, each with a
team-building strategy and a difficulty.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

import yaml

from battlebracket.battle.catalog import MemberSpec

logger = logging.getLogger(__name__)

MAX_TEAM_SIZE = 6


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    members: tuple[str, ...]


class TeamProvider(ABC):
    """Lookup of saved teams by id."""

    @abstractmethod
    def get_team(self, team_id: str) -> Team | None:
        """Return the team or None if unknown."""


class InMemoryTeamProvider(TeamProvider):
    def __init__(self, teams: Mapping[str, Team] | None = None) -> None:
        self._teams: dict[str, Team] = dict(teams or {})

    def add(self, team: Team) -> None:
        self._teams[team.id] = team

    def get_team(self, team_id: str) -> Team | None:
        return self._teams.get(team_id)

    def team_ids(self) -> list[str]:
        return sorted(self._teams)


def teams_from_dict(raw: Mapping[str, dict]) -> dict[str, Team]:
    """Parse the ``teams:`` section of a config file."""
    return {
        team_id: Team(
            id=team_id,
            name=spec.get("name", team_id),
            members=tuple(spec.get("members", [])),
        )
        for team_id, spec in (raw or {}).items()
    }


def load_teams(source: str | Path | Mapping[str, dict]) -> InMemoryTeamProvider:
    """Load teams from a YAML file (top-level ``teams:`` key or bare mapping)."""
    if isinstance(source, Mapping):
        raw = source
    else:
        with open(source) as f:
            raw = yaml.safe_load(f) or {}
        raw = raw.get("teams", raw)
    teams = teams_from_dict(raw)
    logger.debug("Loaded %d teams", len(teams))
    return InMemoryTeamProvider(teams)


# ── Opponent trainers ────────────────────────────────────────────


@dataclass(frozen=True)
class OpponentTrainer:
    name: str
    title: str
    strategy: str
    difficulty: str
    team_size: int

    @property
    def slug(self) -> str:
        return "".join(c if c.isalnum() else "-" for c in self.name.lower()).strip("-").replace("--", "-")

    @property
    def display_name(self) -> str:
        return f"{self.title} {self.name}"


OPPONENT_TRAINERS: tuple[OpponentTrainer, ...] = (
    OpponentTrainer("Joey", "Youngster", "random", "easy", 3),
    OpponentTrainer("Misty", "Gym Leader", "type-focused", "medium", 4),
    OpponentTrainer("Brock", "Gym Leader", "type-focused", "medium", 4),
    OpponentTrainer("Lt. Surge", "Gym Leader", "type-focused", "medium", 5),
    OpponentTrainer("Sabrina", "Gym Leader", "type-focused", "hard", 5),
    OpponentTrainer("Blue", "Rival", "balanced", "hard", 6),
    OpponentTrainer("Lance", "Champion", "legendary", "expert", 6),
    OpponentTrainer("Red", "Master Trainer", "balanced", "expert", 6),
)

_FOCUS_TYPES = ("fire", "water", "grass", "electric", "psychic", "fighting", "dragon", "ghost")


@dataclass(frozen=True)
class Opponent:
    participant_id: str
    display_name: str
    trainer: OpponentTrainer
    team: Team


# Each builder returns member specs, best-first; the caller trims to size.
TeamBuilder = Callable[[list[MemberSpec], int, str, random.Random], list[MemberSpec]]


def _by_power(members: list[MemberSpec], difficulty: str) -> list[MemberSpec]:
    return sorted(
        members, key=lambda m: (m.power_level, m.id), reverse=difficulty != "easy"
    )


def _random_team(members, size, difficulty, rng):
    return rng.sample(members, min(size, len(members)))


def _type_focused_team(members, size, difficulty, rng):
    present = [t for t in _FOCUS_TYPES if any(t in m.types for m in members)]
    if not present:
        return _balanced_team(members, size, difficulty, rng)
    focus = rng.choice(present)
    typed = _by_power([m for m in members if focus in m.types], difficulty)
    start = {"easy": 0, "medium": int(len(typed) * 0.3)}.get(difficulty, int(len(typed) * 0.5))
    # Short of members: walk back toward the strongest, then top up.
    team = typed[max(0, min(start, len(typed) - size)):][:size]
    rest = [m for m in _by_power(members, difficulty) if m not in team]
    return team + rest[: size - len(team)]


def _balanced_team(members, size, difficulty, rng):
    ordered = _by_power(members, difficulty)
    team: list[MemberSpec] = []
    used_types: set[str] = set()
    for m in ordered:
        if not team or any(t not in used_types for t in m.types):
            team.append(m)
            used_types.update(m.types)
            if len(team) >= size:
                return team
    rest = [m for m in ordered if m not in team]
    return team + rest[: size - len(team)]


def _ranked_slice(key: Callable[[MemberSpec], int]) -> TeamBuilder:
    def builder(members, size, difficulty, rng):
        ordered = sorted(members, key=lambda m: (key(m), m.id), reverse=True)
        start = {"easy": int(len(ordered) * 0.7), "medium": int(len(ordered) * 0.4)}.get(difficulty, 0)
        start = max(0, min(start, len(ordered) - size))
        return ordered[start:start + size]
    return builder


def _legendary_team(members, size, difficulty, rng):
    ordered = sorted(members, key=lambda m: (m.power_level, m.id), reverse=True)
    start = {"expert": 0, "hard": int(len(ordered) * 0.1)}.get(difficulty, int(len(ordered) * 0.2))
    start = max(0, min(start, len(ordered) - size))
    return ordered[start:start + size]


STRATEGIES: dict[str, TeamBuilder] = {
    "random": _random_team,
    "type-focused": _type_focused_team,
    "balanced": _balanced_team,
    "offensive": _ranked_slice(lambda m: m.offense),
    "defensive": _ranked_slice(lambda m: m.bulk),
    "legendary": _legendary_team,
}


def build_team(
    catalog: Mapping[str, MemberSpec],
    size: int,
    strategy: str,
    difficulty: str,
    rng: random.Random,
) -> tuple[str, ...]:
    """Pick ``size`` member ids from the catalog with a named strategy."""
    if strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown team strategy: {strategy!r}. Available: {sorted(STRATEGIES)}"
        )
    # Sorted so the rng sees the same sequence regardless of catalog order
    members = sorted(catalog.values(), key=lambda m: m.id)
    size = max(1, min(size, MAX_TEAM_SIZE, len(members)))
    chosen = STRATEGIES[strategy](members, size, difficulty, rng)
    return tuple(m.id for m in chosen[:size])


def generate_opponents(
    count: int,
    catalog: Mapping[str, MemberSpec],
    rng: random.Random,
    trainers: tuple[OpponentTrainer, ...] = OPPONENT_TRAINERS,
) -> list[Opponent]:
    """Generate ``count`` AI opponents, cycling the trainer list.

    The n-th reuse of a trainer gets a numbered id (``ai-misty-2``) and
    display-name suffix (``Gym Leader Misty #2``).
    """
    if not catalog:
        raise ValueError("Cannot generate opponents from an empty catalog")
    opponents: list[Opponent] = []
    for i in range(count):
        trainer = trainers[i % len(trainers)]
        cycle = i // len(trainers) + 1
        pid = f"ai-{trainer.slug}" if cycle == 1 else f"ai-{trainer.slug}-{cycle}"
        display = trainer.display_name if cycle == 1 else f"{trainer.display_name} #{cycle}"
        members = build_team(catalog, trainer.team_size, trainer.strategy, trainer.difficulty, rng)
        opponents.append(Opponent(
            participant_id=pid,
            display_name=display,
            trainer=trainer,
            team=Team(id=f"team-{pid}", name=f"{display}'s team", members=members),
        ))
    return opponents
