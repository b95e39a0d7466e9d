"""Core data model: participants, matches, tournaments, history and stats.

Brackets are stored as arena lists (``rounds[r][slot]``) and winners are
forwarded by index, never by object reference. Everything here serialises
to plain dicts for the persistence layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ParticipantKind(Enum):
    PLAYER = "player"
    AI = "ai"


class MatchStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    ACTIVE = "active"
    COMPLETED = "completed"
    FORFEITED = "forfeited"


class TournamentStatus(Enum):
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"


ALLOWED_SIZES = (4, 8, 16)

_ROUND_LABELS = {
    1: "FINAL",
    2: "SEMIFINALS",
    3: "QUARTERFINALS",
}


def round_label(round_index: int, total_rounds: int) -> str:
    """Human-readable label for a 0-indexed bracket round."""
    remaining = total_rounds - round_index
    if remaining in _ROUND_LABELS:
        return _ROUND_LABELS[remaining]
    return f"ROUND {round_index + 1}"


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ── Entities ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Participant:
    id: str
    kind: ParticipantKind
    team_id: str
    display_name: str

    @property
    def is_player(self) -> bool:
        return self.kind is ParticipantKind.PLAYER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "team_id": self.team_id,
            "display_name": self.display_name,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Participant:
        return cls(
            id=d["id"],
            kind=ParticipantKind(d["kind"]),
            team_id=d["team_id"],
            display_name=d["display_name"],
        )


@dataclass
class Match:
    id: str
    round: int
    slot: int
    participant_a: str | None = None
    participant_b: str | None = None
    status: MatchStatus = MatchStatus.PENDING
    winner_id: str | None = None
    forfeited_by: str | None = None
    turns: int = 0
    log: list[str] = field(default_factory=list)

    @property
    def participants(self) -> tuple[str | None, str | None]:
        return (self.participant_a, self.participant_b)

    @property
    def is_finished(self) -> bool:
        return self.status in (MatchStatus.COMPLETED, MatchStatus.FORFEITED)

    @property
    def is_filled(self) -> bool:
        return self.participant_a is not None and self.participant_b is not None

    def involves(self, participant_id: str) -> bool:
        return participant_id in (self.participant_a, self.participant_b)

    def opponent_of(self, participant_id: str) -> str | None:
        if participant_id == self.participant_a:
            return self.participant_b
        if participant_id == self.participant_b:
            return self.participant_a
        raise ValueError(f"{participant_id!r} is not in match {self.id}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "round": self.round,
            "slot": self.slot,
            "participant_a": self.participant_a,
            "participant_b": self.participant_b,
            "status": self.status.value,
            "winner_id": self.winner_id,
            "forfeited_by": self.forfeited_by,
            "turns": self.turns,
            "log": list(self.log),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Match:
        return cls(
            id=d["id"],
            round=d["round"],
            slot=d["slot"],
            participant_a=d.get("participant_a"),
            participant_b=d.get("participant_b"),
            status=MatchStatus(d["status"]),
            winner_id=d.get("winner_id"),
            forfeited_by=d.get("forfeited_by"),
            turns=d.get("turns", 0),
            log=list(d.get("log", [])),
        )


@dataclass
class Tournament:
    id: str
    name: str
    participant_count: int
    team_id: str
    player_id: str
    participants: dict[str, Participant]
    rosters: dict[str, list[str]]
    rounds: list[list[Match]]
    status: TournamentStatus = TournamentStatus.CREATED
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    champion_id: str | None = None
    seed: int = 0

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def match(self, match_id: str) -> Match | None:
        for matches in self.rounds:
            for m in matches:
                if m.id == match_id:
                    return m
        return None

    def all_matches(self) -> list[Match]:
        return [m for matches in self.rounds for m in matches]

    @property
    def final_match(self) -> Match:
        return self.rounds[-1][0]

    @property
    def num_rounds(self) -> int:
        return len(self.rounds)

    def is_player_match(self, match: Match) -> bool:
        return match.involves(self.player_id)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def round_status(self, round_index: int) -> str:
        """Return 'pending', 'in_progress' or 'completed' for a round."""
        matches = self.rounds[round_index]
        if all(m.is_finished for m in matches):
            return "completed"
        if any(m.status is not MatchStatus.PENDING for m in matches):
            return "in_progress"
        return "pending"

    @property
    def current_round(self) -> int:
        """Lowest round that still has unfinished matches."""
        for r, matches in enumerate(self.rounds):
            if not all(m.is_finished for m in matches):
                return r
        return self.num_rounds - 1

    def round_label(self, round_index: int) -> str:
        return round_label(round_index, self.num_rounds)

    def record_for(self, participant_id: str) -> tuple[int, int]:
        """Return (wins, losses) for a participant in this tournament."""
        wins = losses = 0
        for m in self.all_matches():
            if not m.is_finished or not m.involves(participant_id):
                continue
            if m.winner_id == participant_id:
                wins += 1
            else:
                losses += 1
        return wins, losses

    def is_eliminated(self, participant_id: str) -> bool:
        return self.record_for(participant_id)[1] > 0

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "participant_count": self.participant_count,
            "team_id": self.team_id,
            "player_id": self.player_id,
            "participants": [p.to_dict() for p in self.participants.values()],
            "rosters": {pid: list(ms) for pid, ms in self.rosters.items()},
            "rounds": [[m.to_dict() for m in matches] for matches in self.rounds],
            "status": self.status.value,
            "created_at": _ts(self.created_at),
            "started_at": _ts(self.started_at),
            "completed_at": _ts(self.completed_at),
            "champion_id": self.champion_id,
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Tournament:
        participants = [Participant.from_dict(p) for p in d["participants"]]
        return cls(
            id=d["id"],
            name=d["name"],
            participant_count=d["participant_count"],
            team_id=d["team_id"],
            player_id=d["player_id"],
            participants={p.id: p for p in participants},
            rosters={pid: list(ms) for pid, ms in d.get("rosters", {}).items()},
            rounds=[
                [Match.from_dict(m) for m in matches] for matches in d["rounds"]
            ],
            status=TournamentStatus(d["status"]),
            created_at=_parse_ts(d.get("created_at")),
            started_at=_parse_ts(d.get("started_at")),
            completed_at=_parse_ts(d.get("completed_at")),
            champion_id=d.get("champion_id"),
            seed=d.get("seed", 0),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot appended once per completed tournament."""

    tournament_id: str
    name: str
    participant_count: int
    champion_id: str
    completed_at: datetime
    player_won: bool = False

    def to_dict(self) -> dict:
        return {
            "tournament_id": self.tournament_id,
            "name": self.name,
            "participant_count": self.participant_count,
            "champion_id": self.champion_id,
            "completed_at": _ts(self.completed_at),
            "player_won": self.player_won,
        }

    @classmethod
    def from_dict(cls, d: dict) -> HistoryEntry:
        return cls(
            tournament_id=d["tournament_id"],
            name=d["name"],
            participant_count=d["participant_count"],
            champion_id=d["champion_id"],
            completed_at=_parse_ts(d["completed_at"]),
            player_won=d.get("player_won", False),
        )


@dataclass
class Stats:
    tournaments_entered: int = 0
    tournaments_won: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    matches_forfeited: int = 0

    @property
    def matches_played(self) -> int:
        return self.matches_won + self.matches_lost

    @property
    def win_rate(self) -> float:
        """Percent of entered tournaments won, rounded to one decimal."""
        if self.tournaments_entered == 0:
            return 0.0
        return round(self.tournaments_won / self.tournaments_entered * 100, 1)

    @property
    def match_win_rate(self) -> float:
        if self.matches_played == 0:
            return 0.0
        return round(self.matches_won / self.matches_played * 100, 1)

    def to_dict(self) -> dict:
        return {
            "tournaments_entered": self.tournaments_entered,
            "tournaments_won": self.tournaments_won,
            "matches_won": self.matches_won,
            "matches_lost": self.matches_lost,
            "matches_forfeited": self.matches_forfeited,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Stats:
        return cls(**{k: int(d.get(k, 0)) for k in cls().to_dict()})
