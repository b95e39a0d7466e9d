"""Bracket builder — single-elimination bracket construction.

Turns an ordered participant list into a fully pre-allocated round/match
arena. Round 0 pairs neighbours (index 2i vs 2i+1) and is immediately
READY; every later round starts PENDING with empty slots and is filled by
forwarding winners: match i of round r feeds slot i % 2 of match i // 2
in round r + 1.

Seeding is the caller's job. ``seeded_order`` is provided for callers that
hold a ranked list and want the top seeds to meet as late as possible.
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timezone

from battlebracket.errors import ValidationError
from battlebracket.models import (
    ALLOWED_SIZES,
    Match,
    MatchStatus,
    Participant,
    ParticipantKind,
    Tournament,
    TournamentStatus,
    round_label,
)

__all__ = [
    "build",
    "match_id_for",
    "next_slot",
    "round_label",
    "seeded_order",
]


# ── Seeding ──────────────────────────────────────────────────────

def _bracket_pairings(n: int) -> list[tuple[int, int]]:
    """Generate standard bracket pairings for n seeds (1-indexed).

    Arranges so top seeds meet in the final if favorites always win.
      - For n=2: [(1,2)]
      - For n=4: [(1,4), (2,3)]
      - For n=8: [(1,8), (4,5), (2,7), (3,6)]
    """
    if n == 2:
        return [(1, 2)]
    half = n // 2
    prev = _bracket_pairings(half)
    result = []
    for a, b in prev:
        # Each seed s from the smaller bracket meets seed (n + 1 - s)
        result.append((a, n + 1 - a))
        result.append((b, n + 1 - b))
    return result


def seeded_order(ranked_ids: list[str]) -> list[str]:
    """Reorder a best-first ranking into bracket order for ``build``."""
    n = len(ranked_ids)
    if n not in ALLOWED_SIZES:
        raise ValidationError(
            f"Participant count must be one of {ALLOWED_SIZES}, got {n}",
            field="participant_count",
        )
    order: list[str] = []
    for seed_a, seed_b in _bracket_pairings(n):
        order.append(ranked_ids[seed_a - 1])
        order.append(ranked_ids[seed_b - 1])
    return order


# ── Forwarding ───────────────────────────────────────────────────

def match_id_for(round_index: int, slot: int) -> str:
    return f"r{round_index}m{slot}"


def next_slot(round_index: int, slot: int) -> tuple[int, int, int]:
    """Return (next_round, next_match_index, side) for a match's winner.

    side 0 fills ``participant_a``, side 1 fills ``participant_b``.
    """
    return round_index + 1, slot // 2, slot % 2


# ── Builder ──────────────────────────────────────────────────────

def _validate(participant_ids: list[str], player_participant_id: str) -> None:
    n = len(participant_ids)
    if n not in ALLOWED_SIZES:
        raise ValidationError(
            f"Participant count must be one of {ALLOWED_SIZES}, got {n}",
            field="participant_count",
        )
    if len(set(participant_ids)) != n:
        dupes = sorted(p for p, c in Counter(participant_ids).items() if c > 1)
        raise ValidationError(
            f"Duplicate participant ids: {', '.join(dupes)}",
            field="participants",
        )
    if player_participant_id not in participant_ids:
        raise ValidationError(
            f"Player participant {player_participant_id!r} is not in the bracket",
            field="participants",
        )


def build(
    participant_ids: list[str],
    player_participant_id: str,
    *,
    name: str = "Tournament",
    team_id: str = "",
    participants: dict[str, Participant] | None = None,
    rosters: dict[str, list[str]] | None = None,
    tournament_id: str | None = None,
    seed: int = 0,
    created_at: datetime | None = None,
) -> Tournament:
    """Build a CREATED tournament with a full single-elimination bracket.

    ``participants`` supplies display metadata; ids missing from it get a
    default Participant (PLAYER for the player id, AI otherwise).
    """
    participant_ids = list(participant_ids)
    _validate(participant_ids, player_participant_id)

    n = len(participant_ids)
    num_rounds = n.bit_length() - 1  # log2

    rounds: list[list[Match]] = []
    first_round = [
        Match(
            id=match_id_for(0, i),
            round=0,
            slot=i,
            participant_a=participant_ids[2 * i],
            participant_b=participant_ids[2 * i + 1],
            status=MatchStatus.READY,
        )
        for i in range(n // 2)
    ]
    rounds.append(first_round)
    for r in range(1, num_rounds):
        rounds.append([
            Match(id=match_id_for(r, i), round=r, slot=i)
            for i in range(n >> (r + 1))
        ])

    given = participants or {}
    resolved: dict[str, Participant] = {}
    for pid in participant_ids:
        if pid in given:
            resolved[pid] = given[pid]
            continue
        is_player = pid == player_participant_id
        resolved[pid] = Participant(
            id=pid,
            kind=ParticipantKind.PLAYER if is_player else ParticipantKind.AI,
            team_id=team_id if is_player else pid,
            display_name=pid,
        )

    return Tournament(
        id=tournament_id or uuid.uuid4().hex[:12],
        name=name,
        participant_count=n,
        team_id=team_id,
        player_id=player_participant_id,
        participants=resolved,
        rosters={pid: list(ms) for pid, ms in (rosters or {}).items()},
        rounds=rounds,
        status=TournamentStatus.CREATED,
        created_at=created_at or datetime.now(timezone.utc),
        seed=seed,
    )
