"""Rich renderables for brackets, battles, history and stats."""

from __future__ import annotations

from typing import Iterable

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from battlebracket.battle.engine import BattleState
from battlebracket.models import HistoryEntry, Match, MatchStatus, Stats, Tournament

STATUS_STYLES = {
    MatchStatus.PENDING: "dim",
    MatchStatus.READY: "yellow",
    MatchStatus.ACTIVE: "bold green",
    MatchStatus.COMPLETED: "white",
    MatchStatus.FORFEITED: "red",
}


def _name(tournament: Tournament, participant_id: str | None) -> Text:
    if participant_id is None:
        return Text("TBD", style="dim italic")
    participant = tournament.participants.get(participant_id)
    label = participant.display_name if participant else participant_id
    style = "bold cyan" if participant_id == tournament.player_id else ""
    return Text(label, style=style)


def _match_row(tournament: Tournament, match: Match) -> list:
    a = _name(tournament, match.participant_a)
    b = _name(tournament, match.participant_b)
    if match.winner_id is not None:
        winner, loser = (a, b) if match.winner_id == match.participant_a else (b, a)
        winner.stylize("bold")
        loser.stylize("strike dim")
    result = ""
    if match.status is MatchStatus.FORFEITED:
        result = f"forfeit by {tournament.participants[match.forfeited_by].display_name}"
    elif match.status is MatchStatus.COMPLETED:
        result = f"{match.turns} turns"
    return [
        match.id,
        a,
        b,
        Text(match.status.value, style=STATUS_STYLES[match.status]),
        result,
    ]


def render_bracket(tournament: Tournament) -> Panel:
    """One table per round, titled with the round label and status."""
    tables = []
    for r, matches in enumerate(tournament.rounds):
        table = Table(
            title=f"{tournament.round_label(r)} [dim]({tournament.round_status(r)})[/dim]",
            expand=True,
        )
        table.add_column("Match", style="dim", width=6)
        table.add_column("Side A")
        table.add_column("Side B")
        table.add_column("Status")
        table.add_column("Result", style="dim")
        for match in matches:
            table.add_row(*_match_row(tournament, match))
        tables.append(table)

    subtitle = f"{tournament.status.value}"
    if tournament.champion_id:
        champion = tournament.participants[tournament.champion_id].display_name
        subtitle = f"Champion: {champion}"
    return Panel(
        Group(*tables),
        title=f"[bold]{tournament.name}[/bold]  ({tournament.participant_count} participants)",
        subtitle=subtitle,
        border_style="green" if tournament.champion_id else "bright_white",
    )


def render_battle(state: BattleState, player_side: int) -> Panel:
    """HP bars for both sides plus the player's move list."""
    table = Table(show_header=False, show_edge=False, expand=True)
    table.add_column("Side")
    table.add_column("Members")
    for i, side in enumerate(state.sides):
        members = Text()
        for j, member in enumerate(side.members):
            if j:
                members.append("  ")
            style = "dim strike" if member.fainted else (
                "bold" if j == side.active_index else ""
            )
            members.append(f"{j}:{member.name} {max(0, member.current_hp)}/{member.max_hp}", style=style)
        label = "You" if i == player_side else side.participant_id
        table.add_row(Text(label, style="cyan" if i == player_side else "magenta"), members)

    moves = Text()
    for k, move in enumerate(state.sides[player_side].active.moves):
        if k:
            moves.append("   ")
        moves.append(f"{k}:{move.name} ({move.type}, {move.power})")
    return Panel(
        Group(table, Text(""), moves),
        title=f"[bold]Turn {state.turn_number + 1}[/bold]",
        border_style="cyan",
    )


def render_history(entries: Iterable[HistoryEntry]) -> Table:
    table = Table(title="Tournament History")
    table.add_column("Completed", style="dim")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Champion")
    table.add_column("Result")
    for entry in entries:
        completed = entry.completed_at.strftime("%Y-%m-%d %H:%M") if entry.completed_at else "-"
        table.add_row(
            completed,
            entry.name,
            str(entry.participant_count),
            entry.champion_id,
            Text("WON", style="bold green") if entry.player_won else Text("lost", style="dim"),
        )
    return table


def render_stats(owner_id: str, stats: Stats) -> Table:
    table = Table(title=f"Stats for {owner_id}", show_header=False)
    table.add_column("Stat", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Tournaments entered", str(stats.tournaments_entered))
    table.add_row("Tournaments won", str(stats.tournaments_won))
    table.add_row("Win rate", f"{stats.win_rate}%")
    table.add_row("Matches won", str(stats.matches_won))
    table.add_row("Matches lost", str(stats.matches_lost))
    table.add_row("Matches forfeited", str(stats.matches_forfeited))
    table.add_row("Match win rate", f"{stats.match_win_rate}%")
    return table
