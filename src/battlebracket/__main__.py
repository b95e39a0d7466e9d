"""CLI entry point: python -m battlebracket <config.yaml> --team <team_id>"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Prompt

from battlebracket.config import load_config
from battlebracket.errors import BracketError, ValidationError
from battlebracket.models import TournamentStatus
from battlebracket.reporting import render_battle, render_bracket, render_history, render_stats
from battlebracket.service import TournamentService

console = Console()

_ACTIONS = {"m": "move", "move": "move", "s": "switch", "switch": "switch"}


def _ask_action() -> dict:
    """Prompt until the input parses: ``m <i>``, ``s <i>`` or ``f``."""
    while True:
        raw = Prompt.ask("[bold]Action[/bold] ([cyan]m[/cyan] <move> | [cyan]s[/cyan] <member> | [cyan]f[/cyan]orfeit)")
        parts = raw.strip().lower().split()
        if parts and parts[0] in ("f", "forfeit"):
            return {"action": "forfeit"}
        if len(parts) == 2 and parts[0] in _ACTIONS and parts[1].isdigit():
            return {"action": _ACTIONS[parts[0]], "index": int(parts[1])}
        console.print("[red]Could not parse that, try again.[/red]")


def _play_match(service: TournamentService, tournament_id: str, match_id: str, auto: bool) -> None:
    session = service.open_battle(tournament_id, match_id)
    side = session.state.side_index(session.player_id)
    bracket = service.get_bracket(tournament_id)
    opponent = bracket.participants[bracket.match(match_id).opponent_of(session.player_id)]
    console.rule(f"{bracket.round_label(bracket.match(match_id).round)} vs {opponent.display_name}")

    while not session.finished:
        if auto:
            action = service.resolver.policy(session.state, side)
        else:
            console.print(render_battle(session.state, side))
            action = _ask_action()
        try:
            record = service.submit_player_action(tournament_id, match_id, action)
        except ValidationError as exc:
            console.print(f"[red]{exc.message}[/red]")
            continue
        if record is not None and not auto:
            for event in record.events:
                console.print(f"  {event}")

    outcome = session.outcome
    if outcome.winner_id == session.player_id:
        console.print(f"[bold green]You won in {outcome.turns} turns![/bold green]")
    else:
        console.print(f"[bold red]You lost to {opponent.display_name}.[/bold red]")


def _run_tournament(service: TournamentService, args) -> None:
    tournament = service.create_tournament(args.name, args.size, args.team)
    service.start_tournament(tournament.id)
    console.print(f"Tournament: {tournament.name} ({tournament.id}, {tournament.participant_count} participants)")

    while True:
        service.wait_idle()
        match = service.pending_player_match(tournament.id)
        if match is not None:
            _play_match(service, tournament.id, match.id, args.auto)
            continue
        bracket = service.get_bracket(tournament.id)
        if bracket.status is TournamentStatus.COMPLETED:
            break
        # No player match and no simulation left: nothing can advance
        console.print("[red]Tournament stalled; see the log for simulation errors.[/red]")
        sys.exit(1)

    final = service.get_bracket(tournament.id)
    console.print(render_bracket(final))
    if final.champion_id == final.player_id:
        console.print("[bold green]You are the champion![/bold green]")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="battlebracket",
        description="Single-elimination monster battle tournaments",
    )
    parser.add_argument(
        "config",
        type=Path,
        help="Path to engine YAML config file",
    )
    parser.add_argument("--team", help="Team id from the config's teams section")
    parser.add_argument("--name", default="Indigo Cup", help="Tournament name")
    parser.add_argument(
        "--size",
        type=int,
        choices=(4, 8, 16),
        default=8,
        help="Number of participants (default: 8)",
    )
    parser.add_argument(
        "--auto",
        action="store_true",
        default=False,
        help="Play the player's matches with the AI policy",
    )
    parser.add_argument("--history", action="store_true", help="Show tournament history")
    parser.add_argument("--stats", metavar="OWNER", help="Show stats for a participant or team id")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    if not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    config = load_config(args.config)
    if not (args.team or args.history or args.stats):
        parser.error("nothing to do: pass --team, --history or --stats")

    try:
        with TournamentService.from_config(config) as service:
            if args.team:
                _run_tournament(service, args)
            if args.history:
                console.print(render_history(service.list_history()))
            if args.stats:
                console.print(render_stats(args.stats, service.get_stats(args.stats)))
    except BracketError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
