"""battlebracket reporting module.

Usage:
    from battlebracket.reporting import render_bracket, render_history, render_stats

    console.print(render_bracket(service.get_bracket(tournament_id)))
"""

from battlebracket.reporting.console import (
    render_battle,
    render_bracket,
    render_history,
    render_stats,
)

__all__ = ["render_battle", "render_bracket", "render_history", "render_stats"]
