"""Battle rules: catalog, moves, turn resolution and AI policies."""

from battlebracket.battle.catalog import DEFAULT_CATALOG, MemberSpec
from battlebracket.battle.engine import BattleState, TurnRecord
from battlebracket.battle.policies import POLICIES, get_policy

__all__ = [
    "DEFAULT_CATALOG",
    "MemberSpec",
    "BattleState",
    "TurnRecord",
    "POLICIES",
    "get_policy",
]
