"""Shared test fixtures for battlebracket."""

import pytest

from battlebracket.bracket import build
from battlebracket.config import EngineConfig
from battlebracket.core.persistence import MemoryRepository
from battlebracket.history import HistoryStore
from battlebracket.resolver import MatchResolver
from battlebracket.rosters import InMemoryTeamProvider, Team
from battlebracket.service import TournamentService
from battlebracket.tournament import TournamentStateMachine

ROSTERS = [
    ["pikachu", "bulbasaur"],
    ["charmander", "squirtle"],
    ["geodude", "psyduck"],
    ["rattata", "pidgeot"],
    ["onix", "machamp"],
    ["gengar", "alakazam"],
    ["starmie", "jolteon"],
    ["arcanine", "lapras"],
]


@pytest.fixture
def repository():
    return MemoryRepository()


@pytest.fixture
def history(repository):
    return HistoryStore(repository)


@pytest.fixture
def resolver():
    return MatchResolver()


@pytest.fixture
def machine(resolver, history, repository):
    """Inline state machine: simulations finish before calls return."""
    m = TournamentStateMachine(resolver, history, repository, background=False)
    yield m
    m.shutdown()


@pytest.fixture
def make_tournament():
    """Factory: build a CREATED tournament with participants p0..p{n-1}, player p0."""

    def _make(n: int = 4, player: str = "p0", name: str = "Test Cup"):
        ids = [f"p{i}" for i in range(n)]
        rosters = {pid: ROSTERS[i % len(ROSTERS)] for i, pid in enumerate(ids)}
        return build(ids, player, name=name, team_id="team-p0", rosters=rosters)

    return _make


@pytest.fixture
def teams():
    return InMemoryTeamProvider({
        "starter": Team("starter", "Starter Squad", ("pikachu", "bulbasaur", "charmander")),
        "empty": Team("empty", "Nobody", ()),
        "huge": Team("huge", "Too Many", ("pikachu",) * 7),
        "ghosts": Team("ghosts", "Missing", ("missingno",)),
    })


@pytest.fixture
def service(teams, repository):
    config = EngineConfig(seed=7, background_simulation=False)
    svc = TournamentService(teams, repository, config)
    yield svc
    svc.close()
