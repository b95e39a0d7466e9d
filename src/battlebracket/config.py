"""Engine configuration loader."""

import yaml
from dataclasses import dataclass, field
from pathlib import Path

from battlebracket.battle.catalog import DEFAULT_CATALOG, MemberSpec, catalog_from_dict
from battlebracket.rosters import Team, teams_from_dict


@dataclass
class MongoConfig:
    uri_env: str = "BATTLEBRACKET_MONGO_URI"  # env var holding the connection string
    db_name: str = "battlebracket"
    timeout_ms: int = 5000


@dataclass
class EngineConfig:
    seed: int = 0
    data_dir: Path | None = None             # None = in-memory repository
    background_simulation: bool = True
    simulation_workers: int = 4
    max_turns: int = 500
    policy: str = "highest_damage"
    telemetry_dir: Path | None = None
    persistence_retries: int = 3
    mongo: MongoConfig | None = None
    catalog: dict[str, MemberSpec] = field(default_factory=lambda: dict(DEFAULT_CATALOG))
    teams: dict[str, Team] = field(default_factory=dict)


def _optional_path(value) -> Path | None:
    return Path(value) if value else None


def load_config(path: Path) -> EngineConfig:
    """Load engine config from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    e = raw.get("engine", {})

    # Parse optional mongo section
    mongo = None
    m_raw = raw.get("mongo")
    if m_raw:
        mongo = MongoConfig(
            uri_env=m_raw.get("uri_env", "BATTLEBRACKET_MONGO_URI"),
            db_name=m_raw.get("db_name", "battlebracket"),
            timeout_ms=m_raw.get("timeout_ms", 5000),
        )

    # Config catalog entries extend (and override) the built-in members
    catalog = dict(DEFAULT_CATALOG)
    if raw.get("catalog"):
        catalog.update(catalog_from_dict(raw["catalog"]))

    return EngineConfig(
        seed=e.get("seed", 0),
        data_dir=_optional_path(e.get("data_dir")),
        background_simulation=e.get("background_simulation", True),
        simulation_workers=e.get("simulation_workers", 4),
        max_turns=e.get("max_turns", 500),
        policy=e.get("policy", "highest_damage"),
        telemetry_dir=_optional_path(e.get("telemetry_dir")),
        persistence_retries=e.get("persistence_retries", 3),
        mongo=mongo,
        catalog=catalog,
        teams=teams_from_dict(raw.get("teams", {})),
    )
