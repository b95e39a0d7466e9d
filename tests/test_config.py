"""Tests for config loading."""

from pathlib import Path

import pytest

from battlebracket.battle.catalog import DEFAULT_CATALOG
from battlebracket.config import EngineConfig, MongoConfig, load_config

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "battlebracket.yaml.example"


class TestDefaults:
    def test_engine_defaults(self):
        config = EngineConfig()
        assert config.seed == 0
        assert config.data_dir is None
        assert config.background_simulation is True
        assert config.max_turns == 500
        assert config.policy == "highest_damage"
        assert config.persistence_retries == 3
        assert config.mongo is None
        assert set(config.catalog) == set(DEFAULT_CATALOG)

    def test_mongo_defaults(self):
        mc = MongoConfig()
        assert mc.uri_env == "BATTLEBRACKET_MONGO_URI"
        assert mc.db_name == "battlebracket"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.seed == 0
        assert config.teams == {}


class TestLoadConfig:
    def test_example_config_loads(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.seed == 42
        assert config.data_dir == Path("data")
        assert config.telemetry_dir is None
        assert config.mongo is None
        assert config.teams["starter"].members == ("pikachu", "bulbasaur", "charmander", "squirtle")
        assert "eevee" in config.catalog
        assert "pikachu" in config.catalog

    def test_all_sections(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "engine:\n"
            "  seed: 9\n"
            "  background_simulation: false\n"
            "  simulation_workers: 2\n"
            "  max_turns: 50\n"
            "  policy: first_move\n"
            "  telemetry_dir: logs\n"
            "  persistence_retries: 5\n"
            "mongo:\n"
            "  db_name: cups\n"
            "catalog:\n"
            "  pikachu: {name: Sparky, types: [electric], hp: 99, attack: 1, defense: 1, speed: 1}\n"
            "teams:\n"
            "  solo: {members: [pikachu]}\n"
        )
        config = load_config(path)
        assert config.seed == 9
        assert config.background_simulation is False
        assert config.simulation_workers == 2
        assert config.max_turns == 50
        assert config.policy == "first_move"
        assert config.telemetry_dir == Path("logs")
        assert config.persistence_retries == 5
        assert config.mongo.db_name == "cups"
        assert config.mongo.uri_env == "BATTLEBRACKET_MONGO_URI"
        assert config.catalog["pikachu"].name == "Sparky"
        assert config.catalog["pikachu"].special_attack == 1
        assert config.teams["solo"].name == "solo"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")
