"""Tests for MemoryRepository and JsonFileRepository."""

import json
from datetime import datetime, timezone

import pytest

from battlebracket.bracket import build
from battlebracket.core.persistence import JsonFileRepository, MemoryRepository
from battlebracket.errors import PersistenceError
from battlebracket.models import HistoryEntry, MatchStatus


def _entry(tid, minute=0):
    return HistoryEntry(
        tournament_id=tid,
        name=f"Cup {tid}",
        participant_count=4,
        champion_id="p0",
        completed_at=datetime(2026, 1, 1, 12, minute, tzinfo=timezone.utc),
    )


def _tournament():
    return build(["p0", "p1", "p2", "p3"], "p0", name="Cup", rosters={"p0": ["pikachu"]})


@pytest.fixture(params=["memory", "json"])
def repo(request, tmp_path):
    if request.param == "memory":
        return MemoryRepository()
    return JsonFileRepository(tmp_path / "data")


class TestRepositoryContract:
    def test_tournament_round_trip(self, repo):
        t = _tournament()
        t.rounds[0][0].status = MatchStatus.ACTIVE
        repo.save_tournament(t)
        loaded = repo.load_tournament(t.id)
        assert loaded.to_dict() == t.to_dict()
        assert loaded is not t

    def test_save_replaces(self, repo):
        t = _tournament()
        repo.save_tournament(t)
        t.name = "Renamed"
        repo.save_tournament(t)
        assert repo.load_tournament(t.id).name == "Renamed"
        assert repo.list_tournaments() == [t.id]

    def test_missing_tournament(self, repo):
        assert repo.load_tournament("nope") is None

    def test_history_append_is_idempotent(self, repo):
        assert repo.append_history(_entry("t1")) is True
        assert repo.append_history(_entry("t1")) is False
        assert [e.tournament_id for e in repo.iter_history()] == ["t1"]
        assert repo.has_history("t1")
        assert not repo.has_history("t2")

    def test_history_newest_first(self, repo):
        for i, tid in enumerate(["t1", "t2", "t3"]):
            repo.append_history(_entry(tid, i))
        assert [e.tournament_id for e in repo.iter_history()] == ["t3", "t2", "t1"]

    def test_stats_default_and_round_trip(self, repo):
        assert repo.load_stats() == {}
        doc = {"owners": {"p0": {"matches_won": 2}}, "applied": ["t1"]}
        repo.save_stats(doc)
        assert repo.load_stats() == doc

    def test_loaded_stats_are_a_copy(self, repo):
        repo.save_stats({"owners": {}, "applied": []})
        repo.load_stats()["applied"].append("x")
        assert repo.load_stats()["applied"] == []


class TestJsonFileRepository:
    def test_survives_restart(self, tmp_path):
        root = tmp_path / "data"
        t = _tournament()
        first = JsonFileRepository(root)
        first.save_tournament(t)
        first.append_history(_entry(t.id))
        first.save_stats({"owners": {}, "applied": [t.id]})

        second = JsonFileRepository(root)
        assert second.load_tournament(t.id).name == "Cup"
        assert [e.tournament_id for e in second.iter_history()] == [t.id]
        assert second.load_stats()["applied"] == [t.id]

    def test_layout(self, tmp_path):
        repo = JsonFileRepository(tmp_path)
        t = _tournament()
        repo.save_tournament(t)
        repo.append_history(_entry("t1"))
        assert (tmp_path / "tournaments" / f"{t.id}.json").exists()
        line = (tmp_path / "history.jsonl").read_text().strip()
        assert json.loads(line)["tournament_id"] == "t1"

    def test_no_tmp_files_left(self, tmp_path):
        repo = JsonFileRepository(tmp_path)
        repo.save_tournament(_tournament())
        repo.save_stats({"owners": {}})
        assert not list(tmp_path.rglob("*.tmp"))

    def test_torn_history_line_skipped(self, tmp_path):
        repo = JsonFileRepository(tmp_path)
        repo.append_history(_entry("t1"))
        with open(tmp_path / "history.jsonl", "a") as f:
            f.write('{"tournament_id": "t2", "na')
        assert [e.tournament_id for e in repo.iter_history()] == ["t1"]

    def test_corrupt_tournament_file(self, tmp_path):
        repo = JsonFileRepository(tmp_path)
        (tmp_path / "tournaments" / "bad.json").write_text("{not json")
        with pytest.raises(PersistenceError):
            repo.load_tournament("bad")

    def test_unwritable_root(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(PersistenceError):
            JsonFileRepository(blocker / "data")
