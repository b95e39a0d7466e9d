"""Persistence collaborator — tournaments, history log and stats.

Repositories hold three things:
- a durable mapping tournament_id -> Tournament,
- an append-only HistoryEntry log (one entry per tournament id),
- a single stats document owned by the HistoryStore.

Every write is idempotent so a caller may repeat it after a
PersistenceError without re-validating game state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from battlebracket.errors import PersistenceError
from battlebracket.models import HistoryEntry, Tournament

logger = logging.getLogger(__name__)


class Repository(ABC):
    """Abstract storage backend."""

    @abstractmethod
    def save_tournament(self, tournament: Tournament) -> None:
        """Insert or replace a tournament."""

    @abstractmethod
    def load_tournament(self, tournament_id: str) -> Tournament | None:
        """Return the stored tournament or None."""

    @abstractmethod
    def list_tournaments(self) -> list[str]:
        """Return all stored tournament ids."""

    @abstractmethod
    def append_history(self, entry: HistoryEntry) -> bool:
        """Append an entry. Returns False if its tournament is already logged."""

    @abstractmethod
    def has_history(self, tournament_id: str) -> bool:
        """True if a HistoryEntry exists for the tournament."""

    @abstractmethod
    def iter_history(self) -> Iterator[HistoryEntry]:
        """Yield entries newest first."""

    @abstractmethod
    def load_stats(self) -> dict:
        """Return the stats document ({} when none saved)."""

    @abstractmethod
    def save_stats(self, doc: dict) -> None:
        """Replace the stats document."""

    def close(self) -> None:
        """Release backend resources."""


# ======================================================================
# MemoryRepository
# ======================================================================

class MemoryRepository(Repository):
    """Process-local storage, for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._tournaments: dict[str, dict] = {}
        self._history: list[HistoryEntry] = []
        self._stats: dict = {}
        self._lock = threading.Lock()

    def save_tournament(self, tournament: Tournament) -> None:
        with self._lock:
            self._tournaments[tournament.id] = tournament.to_dict()

    def load_tournament(self, tournament_id: str) -> Tournament | None:
        with self._lock:
            raw = self._tournaments.get(tournament_id)
        return Tournament.from_dict(raw) if raw else None

    def list_tournaments(self) -> list[str]:
        with self._lock:
            return list(self._tournaments)

    def append_history(self, entry: HistoryEntry) -> bool:
        with self._lock:
            if any(e.tournament_id == entry.tournament_id for e in self._history):
                return False
            self._history.append(entry)
            return True

    def has_history(self, tournament_id: str) -> bool:
        with self._lock:
            return any(e.tournament_id == tournament_id for e in self._history)

    def iter_history(self) -> Iterator[HistoryEntry]:
        with self._lock:
            snapshot = list(self._history)
        yield from reversed(snapshot)

    def load_stats(self) -> dict:
        with self._lock:
            return json.loads(json.dumps(self._stats))

    def save_stats(self, doc: dict) -> None:
        with self._lock:
            self._stats = json.loads(json.dumps(doc))


# ======================================================================
# JsonFileRepository
# ======================================================================

class JsonFileRepository(Repository):
    """Directory-backed storage that survives restarts.

    Layout:
        <root>/tournaments/<id>.json   one file per tournament, atomic replace
        <root>/history.jsonl           append-only log
        <root>/stats.json              atomic replace
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._tournament_dir = self.root / "tournaments"
        self._history_path = self.root / "history.jsonl"
        self._stats_path = self.root / "stats.json"
        self._lock = threading.Lock()
        try:
            self._tournament_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create data dir {self.root}: {exc}", exc) from exc

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def save_tournament(self, tournament: Tournament) -> None:
        path = self._tournament_dir / f"{tournament.id}.json"
        with self._lock:
            self._write_atomic(path, tournament.to_dict())

    def load_tournament(self, tournament_id: str) -> Tournament | None:
        path = self._tournament_dir / f"{tournament_id}.json"
        try:
            with open(path) as f:
                return Tournament.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {path}: {exc}", exc) from exc

    def list_tournaments(self) -> list[str]:
        return sorted(p.stem for p in self._tournament_dir.glob("*.json"))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_history(self, entry: HistoryEntry) -> bool:
        with self._lock:
            if self._has_history_unlocked(entry.tournament_id):
                return False
            try:
                with open(self._history_path, "a") as f:
                    f.write(json.dumps(entry.to_dict()) + "\n")
            except OSError as exc:
                raise PersistenceError(
                    f"Cannot append to {self._history_path}: {exc}", exc
                ) from exc
            return True

    def has_history(self, tournament_id: str) -> bool:
        with self._lock:
            return self._has_history_unlocked(tournament_id)

    def iter_history(self) -> Iterator[HistoryEntry]:
        with self._lock:
            records = self._read_history()
        for record in reversed(records):
            yield HistoryEntry.from_dict(record)

    def _has_history_unlocked(self, tournament_id: str) -> bool:
        return any(r["tournament_id"] == tournament_id for r in self._read_history())

    def _read_history(self) -> list[dict]:
        if not self._history_path.exists():
            return []
        records = []
        try:
            with open(self._history_path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(json.loads(line))
                    except json.JSONDecodeError:
                        # A torn final line from an interrupted append
                        logger.warning("Skipping corrupt history line in %s", self._history_path)
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self._history_path}: {exc}", exc) from exc
        return records

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def load_stats(self) -> dict:
        try:
            with open(self._stats_path) as f:
                return json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {self._stats_path}: {exc}", exc) from exc

    def save_stats(self, doc: dict) -> None:
        with self._lock:
            self._write_atomic(self._stats_path, doc)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write_atomic(self, path: Path, payload: dict) -> None:
        """Write JSON atomically (tmp + rename)."""
        try:
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        except OSError as exc:
            raise PersistenceError(f"Cannot write {path}: {exc}", exc) from exc
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistenceError(f"Cannot write {path}: {exc}", exc) from exc
