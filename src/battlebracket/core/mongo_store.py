"""MongoRepository — MongoDB-backed persistence.

Collections:
    tournaments   one document per tournament, _id = tournament id
    history       append-only, unique index on tournament_id
    stats         single document, _id = "stats"

Unlike a fire-and-forget sink, every pymongo failure surfaces as a
PersistenceError so the caller can retry the (idempotent) write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterator

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from battlebracket.core.persistence import Repository
from battlebracket.errors import PersistenceError
from battlebracket.models import HistoryEntry, Tournament

logger = logging.getLogger(__name__)

_STATS_ID = "stats"


class MongoRepository(Repository):
    """Repository over a MongoDB database."""

    def __init__(self, uri: str, db_name: str, *, timeout_ms: int = 5000) -> None:
        try:
            self._client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
            self._client.admin.command("ping")
            self._db = self._client[db_name]
            self._ensure_indexes()
        except PyMongoError as exc:
            raise PersistenceError(f"MongoDB connection failed: {exc}", exc) from exc
        logger.info("Connected to MongoDB database %s", db_name)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> MongoRepository:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def save_tournament(self, tournament: Tournament) -> None:
        doc = tournament.to_dict()
        doc["_id"] = tournament.id
        try:
            self._db["tournaments"].replace_one({"_id": tournament.id}, doc, upsert=True)
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot save tournament {tournament.id}: {exc}", exc) from exc

    def load_tournament(self, tournament_id: str) -> Tournament | None:
        try:
            doc = self._db["tournaments"].find_one({"_id": tournament_id})
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot load tournament {tournament_id}: {exc}", exc) from exc
        if doc is None:
            return None
        doc.pop("_id", None)
        return Tournament.from_dict(doc)

    def list_tournaments(self) -> list[str]:
        try:
            return [d["_id"] for d in self._db["tournaments"].find({}, {"_id": 1})]
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot list tournaments: {exc}", exc) from exc

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_history(self, entry: HistoryEntry) -> bool:
        doc = entry.to_dict()
        doc["_ingested_at"] = datetime.now(timezone.utc)
        try:
            self._db["history"].insert_one(doc)
        except DuplicateKeyError:
            return False
        except PyMongoError as exc:
            raise PersistenceError(
                f"Cannot append history for {entry.tournament_id}: {exc}", exc
            ) from exc
        return True

    def has_history(self, tournament_id: str) -> bool:
        try:
            return self._db["history"].find_one({"tournament_id": tournament_id}) is not None
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot query history: {exc}", exc) from exc

    def iter_history(self) -> Iterator[HistoryEntry]:
        try:
            cursor = self._db["history"].find(
                {}, {"_id": 0, "_ingested_at": 0}
            ).sort("_ingested_at", DESCENDING)
            for doc in cursor:
                yield HistoryEntry.from_dict(doc)
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot read history: {exc}", exc) from exc

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def load_stats(self) -> dict:
        try:
            doc = self._db["stats"].find_one({"_id": _STATS_ID})
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot load stats: {exc}", exc) from exc
        if doc is None:
            return {}
        doc.pop("_id", None)
        return doc

    def save_stats(self, doc: dict) -> None:
        try:
            self._db["stats"].replace_one(
                {"_id": _STATS_ID}, {**doc, "_id": _STATS_ID}, upsert=True
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Cannot save stats: {exc}", exc) from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_indexes(self) -> None:
        self._db["history"].create_index(
            [("tournament_id", ASCENDING)], unique=True, name="uniq_tournament"
        )
        self._db["history"].create_index(
            [("_ingested_at", DESCENDING)], name="ingested_desc"
        )
