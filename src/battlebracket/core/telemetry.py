"""TelemetryLogger — JSONL battle logging.

One logger per match. Writes one JSONL line per battle turn plus a match
summary as the final line. All entries include schema version and match ID.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

import battlebracket

_SCHEMA_VERSION = "1.0.0"


@dataclass
class BattleTurnEntry:
    """One turn of battle telemetry."""

    turn_number: int
    mode: str  # "player" | "simulation"
    actions: dict[str, dict]
    events: list[str]
    damage: dict[str, int]
    state_snapshot: dict
    engine_version: str


class TelemetryLogger:
    """Writes JSONL telemetry for a single match."""

    def __init__(self, output_dir: Path, match_id: str, tournament_context=None):
        self._output_dir = Path(output_dir)
        self._match_id = match_id
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._output_dir / f"{match_id}.jsonl"
        self._tournament_context = tournament_context or {}

    @property
    def file_path(self) -> Path:
        return self._file_path

    def log_turn(self, entry: BattleTurnEntry) -> None:
        record = asdict(entry)
        record["schema_version"] = _SCHEMA_VERSION
        record["match_id"] = self._match_id
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._append(record)

    def finalize_match(
        self,
        winner_id: str,
        turns: int,
        forfeited_by: str | None = None,
        extra: dict | None = None,
    ) -> None:
        record = {
            "schema_version": _SCHEMA_VERSION,
            "record_type": "match_summary",
            "match_id": self._match_id,
            "winner_id": winner_id,
            "forfeited_by": forfeited_by,
            "turns": turns,
            "engine_version": battlebracket.__version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tournament_id": self._tournament_context.get("tournament_id"),
            "tournament_name": self._tournament_context.get("tournament_name"),
            "round": self._tournament_context.get("round"),
        }
        if extra:
            record.update(extra)
        self._append(record)

    def _append(self, record: dict) -> None:
        with open(self._file_path, "a") as f:
            f.write(json.dumps(record, default=str) + "\n")
