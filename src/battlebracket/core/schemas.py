"""Schema loading and validation helpers."""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema


@lru_cache(maxsize=None)
def _load_cached(path: str) -> str:
    with open(path) as f:
        return f.read()


def load_schema(path: Path) -> dict:
    """Load a JSON Schema file and return as dict."""
    return json.loads(_load_cached(str(path)))


def schema_error(instance: object, schema: dict) -> str | None:
    """Return the first schema violation message, or None if valid."""
    try:
        jsonschema.validate(instance, schema)
    except jsonschema.ValidationError as e:
        return e.message
    return None
