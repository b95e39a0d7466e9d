"""SeedManager — deterministic, HMAC-derived RNG per tournament.

Seeds are derived via HMAC-SHA256 so adding a tournament or changing one
purpose's draws never shifts seeds for any other.
"""

import hashlib
import hmac
import random


class SeedManager:
    """Produces deterministic, isolated Random instances."""

    def __init__(self, base_seed: int):
        self._base_seed = base_seed

    @property
    def base_seed(self) -> int:
        return self._base_seed

    def derive(self, scope: str, purpose: str, index: int = 0) -> int:
        """Derive a seed via HMAC. Same inputs always produce the same seed."""
        key = self._base_seed.to_bytes(8, byteorder="big", signed=True)
        msg = f"{scope}:{purpose}:{index}".encode("utf-8")
        digest = hmac.new(key, msg, hashlib.sha256).digest()
        return int.from_bytes(digest[:8], byteorder="big")

    def get_rng(self, seed: int) -> random.Random:
        """Return an isolated Random instance. Never touches global state."""
        return random.Random(seed)
