"""Roster member catalog — base stats and types for every member id.

Teams only carry member ids; the catalog turns them into battle stats.
A built-in catalog covers the default demo teams and AI opponents; config
files may replace or extend it.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["MemberSpec", "DEFAULT_CATALOG", "catalog_from_dict"]


@dataclass(frozen=True)
class MemberSpec:
    id: str
    name: str
    types: tuple[str, ...]
    hp: int
    attack: int
    defense: int
    special_attack: int
    special_defense: int
    speed: int

    @property
    def power_level(self) -> int:
        """Sum of base stats, used for opponent team building."""
        return (
            self.hp + self.attack + self.defense
            + self.special_attack + self.special_defense + self.speed
        )

    @property
    def offense(self) -> int:
        return self.attack + self.special_attack

    @property
    def bulk(self) -> int:
        return self.hp + self.defense + self.special_defense


def _spec(id_, name, types, hp, atk, dfn, spa, spd, spe) -> MemberSpec:
    return MemberSpec(id_, name, tuple(types), hp, atk, dfn, spa, spd, spe)


_BUILTIN = [
    _spec("bulbasaur", "Bulbasaur", ["grass", "poison"], 45, 49, 49, 65, 65, 45),
    _spec("charmander", "Charmander", ["fire"], 39, 52, 43, 60, 50, 65),
    _spec("squirtle", "Squirtle", ["water"], 44, 48, 65, 50, 64, 43),
    _spec("pikachu", "Pikachu", ["electric"], 35, 55, 40, 50, 50, 90),
    _spec("rattata", "Rattata", ["normal"], 30, 56, 35, 25, 35, 72),
    _spec("pidgeot", "Pidgeot", ["normal", "flying"], 83, 80, 75, 70, 70, 101),
    _spec("geodude", "Geodude", ["rock", "ground"], 40, 80, 100, 30, 30, 20),
    _spec("onix", "Onix", ["rock", "ground"], 35, 45, 160, 30, 45, 70),
    _spec("psyduck", "Psyduck", ["water"], 50, 52, 48, 65, 50, 55),
    _spec("machamp", "Machamp", ["fighting"], 90, 130, 80, 65, 85, 55),
    _spec("alakazam", "Alakazam", ["psychic"], 55, 50, 45, 135, 95, 120),
    _spec("gengar", "Gengar", ["ghost", "poison"], 60, 65, 60, 130, 75, 110),
    _spec("starmie", "Starmie", ["water", "psychic"], 60, 75, 85, 100, 85, 115),
    _spec("jolteon", "Jolteon", ["electric"], 65, 65, 60, 110, 95, 130),
    _spec("arcanine", "Arcanine", ["fire"], 90, 110, 80, 100, 80, 95),
    _spec("gyarados", "Gyarados", ["water", "flying"], 95, 125, 79, 60, 100, 81),
    _spec("lapras", "Lapras", ["water", "ice"], 130, 85, 80, 85, 95, 60),
    _spec("snorlax", "Snorlax", ["normal"], 160, 110, 65, 65, 110, 30),
    _spec("dragonite", "Dragonite", ["dragon", "flying"], 91, 134, 95, 100, 100, 80),
    _spec("mewtwo", "Mewtwo", ["psychic"], 106, 110, 90, 154, 90, 130),
]

DEFAULT_CATALOG: dict[str, MemberSpec] = {m.id: m for m in _BUILTIN}


def catalog_from_dict(raw: dict[str, dict]) -> dict[str, MemberSpec]:
    """Build a catalog from the ``catalog:`` section of a config file."""
    catalog: dict[str, MemberSpec] = {}
    for member_id, m in raw.items():
        catalog[member_id] = MemberSpec(
            id=member_id,
            name=m.get("name", member_id.title()),
            types=tuple(m.get("types", ["normal"])),
            hp=m["hp"],
            attack=m["attack"],
            defense=m["defense"],
            special_attack=m.get("special_attack", m["attack"]),
            special_defense=m.get("special_defense", m["defense"]),
            speed=m["speed"],
        )
    return catalog
