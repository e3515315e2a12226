"""Reward calculator: XP, HP change, gold and loot drops per encounter."""

from __future__ import annotations

import random
from typing import NamedTuple

from adventure_engine.models import Rewards


class CombatTable(NamedTuple):
    xp_multiplier: tuple[float, float]
    gold: tuple[int, int]
    damage: tuple[int, int]
    loot_chance: float
    max_items: tuple[int, int]


COMBAT_TABLES: dict[str, CombatTable] = {
    "easy": CombatTable((0.5, 0.5), (5, 15), (1, 3), 0.3, (1, 1)),
    "normal": CombatTable((1.0, 1.0), (10, 30), (3, 8), 0.5, (1, 1)),
    "hard": CombatTable((1.5, 1.5), (20, 50), (5, 10), 0.7, (1, 1)),
    "boss": CombatTable((2.0, 3.0), (50, 200), (8, 20), 1.0, (1, 2)),
}

_TRAP_DAMAGE: list[tuple[int, tuple[int, int]]] = [
    (2, (1, 2)),
    (5, (2, 4)),
    (9, (3, 7)),
]
_TRAP_DAMAGE_MAX = (5, 10)

_QUIET_TYPES = ("exploration", "puzzle", "stealth", "chase")


def trap_damage(rng: random.Random, level: int) -> int:
    for max_level, (low, high) in _TRAP_DAMAGE:
        if level <= max_level:
            return rng.randint(low, high)
    return rng.randint(*_TRAP_DAMAGE_MAX)


def combat_rewards(rng: random.Random, difficulty: str, level: int) -> Rewards:
    table = COMBAT_TABLES.get(difficulty, COMBAT_TABLES["normal"])
    base_xp = 10 + level * 2
    multiplier = rng.uniform(*table.xp_multiplier)
    drops = rng.random() < table.loot_chance
    return Rewards(
        xp_gain=int(base_xp * multiplier),
        hp_delta=-rng.randint(*table.damage),
        gold_gain=rng.randint(*table.gold),
        should_drop_loot=drops,
        item_drop_count=rng.randint(*table.max_items) if drops else 0,
    )


def calculate_rewards(
    rng: random.Random,
    encounter_type: str,
    difficulty: str,
    level: int,
    hp: int,
    max_hp: int,
    quest_completed: bool = False,
) -> Rewards:
    """Rewards for one resolved encounter.

    Completing the quest pays the finale bonus once; later overtime
    encounters fall back to their ordinary table.
    """
    if quest_completed or encounter_type == "final":
        return Rewards(xp_gain=rng.randint(50, 100), gold_gain=rng.randint(20, 80))
    if encounter_type == "combat":
        return combat_rewards(rng, difficulty, level)
    if encounter_type == "trap":
        return Rewards(hp_delta=-trap_damage(rng, level))
    if encounter_type == "social":
        return Rewards(xp_gain=rng.randint(2, 5))
    if encounter_type in _QUIET_TYPES:
        return Rewards(hp_delta=1 if hp < max_hp else 0)
    return Rewards()
