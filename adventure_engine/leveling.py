"""Experience curve and level-ups."""

from __future__ import annotations

import logging
import math
import random

from adventure_engine.models import Character

logger = logging.getLogger(__name__)

BASE_XP = 100.0
EXPONENT = 1.5


def xp_for_level(level: int) -> int:
    """Minimum XP needed to reach ``level``: 150, 225, 338, ..."""
    if level <= 1:
        return 0
    return math.ceil(BASE_XP * EXPONENT ** (level - 1))


def level_for_xp(xp: int) -> int:
    level = 1
    while xp >= xp_for_level(level + 1):
        level += 1
    return level


def apply_xp(character: Character, gain: int, rng: random.Random) -> tuple[Character, int]:
    """Add ``gain`` XP; each level gained raises max HP by 1d8 and heals that much."""
    xp = max(0, character.xp + gain)
    new_level = max(character.level, level_for_xp(xp))
    gained = new_level - character.level
    hp_gain = sum(rng.randint(1, 8) for _ in range(gained))
    if gained:
        logger.info("%s reached level %d (+%d max hp)", character.name, new_level, hp_gain)
    updated = character.model_copy(update={
        "xp": xp,
        "level": new_level,
        "max_hp": character.max_hp + hp_gain,
        "hp": character.hp + hp_gain,
    })
    return updated, gained
