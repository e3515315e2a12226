"""Monster generation: level-banded base pick, scaling and affixes."""

from __future__ import annotations

import logging
import random
import re

from adventure_engine.config import EngineConfig, HpBand
from adventure_engine.models import Affix, Monster, Quest
from adventure_engine.variety import VarietyTracker

from .affixes import choose_affix
from .tables import (
    MONSTER_ABILITIES,
    MONSTER_PREFIXES,
    MONSTER_SUFFIXES,
    MONSTERS,
    BaseMonster,
    find_monster,
)

logger = logging.getLogger(__name__)

_DICE_RE = re.compile(r"^\s*(\d+d\d+)\s*(?:([+-])\s*(\d+))?\s*$")
_WIDEN_STEP = 10


def add_damage_bonus(dice: str, bonus: int) -> str:
    """Fold a flat bonus into a dice string: 1d6 + 3 -> 1d6+3, 1d8+2 + 3 -> 1d8+5."""
    match = _DICE_RE.match(dice)
    if match is None:
        return dice
    base, sign, amount = match.groups()
    flat = int(amount or 0) * (-1 if sign == "-" else 1) + bonus
    if flat > 0:
        return f"{base}+{flat}"
    if flat < 0:
        return f"{base}{flat}"
    return base


def band_for_level(config: EngineConfig, level: int) -> HpBand:
    for band in config.hp_bands:
        if band.max_level is None or level <= band.max_level:
            return band
    return config.hp_bands[-1]


def eligible_monsters(config: EngineConfig, level: int) -> list[BaseMonster]:
    """Monsters whose base HP falls in the level's band.

    An empty band is widened outward in both directions until at least one
    monster qualifies, so the result is never empty.
    """
    band = band_for_level(config, level)
    low = band.min_hp
    high = band.max_hp
    while True:
        pool = [
            m for m in MONSTERS
            if m.base_hp > low and (high is None or m.base_hp <= high)
        ]
        if pool:
            return pool
        logger.info("HP band (%s, %s] empty at level %d, widening", low, high, level)
        low -= _WIDEN_STEP
        if high is not None:
            high += _WIDEN_STEP


class MonsterGenerator:
    def __init__(self, config: EngineConfig, tracker: VarietyTracker, rng: random.Random) -> None:
        self._config = config
        self._tracker = tracker
        self._rng = rng

    def generate_boss_anchor(self, level: int) -> str:
        """Commit the base name a combat quest's final opponent will carry."""
        pool = eligible_monsters(self._config, level)
        return self._rng.choice(pool).name

    def generate_monster(self, level: int, difficulty: str, quest: Quest | None = None) -> Monster:
        level = max(1, level)
        base = self._pick_base(level, difficulty, quest)

        affixes = self._roll_affixes(level, difficulty)
        prefix = next((a for a in affixes if a.slot == "prefix"), None)
        suffix = next((a for a in affixes if a.slot == "suffix"), None)

        hp = base.base_hp * (1 + 0.15 * (level - 1))
        defense = base.defense + level // 3
        damage_bonus = 0
        for affix in affixes:
            hp *= affix.hp_multiplier
            defense += affix.defense_bonus
            damage_bonus += affix.damage_bonus

        ability_count = min(1 + level // 4, 3)
        monster = Monster(
            base_name=base.name,
            prefix=prefix,
            suffix=suffix,
            hp=max(1, round(hp)),
            damage=add_damage_bonus(base.damage, damage_bonus),
            defense=defense,
            abilities=self._rng.sample(MONSTER_ABILITIES, ability_count),
            description=base.description,
        )
        logger.debug("monster %s hp=%d lvl=%d diff=%s", monster.full_name, monster.hp, level, difficulty)
        return monster

    # ------------------------------------------------------------------

    def _pick_base(self, level: int, difficulty: str, quest: Quest | None) -> BaseMonster:
        pool = eligible_monsters(self._config, level)
        anchor = quest.boss_anchor if quest is not None else None
        if difficulty == "boss" and quest is not None and quest.quest_type == "combat" and anchor:
            known = find_monster(anchor)
            if known is not None:
                return known
            # Anchor named in the goal but absent from the table: borrow band stats.
            stats = self._rng.choice(pool)
            return stats._replace(name=anchor)
        return self._rng.choice(pool)

    def _affix_chance(self, level: int, difficulty: str) -> float:
        base = self._config.monster_affix_chance.get(difficulty, 0.5)
        if difficulty == "boss":
            return base
        bonus = min(level * self._config.affix_level_bonus, self._config.affix_level_bonus_cap)
        return min(base + bonus, self._config.affix_chance_cap)

    def _roll_affixes(self, level: int, difficulty: str) -> list[Affix]:
        if self._rng.random() >= self._affix_chance(level, difficulty):
            return []

        count = 1
        odds = self._config.monster_double_affix.get(difficulty)
        if odds is not None and level >= odds.min_level and self._rng.random() < odds.chance:
            count = 2

        attempts = self._config.affix_reroll_attempts
        if count == 2:
            return [
                choose_affix(self._rng, self._tracker, "monster_prefix", MONSTER_PREFIXES, attempts),
                choose_affix(self._rng, self._tracker, "monster_suffix", MONSTER_SUFFIXES, attempts),
            ]
        if self._rng.random() < 0.5:
            return [choose_affix(self._rng, self._tracker, "monster_prefix", MONSTER_PREFIXES, attempts)]
        return [choose_affix(self._rng, self._tracker, "monster_suffix", MONSTER_SUFFIXES, attempts)]
