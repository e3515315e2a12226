"""Item and loot generation."""

from __future__ import annotations

import logging
import random

from adventure_engine.config import EngineConfig
from adventure_engine.models import Affix, Item
from adventure_engine.variety import VarietyTracker

from .affixes import choose_affix
from .tables import ITEM_BASES, ITEM_PREFIXES, ITEM_SUFFIXES, ITEM_TYPE_WEIGHTS

logger = logging.getLogger(__name__)

_RARITY_WORDS = {
    "common": "A plain",
    "uncommon": "A well-made",
    "rare": "A finely crafted",
    "epic": "A remarkable",
    "legendary": "A legendary",
}


class ItemGenerator:
    def __init__(self, config: EngineConfig, tracker: VarietyTracker, rng: random.Random) -> None:
        self._config = config
        self._tracker = tracker
        self._rng = rng

    def roll_rarity(self, difficulty: str) -> str:
        rolls = self._config.item_rarity_rolls.get(difficulty) or self._config.item_rarity_rolls["normal"]
        roll = self._rng.randint(1, 100)
        for upper, rarity in rolls:
            if roll <= upper:
                return rarity
        return rolls[-1][1]

    def affix_count(self, rarity: str) -> int:
        odds = self._config.item_affix_odds[rarity]
        if self._rng.random() < odds.upgrade_chance:
            return odds.max_count
        return odds.min_count

    def generate_item(self, difficulty: str, level: int) -> Item:
        rarity = self.roll_rarity(difficulty)
        item_type = self._rng.choices(
            list(ITEM_TYPE_WEIGHTS), weights=list(ITEM_TYPE_WEIGHTS.values())
        )[0]
        base_name = self._rng.choice(ITEM_BASES[item_type])

        prefix: Affix | None = None
        suffix: Affix | None = None
        count = self.affix_count(rarity)
        attempts = self._config.affix_reroll_attempts
        if count >= 2:
            prefix = choose_affix(self._rng, self._tracker, "item_prefix", ITEM_PREFIXES, attempts)
            suffix = choose_affix(self._rng, self._tracker, "item_suffix", ITEM_SUFFIXES, attempts)
        elif count == 1:
            if self._rng.random() < 0.5:
                prefix = choose_affix(self._rng, self._tracker, "item_prefix", ITEM_PREFIXES, attempts)
            else:
                suffix = choose_affix(self._rng, self._tracker, "item_suffix", ITEM_SUFFIXES, attempts)

        # Base stat grows slowly with level so late loot stays relevant.
        base_bonus = 1 + level // 4
        damage = base_bonus if item_type == "weapon" else 0
        defense = base_bonus if item_type == "armor" else 0
        for affix in (prefix, suffix):
            if affix is not None:
                damage += affix.damage_bonus
                defense += affix.defense_bonus

        item = Item(
            base_name=base_name,
            prefix=prefix,
            suffix=suffix,
            item_type=item_type,
            rarity=rarity,
            description=f"{_RARITY_WORDS[rarity]} {base_name.lower()}.",
            damage_bonus=damage,
            defense_bonus=defense,
        )
        logger.debug("item %s (%s)", item.full_name, rarity)
        return item

    def generate_loot(
        self,
        count: int,
        difficulty: str,
        level: int,
        existing_names: set[str] | None = None,
    ) -> list[Item]:
        """Up to ``count`` items whose full names are not already owned or rolled."""
        seen = set(existing_names or ())
        loot: list[Item] = []
        for _ in range(count):
            item = self.generate_item(difficulty, level)
            if item.full_name in seen:
                logger.debug("duplicate loot %s skipped", item.full_name)
                continue
            seen.add(item.full_name)
            loot.append(item)
        return loot
