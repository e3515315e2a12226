"""Static generation tables: base monsters, affixes and item bases."""

from __future__ import annotations

import re
from typing import NamedTuple

from adventure_engine.models import Affix


class BaseMonster(NamedTuple):
    name: str
    category: str
    base_hp: int
    damage: str
    defense: int
    description: str


MONSTERS: tuple[BaseMonster, ...] = (
    # humanoid
    BaseMonster("Goblin", "humanoid", 7, "1d6", 12, "Small, green-skinned raiders"),
    BaseMonster("Kobold", "humanoid", 5, "1d4", 10, "Cowardly reptilian creatures"),
    BaseMonster("Orc", "humanoid", 15, "1d8+2", 13, "Brutish warriors"),
    BaseMonster("Bandit", "humanoid", 11, "1d6+1", 12, "Common thief"),
    BaseMonster("Cultist", "humanoid", 9, "1d6", 12, "Dark ritual follower"),
    BaseMonster("Gnoll", "humanoid", 22, "1d8+2", 15, "Hyena-headed raider"),
    BaseMonster("Bugbear", "humanoid", 27, "2d8+2", 16, "Hairy goblinoid"),
    BaseMonster("Assassin", "humanoid", 78, "1d6+4", 15, "Deadly killer"),
    BaseMonster("Berserker", "humanoid", 67, "1d12+3", 13, "Raging warrior"),
    # undead
    BaseMonster("Skeleton", "undead", 13, "1d6", 11, "Animated bones"),
    BaseMonster("Zombie", "undead", 22, "1d6+1", 8, "Shambling corpses"),
    BaseMonster("Ghoul", "undead", 22, "2d6+2", 12, "Flesh-eating corpse"),
    BaseMonster("Ghost", "undead", 45, "4d6", 11, "Spectral spirit"),
    BaseMonster("Mummy", "undead", 58, "2d6+3", 11, "Preserved corpse"),
    BaseMonster("Wraith", "undead", 67, "4d8+3", 13, "Life-draining shade"),
    BaseMonster("Lich", "undead", 135, "3d6", 17, "Undead sorcerer"),
    BaseMonster("Death Knight", "undead", 180, "3d8+5", 20, "Cursed warrior"),
    # beast
    BaseMonster("Giant Rat", "beast", 7, "1d4", 12, "Disease-carrying vermin"),
    BaseMonster("Wolf", "beast", 11, "1d6+1", 13, "Wild predator"),
    BaseMonster("Giant Spider", "beast", 26, "1d6", 14, "Venomous arachnid"),
    BaseMonster("Bear", "beast", 34, "1d8+4", 11, "Massive ursine hunter"),
    BaseMonster("Dire Wolf", "beast", 37, "2d6+3", 14, "Enormous predatory wolf"),
    # demon
    BaseMonster("Imp", "demon", 10, "1d4+1", 13, "Mischievous devil"),
    BaseMonster("Lemure", "demon", 13, "1d4", 7, "Mindless blob of evil"),
    BaseMonster("Hellhound", "demon", 45, "1d8+1", 12, "Fiery demonic dog"),
    BaseMonster("Succubus", "demon", 66, "1d6", 15, "Seductive fiend"),
    BaseMonster("Balor", "demon", 262, "3d8+8", 19, "Massive demon lord"),
    # elemental
    BaseMonster("Air Elemental", "elemental", 90, "2d8+2", 15, "Whirling wind"),
    BaseMonster("Fire Elemental", "elemental", 102, "2d6", 13, "Living flame"),
    BaseMonster("Earth Elemental", "elemental", 126, "2d8+5", 17, "Living stone"),
    # dragon
    BaseMonster("Pseudodragon", "dragon", 7, "1d4", 13, "Tiny dragon familiar"),
    BaseMonster("Drake", "dragon", 52, "1d10+2", 14, "Lesser dragon"),
    BaseMonster("Dragon Wyrmling", "dragon", 75, "1d10+3", 17, "Young dragon"),
    BaseMonster("Wyvern", "dragon", 110, "2d6+4", 13, "Two-legged dragon"),
    # giant
    BaseMonster("Ogre", "giant", 59, "2d8+4", 11, "Dim-witted brute"),
    BaseMonster("Troll", "giant", 84, "1d6+4", 15, "Regenerating monster"),
    BaseMonster("Hill Giant", "giant", 105, "3d8+5", 13, "Massive humanoid"),
    # monstrosity
    BaseMonster("Cockatrice", "monstrosity", 27, "1d4+1", 11, "Petrifying rooster"),
    BaseMonster("Harpy", "monstrosity", 38, "2d4+1", 11, "Singing bird-woman"),
    BaseMonster("Owlbear", "monstrosity", 59, "1d8+4", 13, "Owl-bear hybrid"),
    BaseMonster("Minotaur", "monstrosity", 76, "2d12+4", 14, "Bull-headed humanoid"),
    BaseMonster("Chimera", "monstrosity", 114, "2d6+4", 14, "Three-headed beast"),
    # construct
    BaseMonster("Animated Armor", "construct", 33, "1d6+2", 18, "Enchanted suit"),
    BaseMonster("Gargoyle", "construct", 52, "1d6+2", 15, "Living stone statue"),
    # plant
    BaseMonster("Awakened Shrub", "plant", 10, "1d4", 9, "Sentient bush"),
    BaseMonster("Myconid", "plant", 22, "1d4+1", 10, "Mushroom person"),
    BaseMonster("Treant", "plant", 138, "3d6+6", 16, "Ancient tree guardian"),
)

MONSTER_ABILITIES: tuple[str, ...] = (
    "Strike", "Bite", "Claw", "Smash", "Charge",
    "Roar", "Sweep", "Leap", "Tail Whip", "Gore",
)


def _monster_affix(name: str, slot: str, effect: str, hp: float, dmg: int, dfn: int) -> Affix:
    return Affix(
        name=name, slot=slot, effect=effect,
        hp_multiplier=hp, damage_bonus=dmg, defense_bonus=dfn,
    )


MONSTER_PREFIXES: tuple[Affix, ...] = (
    _monster_affix("Ancient", "prefix", "+50% HP, +2 defense", 1.5, 0, 2),
    _monster_affix("Enraged", "prefix", "+3 damage, +25% HP", 1.25, 3, 0),
    _monster_affix("Armored", "prefix", "+4 defense, +20% HP", 1.2, 0, 4),
    _monster_affix("Venomous", "prefix", "+2 damage, poison attacks", 1.0, 2, 0),
    _monster_affix("Corrupted", "prefix", "+30% HP, +2 damage", 1.3, 2, 0),
    _monster_affix("Frenzied", "prefix", "+4 damage, -1 defense", 1.0, 4, -1),
    _monster_affix("Spectral", "prefix", "+3 defense, ethereal", 1.0, 0, 3),
    _monster_affix("Titan", "prefix", "+70% HP, +3 damage", 1.7, 3, 0),
    _monster_affix("Plagued", "prefix", "+1 damage, disease aura", 1.0, 1, 0),
    _monster_affix("Crystalline", "prefix", "+5 defense, +10% HP", 1.1, 0, 5),
    _monster_affix("Shadow", "prefix", "+2 damage, stealth", 1.0, 2, 1),
    _monster_affix("Blazing", "prefix", "+3 damage, fire attacks", 1.0, 3, 0),
    _monster_affix("Frozen", "prefix", "+2 damage, ice attacks", 1.0, 2, 1),
    _monster_affix("Storm", "prefix", "+2 damage, lightning", 1.0, 2, 0),
    _monster_affix("Blood", "prefix", "+40% HP, lifesteal", 1.4, 1, 0),
    _monster_affix("Cursed", "prefix", "+30% HP, +1 damage", 1.3, 1, 0),
    _monster_affix("Radiant", "prefix", "+2 defense, holy light", 1.1, 1, 2),
    _monster_affix("Elder", "prefix", "+60% HP, +3 defense", 1.6, 0, 3),
)

MONSTER_SUFFIXES: tuple[Affix, ...] = (
    _monster_affix("of Rage", "suffix", "+4 damage", 1.0, 4, 0),
    _monster_affix("of Power", "suffix", "+3 damage, +20% HP", 1.2, 3, 0),
    _monster_affix("of Protection", "suffix", "+5 defense", 1.0, 0, 5),
    _monster_affix("of Destruction", "suffix", "+5 damage", 1.0, 5, 0),
    _monster_affix("of Eternity", "suffix", "+60% HP", 1.6, 0, 0),
    _monster_affix("of Shadows", "suffix", "+2 damage, stealth", 1.0, 2, 1),
    _monster_affix("of Flames", "suffix", "+3 damage, fire", 1.0, 3, 0),
    _monster_affix("of Frost", "suffix", "+2 damage, ice", 1.0, 2, 1),
    _monster_affix("of Lightning", "suffix", "+3 damage, shock", 1.0, 3, 0),
    _monster_affix("of Death", "suffix", "+4 damage, necrotic", 1.0, 4, 0),
    _monster_affix("of Life", "suffix", "+70% HP, regeneration", 1.7, 0, 0),
    _monster_affix("of Fury", "suffix", "+5 damage, -1 defense", 1.1, 5, -1),
    _monster_affix("of Steel", "suffix", "+6 defense", 1.0, 0, 6),
    _monster_affix("of Terror", "suffix", "+3 damage, fear", 1.2, 3, 0),
    _monster_affix("of Venom", "suffix", "+2 damage, poison", 1.0, 2, 0),
    _monster_affix("of Thorns", "suffix", "+3 defense, reflect", 1.0, 0, 3),
)


def _item_affix(name: str, slot: str, effect: str, dmg: int = 0, dfn: int = 0) -> Affix:
    return Affix(name=name, slot=slot, effect=effect, damage_bonus=dmg, defense_bonus=dfn)


ITEM_PREFIXES: tuple[Affix, ...] = (
    _item_affix("Sharp", "prefix", "+2 damage", dmg=2),
    _item_affix("Keen", "prefix", "+3 damage", dmg=3),
    _item_affix("Deadly", "prefix", "+4 damage", dmg=4),
    _item_affix("Brutal", "prefix", "+5 damage", dmg=5),
    _item_affix("Heavy", "prefix", "+2 damage, +1 defense", dmg=2, dfn=1),
    _item_affix("Reinforced", "prefix", "+2 defense", dfn=2),
    _item_affix("Sturdy", "prefix", "+3 defense", dfn=3),
    _item_affix("Fortified", "prefix", "+4 defense", dfn=4),
    _item_affix("Masterwork", "prefix", "+3 damage, +2 defense", dmg=3, dfn=2),
    _item_affix("Flaming", "prefix", "+3 damage, fire", dmg=3),
    _item_affix("Frozen", "prefix", "+2 damage, ice", dmg=2),
    _item_affix("Shocking", "prefix", "+3 damage, lightning", dmg=3),
    _item_affix("Blessed", "prefix", "+2 damage, +2 defense", dmg=2, dfn=2),
    _item_affix("Crystal", "prefix", "+3 defense, +1 damage", dmg=1, dfn=3),
)

ITEM_SUFFIXES: tuple[Affix, ...] = (
    _item_affix("of Power", "suffix", "+3 damage", dmg=3),
    _item_affix("of Might", "suffix", "+2 damage", dmg=2),
    _item_affix("of Strength", "suffix", "+2 damage, +1 defense", dmg=2, dfn=1),
    _item_affix("of Protection", "suffix", "+3 defense", dfn=3),
    _item_affix("of Defense", "suffix", "+2 defense", dfn=2),
    _item_affix("of Warding", "suffix", "+4 defense", dfn=4),
    _item_affix("of the Bear", "suffix", "+1 damage, +3 defense", dmg=1, dfn=3),
    _item_affix("of the Tiger", "suffix", "+3 damage, +1 defense", dmg=3, dfn=1),
    _item_affix("of the Lion", "suffix", "+2 damage, +2 defense", dmg=2, dfn=2),
    _item_affix("of the Dragon", "suffix", "+4 damage, +2 defense", dmg=4, dfn=2),
)

ITEM_BASES: dict[str, tuple[str, ...]] = {
    "weapon": ("Sword", "Axe", "Mace", "Dagger", "Spear", "Bow", "Staff", "Wand"),
    "armor": ("Chestplate", "Helmet", "Gauntlets", "Boots", "Shield", "Cloak", "Bracers"),
    "accessory": ("Ring", "Amulet", "Belt", "Talisman", "Pendant", "Brooch"),
}

ITEM_TYPE_WEIGHTS: dict[str, float] = {"weapon": 0.5, "armor": 0.3, "accessory": 0.2}

# Lower-cased words that identify a table monster in free text.
MONSTER_KEYWORDS: tuple[str, ...] = tuple(
    sorted({m.name.lower() for m in MONSTERS}, key=len, reverse=True)
)


def keyword_pattern(keyword: str) -> re.Pattern:
    """Whole-word match for ``keyword`` and its plural (wolves, harpies, succubi)."""
    forms = [re.escape(keyword) + "(?:s|es)?"]
    if keyword.endswith("f"):
        forms.append(re.escape(keyword[:-1]) + "ves")
    elif keyword.endswith("y"):
        forms.append(re.escape(keyword[:-1]) + "ies")
    elif keyword.endswith("us"):
        forms.append(re.escape(keyword[:-2]) + "i")
    return re.compile(r"\b(?:" + "|".join(forms) + r")\b", re.IGNORECASE)


MONSTER_PATTERNS: list[tuple[str, re.Pattern]] = [
    (keyword, keyword_pattern(keyword)) for keyword in MONSTER_KEYWORDS
]


def find_monster(name: str) -> BaseMonster | None:
    lowered = name.lower()
    for monster in MONSTERS:
        if monster.name.lower() == lowered:
            return monster
    return None
