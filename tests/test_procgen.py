"""Tests for adventure_engine.procgen: monsters, items and affixes."""

import random
from unittest.mock import patch

import pytest

from adventure_engine.config import EngineConfig, HpBand
from adventure_engine.models import RARITIES, Item, Quest
from adventure_engine.procgen import ItemGenerator, MonsterGenerator
from adventure_engine.procgen.monsters import add_damage_bonus, band_for_level, eligible_monsters
from adventure_engine.procgen.tables import MONSTERS, find_monster
from adventure_engine.variety import VarietyTracker


def _combat_quest(anchor: str) -> Quest:
    return Quest(
        quest_type="combat",
        goal_text=f"Defeat the {anchor}",
        total_encounters=6,
        current_encounter_index=6,
        boss_anchor=anchor,
    )


def _no_affix_config() -> EngineConfig:
    return EngineConfig(
        monster_affix_chance={"easy": 0.0, "normal": 0.0, "hard": 0.0, "boss": 0.0},
        affix_level_bonus=0.0,
    )


# ---------------------------------------------------------------------------
# Dice and bands
# ---------------------------------------------------------------------------

class TestDamageBonus:
    def test_adds_flat_bonus(self) -> None:
        assert add_damage_bonus("1d6", 3) == "1d6+3"

    def test_merges_existing_bonus(self) -> None:
        assert add_damage_bonus("1d8+2", 3) == "1d8+5"

    def test_zero_bonus_unchanged(self) -> None:
        assert add_damage_bonus("2d6", 0) == "2d6"

    def test_negative_result(self) -> None:
        assert add_damage_bonus("1d4", -1) == "1d4-1"

    def test_unparseable_passthrough(self) -> None:
        assert add_damage_bonus("special", 2) == "special"


class TestBands:
    def test_low_level_band(self, config) -> None:
        pool = eligible_monsters(config, 1)
        assert pool
        assert all(0 < m.base_hp <= 20 for m in pool)

    def test_band_for_high_level_is_open_ended(self, config) -> None:
        band = band_for_level(config, 40)
        assert band.max_hp is None
        assert all(m.base_hp > 80 for m in eligible_monsters(config, 40))

    def test_empty_band_widens(self) -> None:
        config = EngineConfig(hp_bands=[HpBand(max_level=None, min_hp=300, max_hp=400)])
        pool = eligible_monsters(config, 1)
        assert pool
        assert max(m.base_hp for m in MONSTERS) in {m.base_hp for m in pool}

    def test_find_monster_case_insensitive(self) -> None:
        assert find_monster("death knight").name == "Death Knight"
        assert find_monster("Snark") is None


# ---------------------------------------------------------------------------
# MonsterGenerator
# ---------------------------------------------------------------------------

class TestMonsterGenerator:
    def test_boss_keeps_anchor_name(self, config) -> None:
        for seed in range(30):
            tracker = VarietyTracker(config.variety_capacity)
            gen = MonsterGenerator(config, tracker, random.Random(seed))
            monster = gen.generate_monster(5, "boss", _combat_quest("Orc"))
            assert monster.base_name == "Orc"
            assert monster.prefix is not None
            assert monster.suffix is not None
            assert monster.full_name.startswith(monster.prefix.name)
            assert "Orc" in monster.full_name

    def test_unknown_anchor_borrows_stats(self, config, tracker) -> None:
        gen = MonsterGenerator(config, tracker, random.Random(1))
        monster = gen.generate_monster(2, "boss", _combat_quest("Goblin Chief"))
        assert monster.base_name == "Goblin Chief"

    def test_non_boss_ignores_anchor(self, tracker) -> None:
        config = _no_affix_config()
        gen = MonsterGenerator(config, tracker, random.Random(2))
        names = {
            gen.generate_monster(1, "normal", _combat_quest("Death Knight")).base_name
            for _ in range(10)
        }
        assert "Death Knight" not in names

    def test_scaling_without_affixes(self, tracker) -> None:
        gen = MonsterGenerator(_no_affix_config(), tracker, random.Random(0))
        level_one = gen.generate_monster(1, "boss", _combat_quest("Orc"))
        assert level_one.hp == 15
        assert level_one.damage == "1d8+2"
        assert level_one.defense == 13
        assert len(level_one.abilities) == 1

        level_five = gen.generate_monster(5, "boss", _combat_quest("Orc"))
        assert level_five.hp == 24
        assert level_five.defense == 14
        assert len(level_five.abilities) == 2

    def test_ability_count_capped(self, config, tracker) -> None:
        gen = MonsterGenerator(config, tracker, random.Random(4))
        monster = gen.generate_monster(20, "hard")
        assert len(monster.abilities) == 3
        assert len(set(monster.abilities)) == 3

    def test_affixes_recorded(self, config, tracker) -> None:
        gen = MonsterGenerator(config, tracker, random.Random(5))
        monster = gen.generate_monster(5, "boss", _combat_quest("Orc"))
        assert tracker.ring("monster_prefix").recent(1) == [monster.prefix.name]
        assert tracker.ring("monster_suffix").recent(1) == [monster.suffix.name]

    def test_consecutive_monsters_vary_prefix(self, config, tracker) -> None:
        gen = MonsterGenerator(config, tracker, random.Random(6))
        prefixes = [
            gen.generate_monster(5, "boss", _combat_quest("Orc")).prefix.name
            for _ in range(8)
        ]
        assert all(a != b for a, b in zip(prefixes, prefixes[1:]))

    def test_boss_anchor_from_band(self, config, tracker) -> None:
        gen = MonsterGenerator(config, tracker, random.Random(7))
        anchor = gen.generate_boss_anchor(1)
        assert find_monster(anchor).base_hp <= 20


# ---------------------------------------------------------------------------
# ItemGenerator
# ---------------------------------------------------------------------------

class TestItemGenerator:
    def test_rarity_in_table(self, config, tracker) -> None:
        gen = ItemGenerator(config, tracker, random.Random(8))
        for difficulty in ("easy", "normal", "hard", "boss"):
            assert gen.roll_rarity(difficulty) in RARITIES

    def test_rarity_roll_thresholds(self, config, tracker) -> None:
        gen = ItemGenerator(config, tracker, random.Random(0))
        with patch.object(gen._rng, "randint", return_value=1):
            assert gen.roll_rarity("boss") == "legendary"
        with patch.object(gen._rng, "randint", return_value=100):
            assert gen.roll_rarity("boss") == "common"
        with patch.object(gen._rng, "randint", return_value=30):
            assert gen.roll_rarity("hard") == "uncommon"

    def test_legendary_has_two_affixes(self, config, tracker) -> None:
        gen = ItemGenerator(config, tracker, random.Random(9))
        assert gen.affix_count("legendary") == 2

    @pytest.mark.parametrize("seed", range(10))
    def test_base_bonus_by_type(self, config, seed) -> None:
        tracker = VarietyTracker(config.variety_capacity)
        item = ItemGenerator(config, tracker, random.Random(seed)).generate_item("normal", 8)
        affixes = [a for a in (item.prefix, item.suffix) if a is not None]
        affix_damage = sum(a.damage_bonus for a in affixes)
        affix_defense = sum(a.defense_bonus for a in affixes)
        if item.item_type == "weapon":
            assert item.damage_bonus == 3 + affix_damage
            assert item.defense_bonus == affix_defense
        elif item.item_type == "armor":
            assert item.defense_bonus == 3 + affix_defense
        else:
            assert item.damage_bonus == affix_damage
        assert item.description.endswith(f"{item.base_name.lower()}.")

    def test_loot_skips_duplicates(self, config, tracker) -> None:
        gen = ItemGenerator(config, tracker, random.Random(10))
        same = Item(base_name="Sword", item_type="weapon", rarity="common")
        with patch.object(gen, "generate_item", return_value=same):
            loot = gen.generate_loot(3, "normal", 1)
        assert [i.full_name for i in loot] == ["Sword"]

    def test_loot_skips_owned(self, config, tracker) -> None:
        gen = ItemGenerator(config, tracker, random.Random(11))
        same = Item(base_name="Ring", item_type="accessory", rarity="common")
        with patch.object(gen, "generate_item", return_value=same):
            assert gen.generate_loot(2, "normal", 1, existing_names={"Ring"}) == []
