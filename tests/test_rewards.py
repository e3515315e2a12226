"""Tests for adventure_engine.procgen.rewards."""

import random

import pytest

from adventure_engine.procgen.rewards import (
    COMBAT_TABLES,
    calculate_rewards,
    combat_rewards,
    trap_damage,
)


class TestCombatRewards:
    @pytest.mark.parametrize("difficulty", ["easy", "normal", "hard", "boss"])
    def test_ranges(self, difficulty: str) -> None:
        table = COMBAT_TABLES[difficulty]
        for seed in range(50):
            rewards = combat_rewards(random.Random(seed), difficulty, 3)
            low, high = table.gold
            assert low <= rewards.gold_gain <= high
            dmg_low, dmg_high = table.damage
            assert -dmg_high <= rewards.hp_delta <= -dmg_low
            min_xp = int(16 * table.xp_multiplier[0])
            max_xp = int(16 * table.xp_multiplier[1])
            assert min_xp <= rewards.xp_gain <= max_xp
            if rewards.should_drop_loot:
                assert 1 <= rewards.item_drop_count <= table.max_items[1]
            else:
                assert rewards.item_drop_count == 0

    def test_boss_always_drops(self) -> None:
        for seed in range(20):
            assert combat_rewards(random.Random(seed), "boss", 1).should_drop_loot

    def test_normal_xp_formula(self) -> None:
        assert combat_rewards(random.Random(0), "normal", 5).xp_gain == 20

    def test_unknown_difficulty_uses_normal(self) -> None:
        rewards = combat_rewards(random.Random(0), "weird", 1)
        assert 10 <= rewards.gold_gain <= 30


class TestTrapDamage:
    @pytest.mark.parametrize("level,low,high", [(1, 1, 2), (4, 2, 4), (9, 3, 7), (15, 5, 10)])
    def test_scales_with_level(self, level: int, low: int, high: int) -> None:
        for seed in range(20):
            assert low <= trap_damage(random.Random(seed), level) <= high


class TestCalculateRewards:
    def test_quest_completion_bonus(self) -> None:
        rewards = calculate_rewards(random.Random(1), "exploration", "normal", 1, 10, 10, quest_completed=True)
        assert 50 <= rewards.xp_gain <= 100
        assert 20 <= rewards.gold_gain <= 80

    def test_final_encounter_bonus(self) -> None:
        rewards = calculate_rewards(random.Random(1), "final", "normal", 1, 10, 10)
        assert 50 <= rewards.xp_gain <= 100

    def test_trap_hurts(self) -> None:
        rewards = calculate_rewards(random.Random(2), "trap", "normal", 1, 10, 10)
        assert rewards.hp_delta in (-1, -2)
        assert rewards.xp_gain == 0

    def test_social_small_xp(self) -> None:
        rewards = calculate_rewards(random.Random(3), "social", "normal", 1, 10, 10)
        assert 2 <= rewards.xp_gain <= 5
        assert rewards.hp_delta == 0

    @pytest.mark.parametrize("encounter_type", ["exploration", "puzzle", "stealth", "chase"])
    def test_quiet_encounters_heal_when_hurt(self, encounter_type: str) -> None:
        assert calculate_rewards(random.Random(4), encounter_type, "easy", 1, 5, 10).hp_delta == 1
        assert calculate_rewards(random.Random(4), encounter_type, "easy", 1, 10, 10).hp_delta == 0

    def test_combat_uses_combat_table(self) -> None:
        rewards = calculate_rewards(random.Random(5), "combat", "hard", 2, 10, 10)
        assert 20 <= rewards.gold_gain <= 50
