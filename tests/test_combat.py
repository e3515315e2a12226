"""Tests for combat resolution and leveling."""

import random
from unittest.mock import MagicMock

import pytest

from adventure_engine.combat import (
    is_attack,
    is_flee,
    resolve_attack,
    resolve_distracted,
    resolve_flee,
)
from adventure_engine.leveling import apply_xp, level_for_xp, xp_for_level
from adventure_engine.models import Character, Monster


@pytest.fixture
def goblin() -> Monster:
    return Monster(base_name="Goblin", hp=7, damage="1d6", defense=12)


def _scripted_rng(randoms: list[float], ints: list[int]) -> MagicMock:
    rng = MagicMock()
    rng.random.side_effect = randoms
    rng.randint.side_effect = ints
    return rng


# ---------------------------------------------------------------------------
# Intent detection
# ---------------------------------------------------------------------------

class TestIntent:
    @pytest.mark.parametrize("action", ["I attack the goblin", "Charge!", "fight it", "Strike hard"])
    def test_attack(self, action: str) -> None:
        assert is_attack(action)

    @pytest.mark.parametrize("action", ["I flee", "run away now", "Retreat to the door"])
    def test_flee(self, action: str) -> None:
        assert is_flee(action)

    def test_neither(self) -> None:
        assert not is_attack("I talk to the goblin")
        assert not is_flee("I talk to the goblin")

    def test_word_boundary(self) -> None:
        assert not is_attack("a hitherto unknown path")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class TestResolveAttack:
    def test_player_first_and_kill(self, goblin: Monster) -> None:
        rng = _scripted_rng([0.1], [9])
        result = resolve_attack(rng, goblin, engaged=False)
        assert result.defeated
        assert result.damage_dealt == 9
        assert result.damage_taken == 0
        assert result.monster.hp == 0
        assert result.log[-1] == "The Goblin falls."

    def test_monster_first_no_counter(self, goblin: Monster) -> None:
        big = goblin.model_copy(update={"hp": 40})
        rng = _scripted_rng([0.9], [4, 6])
        result = resolve_attack(rng, big, engaged=False)
        assert result.monster_struck_first
        assert result.damage_taken == 4
        assert result.monster.hp == 34
        assert not result.defeated
        assert len(result.log) == 2

    def test_engaged_skips_initiative(self, goblin: Monster) -> None:
        big = goblin.model_copy(update={"hp": 40})
        rng = _scripted_rng([], [5, 3])
        result = resolve_attack(rng, big, engaged=True)
        assert not result.monster_struck_first
        assert result.damage_taken == 3
        rng.random.assert_not_called()

    def test_original_monster_untouched(self, goblin: Monster) -> None:
        resolve_attack(random.Random(0), goblin, engaged=True)
        assert goblin.hp == 7


class TestFleeAndDistraction:
    def test_flee_hit(self, goblin: Monster) -> None:
        result = resolve_flee(_scripted_rng([0.2], [5]), goblin)
        assert result.fled
        assert result.damage_taken == 5

    def test_flee_clean(self, goblin: Monster) -> None:
        result = resolve_flee(_scripted_rng([0.8], []), goblin)
        assert result.fled
        assert result.damage_taken == 0
        assert "slip away" in result.log[0]

    def test_distracted(self, goblin: Monster) -> None:
        for seed in range(20):
            result = resolve_distracted(random.Random(seed), goblin)
            assert 3 <= result.damage_taken <= 10
            assert not result.defeated


# ---------------------------------------------------------------------------
# Leveling
# ---------------------------------------------------------------------------

class TestLeveling:
    def test_thresholds(self) -> None:
        assert xp_for_level(1) == 0
        assert xp_for_level(2) == 150
        assert xp_for_level(3) == 225
        assert xp_for_level(4) == 338

    def test_level_for_xp(self) -> None:
        assert level_for_xp(0) == 1
        assert level_for_xp(149) == 1
        assert level_for_xp(150) == 2
        assert level_for_xp(337) == 3
        assert level_for_xp(338) == 4

    def test_apply_xp_without_level(self) -> None:
        hero = Character(name="Aria")
        updated, gained = apply_xp(hero, 20, random.Random(0))
        assert gained == 0
        assert updated.xp == 20
        assert updated.max_hp == hero.max_hp

    def test_apply_xp_levels_up(self) -> None:
        hero = Character(name="Aria", xp=140, hp=5, max_hp=12)
        updated, gained = apply_xp(hero, 100, random.Random(0))
        assert gained == 2
        assert updated.level == 3
        hp_gain = updated.max_hp - 12
        assert 2 <= hp_gain <= 16
        assert updated.hp == 5 + hp_gain

    def test_level_never_drops(self) -> None:
        hero = Character(name="Aria", xp=10, level=3)
        updated, gained = apply_xp(hero, -50, random.Random(0))
        assert updated.xp == 0
        assert updated.level == 3
        assert gained == 0
