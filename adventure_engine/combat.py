"""Deterministic combat resolution against a pending opponent.

Outcomes are decided here from the injected RNG; the narrative generator
only describes what already happened.
"""

from __future__ import annotations

import random
import re

from pydantic import BaseModel, Field

from adventure_engine.models import Monster

ATTACK_RE = re.compile(r"\b(attack|fight|engage|strike|hit|charge)\b", re.IGNORECASE)
FLEE_RE = re.compile(r"\b(flee|run away|escape|retreat)\b", re.IGNORECASE)

PLAYER_INITIATIVE = 0.7
PLAYER_DAMAGE = (5, 15)
MONSTER_DAMAGE = (2, 8)
DISTRACTED_DAMAGE = (3, 10)
FLEE_HIT_CHANCE = 0.5


class CombatRound(BaseModel):
    """What happened in one exchange, already applied to the monster."""

    monster: Monster
    damage_dealt: int = 0
    damage_taken: int = 0
    monster_struck_first: bool = False
    defeated: bool = False
    fled: bool = False
    log: list[str] = Field(default_factory=list)


def is_attack(action: str) -> bool:
    return ATTACK_RE.search(action) is not None


def is_flee(action: str) -> bool:
    return FLEE_RE.search(action) is not None


def resolve_attack(rng: random.Random, monster: Monster, engaged: bool) -> CombatRound:
    """One attack exchange; the first exchange of a fight rolls initiative."""
    name = monster.full_name
    result = CombatRound(monster=monster)

    if not engaged and rng.random() >= PLAYER_INITIATIVE:
        hit = rng.randint(*MONSTER_DAMAGE)
        result.damage_taken += hit
        result.monster_struck_first = True
        result.log.append(f"The {name} strikes first for {hit} damage.")

    dealt = rng.randint(*PLAYER_DAMAGE)
    hp = monster.hp - dealt
    result.damage_dealt = dealt
    result.monster = monster.model_copy(update={"hp": max(0, hp)})
    result.log.append(f"You deal {dealt} damage to the {name}.")

    if hp <= 0:
        result.defeated = True
        result.log.append(f"The {name} falls.")
        return result

    if not result.monster_struck_first:
        hit = rng.randint(*MONSTER_DAMAGE)
        result.damage_taken += hit
        result.log.append(f"The {name} hits back for {hit} damage.")
    return result


def resolve_flee(rng: random.Random, monster: Monster) -> CombatRound:
    result = CombatRound(monster=monster, fled=True)
    if rng.random() < FLEE_HIT_CHANCE:
        hit = rng.randint(*MONSTER_DAMAGE)
        result.damage_taken = hit
        result.log.append(f"The {monster.full_name} catches you for {hit} damage as you flee.")
    else:
        result.log.append(f"You slip away from the {monster.full_name}.")
    return result


def resolve_distracted(rng: random.Random, monster: Monster) -> CombatRound:
    hit = rng.randint(*DISTRACTED_DAMAGE)
    return CombatRound(
        monster=monster,
        damage_taken=hit,
        log=[f"The {monster.full_name} attacks while you are distracted for {hit} damage."],
    )
