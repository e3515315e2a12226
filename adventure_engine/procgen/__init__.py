"""Deterministic procedural generation: monsters, items, rewards."""

from .items import ItemGenerator
from .monsters import MonsterGenerator
from .rewards import calculate_rewards

__all__ = ["ItemGenerator", "MonsterGenerator", "calculate_rewards"]
