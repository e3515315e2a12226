"""Shared fixtures: a scripted generator and ready-made engine pieces."""

import random
from collections import defaultdict, deque

import pytest
from pydantic import BaseModel

from adventure_engine.config import EngineConfig
from adventure_engine.models import Character, GameState
from adventure_engine.pipeline import AdventureEngine
from adventure_engine.variety import VarietyTracker

DEFAULT_REPLIES = {
    "encounter": {"encounter_type": "exploration", "difficulty": "normal"},
    "narrative": {
        "narration": "You press on through the gloom.",
        "suggested_actions": ["Look around", "Move on"],
    },
    "npc": {"name": "Mira", "occupation": "merchant", "attitude": "friendly"},
    "quest": {"goal_text": "Defeat the goblin chief", "total_encounters": 6},
}


class ScriptedGenerator:
    """Generator stand-in: replies are queued per role.

    A queued reply may be a dict (validated against the requested schema),
    a model instance, or an exception to raise. An empty queue falls back to
    DEFAULT_REPLIES.
    """

    def __init__(self) -> None:
        self.replies: dict[str, deque] = defaultdict(deque)
        self.calls: list[tuple[str, str]] = []

    def queue(self, role: str, *replies) -> "ScriptedGenerator":
        self.replies[role].extend(replies)
        return self

    def prompts(self, role: str) -> list[str]:
        return [prompt for r, prompt in self.calls if r == role]

    async def generate(self, role, prompt, schema):
        self.calls.append((role, prompt))
        queue = self.replies[role]
        reply = queue.popleft() if queue else DEFAULT_REPLIES[role]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, BaseModel):
            return reply
        return schema.model_validate(reply)


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def tracker(config) -> VarietyTracker:
    return VarietyTracker(config.variety_capacity)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def state() -> GameState:
    return GameState(character=Character(name="Aria", hp=40, max_hp=40))


@pytest.fixture
def engine(generator, state, config) -> AdventureEngine:
    return AdventureEngine(generator=generator, state=state, config=config, rng=random.Random(7))
