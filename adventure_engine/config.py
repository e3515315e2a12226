"""Engine configuration and runtime settings.

Two layers:

    EngineConfig: the tunable tables (session reset thresholds, prompt
                   budgets, affix odds, HP bands, loot rarity rolls). Defaults
                   live here; a JSON file named by ENGINE_CONFIG may override
                   any top-level key.
    Settings: process settings read from the environment / .env
                   (data dir, generator connection, RNG seed, debug).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class HpBand(BaseModel):
    """Monsters with min_hp < base_hp <= max_hp are eligible up to max_level."""

    max_level: int | None
    min_hp: int = 0
    max_hp: int | None = None


class DoubleAffixOdds(BaseModel):
    min_level: int
    chance: float


class ItemAffixOdds(BaseModel):
    """Rolls ``max_count`` affixes with ``upgrade_chance``, otherwise ``min_count``."""

    min_count: int
    max_count: int
    upgrade_chance: float


class EngineConfig(BaseModel):
    # Session lifecycle
    session_thresholds: dict[str, int] = Field(default_factory=lambda: {
        "encounter": 8,
        "narrative": 5,
        "npc": 6,
        "quest": 4,
    })
    default_session_threshold: int = 6
    global_reset_turns: int = 15
    session_transcript_chars: int = 160

    # Context budgets (characters)
    prompt_budgets: dict[str, int] = Field(default_factory=lambda: {
        "encounter": 420,
        "narrative": 1000,
        "npc": 300,
        "quest": 360,
    })
    default_prompt_budget: int = 600

    # Quest progression
    failure_window: int = 3
    social_turn_cap: int = 2
    recent_action_limit: int = 5
    max_input_chars: int = 500

    # Variety rings
    variety_capacity: dict[str, int] = Field(default_factory=lambda: {
        "encounter_types": 5,
        "quest_types": 5,
        "monster_prefix": 10,
        "monster_suffix": 10,
        "item_prefix": 10,
        "item_suffix": 10,
    })
    affix_reroll_attempts: int = 6

    # Monster generation
    hp_bands: list[HpBand] = Field(default_factory=lambda: [
        HpBand(max_level=3, min_hp=0, max_hp=20),
        HpBand(max_level=7, min_hp=15, max_hp=60),
        HpBand(max_level=12, min_hp=45, max_hp=120),
        HpBand(max_level=None, min_hp=80, max_hp=None),
    ])
    monster_affix_chance: dict[str, float] = Field(default_factory=lambda: {
        "easy": 0.3,
        "normal": 0.5,
        "hard": 0.7,
        "boss": 1.0,
    })
    affix_level_bonus: float = 0.05
    affix_level_bonus_cap: float = 0.3
    affix_chance_cap: float = 0.95
    monster_double_affix: dict[str, DoubleAffixOdds] = Field(default_factory=lambda: {
        "easy": DoubleAffixOdds(min_level=5, chance=0.3),
        "normal": DoubleAffixOdds(min_level=5, chance=0.5),
        "hard": DoubleAffixOdds(min_level=3, chance=0.7),
        "boss": DoubleAffixOdds(min_level=3, chance=1.0),
    })

    # Item generation: (roll upper bound out of 100, rarity), first match wins
    item_rarity_rolls: dict[str, list[tuple[int, str]]] = Field(default_factory=lambda: {
        "boss": [(5, "legendary"), (20, "epic"), (45, "rare"), (75, "uncommon"), (100, "common")],
        "hard": [(2, "legendary"), (10, "epic"), (25, "rare"), (55, "uncommon"), (100, "common")],
        "normal": [(1, "legendary"), (6, "epic"), (16, "rare"), (46, "uncommon"), (100, "common")],
        "easy": [(1, "legendary"), (4, "epic"), (12, "rare"), (40, "uncommon"), (100, "common")],
    })
    item_affix_odds: dict[str, ItemAffixOdds] = Field(default_factory=lambda: {
        "common": ItemAffixOdds(min_count=0, max_count=1, upgrade_chance=0.2),
        "uncommon": ItemAffixOdds(min_count=0, max_count=1, upgrade_chance=0.5),
        "rare": ItemAffixOdds(min_count=1, max_count=2, upgrade_chance=0.3),
        "epic": ItemAffixOdds(min_count=1, max_count=2, upgrade_chance=0.7),
        "legendary": ItemAffixOdds(min_count=2, max_count=2, upgrade_chance=1.0),
    })
    max_inventory_slots: int = 20

    def session_threshold(self, role: str) -> int:
        return self.session_thresholds.get(role, self.default_session_threshold)

    def prompt_budget(self, role: str) -> int:
        return self.prompt_budgets.get(role, self.default_prompt_budget)


def load_engine_config(path: Path | None) -> EngineConfig:
    """Return defaults merged with the top-level keys stored at ``path``."""
    if path is None or not path.is_file():
        return EngineConfig()
    stored: dict[str, Any] = json.loads(path.read_text())
    merged = EngineConfig().model_dump()
    for key, value in stored.items():
        if key not in merged:
            logger.warning("Unknown engine config key %r ignored", key)
            continue
        if isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return EngineConfig.model_validate(merged)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    generator_url: str
    generator_api_key: str
    generator_format: str
    generator_model: str
    generator_timeout: float
    engine_config: Path | None
    rng_seed: int | None
    debug: bool

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> Settings:
        load_dotenv(env_file)
        config_path = os.getenv("ENGINE_CONFIG", "")
        seed = os.getenv("RNG_SEED", "")
        return cls(
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            generator_url=os.getenv("GENERATOR_URL", "http://localhost:5001"),
            generator_api_key=os.getenv("GENERATOR_API_KEY", ""),
            generator_format=os.getenv("GENERATOR_FORMAT", "koboldcpp").strip().lower(),
            generator_model=os.getenv("GENERATOR_MODEL", ""),
            generator_timeout=float(_env_int("GENERATOR_TIMEOUT", 120)),
            engine_config=Path(config_path) if config_path else None,
            rng_seed=int(seed) if seed else None,
            debug=os.getenv("DEBUG", "0") == "1",
        )

    def redacted(self) -> dict[str, object]:
        return {
            "data_dir": str(self.data_dir),
            "generator_url": self.generator_url,
            "generator_api_key_set": bool(self.generator_api_key),
            "generator_format": self.generator_format,
            "generator_model": self.generator_model,
            "generator_timeout": self.generator_timeout,
            "engine_config": str(self.engine_config) if self.engine_config else None,
            "rng_seed": self.rng_seed,
            "debug": self.debug,
        }


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
