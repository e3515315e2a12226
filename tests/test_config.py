"""Tests for adventure_engine.config and the shared models."""

import json

from adventure_engine.config import EngineConfig, Settings, load_engine_config
from adventure_engine.models import (
    QUEST_STAGES,
    Affix,
    Character,
    GameState,
    Monster,
    Quest,
    TurnEvent,
    TurnResult,
)


# ---------------------------------------------------------------------------
# EngineConfig
# ---------------------------------------------------------------------------

class TestEngineConfig:
    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.session_threshold("encounter") == 8
        assert config.session_threshold("quest") == 4
        assert config.prompt_budget("narrative") == 1000
        assert config.prompt_budget("mystery") == config.default_prompt_budget
        assert config.global_reset_turns == 15

    def test_missing_file_gives_defaults(self, tmp_path) -> None:
        assert load_engine_config(tmp_path / "nope.json") == EngineConfig()
        assert load_engine_config(None) == EngineConfig()

    def test_file_overrides_merge(self, tmp_path) -> None:
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({
            "failure_window": 5,
            "session_thresholds": {"narrative": 2},
            "bogus_key": 1,
        }))
        config = load_engine_config(path)
        assert config.failure_window == 5
        assert config.session_threshold("narrative") == 2
        assert config.session_threshold("encounter") == 8


class TestSettings:
    def test_from_env(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("GENERATOR_URL", "http://gen:9000")
        monkeypatch.setenv("GENERATOR_API_KEY", "secret")
        monkeypatch.setenv("GENERATOR_FORMAT", " OpenAI ")
        monkeypatch.setenv("RNG_SEED", "17")
        monkeypatch.setenv("DEBUG", "1")
        monkeypatch.delenv("ENGINE_CONFIG", raising=False)

        settings = Settings.from_env(tmp_path / "missing.env")
        assert settings.data_dir == tmp_path
        assert settings.generator_url == "http://gen:9000"
        assert settings.generator_format == "openai"
        assert settings.rng_seed == 17
        assert settings.debug is True
        assert settings.engine_config is None

    def test_redacted_hides_key(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("GENERATOR_API_KEY", "secret")
        redacted = Settings.from_env(tmp_path / "missing.env").redacted()
        assert "secret" not in json.dumps(redacted)
        assert redacted["generator_api_key_set"] is True


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestModels:
    def test_monster_full_name(self) -> None:
        prefix = Affix(name="Ancient", slot="prefix", effect="+50% HP")
        suffix = Affix(name="of Rage", slot="suffix", effect="+4 damage")
        monster = Monster(base_name="Goblin", prefix=prefix, suffix=suffix, hp=10, damage="1d6", defense=12)
        assert monster.full_name == "Ancient Goblin of Rage"
        assert monster.affixes == [prefix, suffix]
        assert Monster(base_name="Orc", hp=15, damage="1d8", defense=13).full_name == "Orc"

    def test_stats_line(self) -> None:
        hero = Character(name="Aria", level=2, hp=9, max_hp=14, gold=3)
        assert hero.stats_line() == "Char: Aria Lvl2 Warrior HP:9/14 Gold:3"

    def test_quest_progress(self) -> None:
        quest = Quest(quest_type="combat", goal_text="Defeat the orc", total_encounters=4, current_encounter_index=6)
        assert quest.progress == "6/4"
        assert quest.extra_encounters == 2
        assert quest.is_final_encounter

    def test_stage_order(self) -> None:
        assert QUEST_STAGES == ("early", "mid", "late", "final", "finale", "last_chance")

    def test_turn_result_helpers(self) -> None:
        result = TurnResult(
            turn=1,
            state=GameState(character=Character(name="Aria")),
            events=[
                TurnEvent(kind="narrative", text="One."),
                TurnEvent(kind="suggested_actions", actions=["Go"]),
                TurnEvent(kind="narrative", text="Two."),
            ],
        )
        assert result.narrative == "One.\n\nTwo."
        assert result.suggested_actions == ["Go"]
