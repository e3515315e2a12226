"""Core domain models.

Every engine stage, the generator boundary and the persistence layer operate
on these types. Pydantic is used for validation and serialisation at every
data boundary; anything a generator returns is parsed into one of the
``*Proposal`` / ``NarrativeTurn`` schemas before the engine looks at it.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

EncounterType = Literal[
    "combat",
    "social",
    "exploration",
    "puzzle",
    "trap",
    "stealth",
    "chase",
    "final",
]
Difficulty = Literal["easy", "normal", "hard", "boss"]
QuestType = Literal["combat", "retrieval", "escort", "investigation", "rescue", "diplomatic"]
QuestStage = Literal["early", "mid", "late", "final", "finale", "last_chance"]
AffixSlot = Literal["prefix", "suffix"]
ItemType = Literal["weapon", "armor", "accessory"]
Rarity = Literal["common", "uncommon", "rare", "epic", "legendary"]
PendingKind = Literal["opponent", "hazard", "trade"]

ENCOUNTER_TYPES: tuple[str, ...] = get_args(EncounterType)
DIFFICULTIES: tuple[str, ...] = get_args(Difficulty)
QUEST_STAGES: tuple[str, ...] = get_args(QuestStage)
RARITIES: tuple[str, ...] = get_args(Rarity)


def compose_name(prefix: Affix | None, base_name: str, suffix: Affix | None) -> str:
    """Join optional affix names around the base name: "Ancient Goblin of Rage"."""
    parts = []
    if prefix is not None:
        parts.append(prefix.name)
    parts.append(base_name)
    if suffix is not None:
        parts.append(suffix.name)
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Encounters and combatants
# ---------------------------------------------------------------------------

class Encounter(BaseModel):
    """The encounter chosen for one turn. Never persisted."""

    model_config = ConfigDict(frozen=True)

    type: EncounterType
    difficulty: Difficulty = "normal"


class Affix(BaseModel):
    name: str
    slot: AffixSlot
    effect: str
    hp_multiplier: float = 1.0
    damage_bonus: int = 0
    defense_bonus: int = 0


class Monster(BaseModel):
    """A combatant snapshot. ``base_name`` never changes once rolled."""

    base_name: str
    prefix: Affix | None = None
    suffix: Affix | None = None
    hp: int
    damage: str
    defense: int
    abilities: list[str] = Field(default_factory=list)
    description: str = ""

    @property
    def full_name(self) -> str:
        return compose_name(self.prefix, self.base_name, self.suffix)

    @property
    def affixes(self) -> list[Affix]:
        return [a for a in (self.prefix, self.suffix) if a is not None]


class Item(BaseModel):
    base_name: str
    prefix: Affix | None = None
    suffix: Affix | None = None
    item_type: ItemType
    rarity: Rarity
    description: str = ""
    damage_bonus: int = 0
    defense_bonus: int = 0

    @property
    def full_name(self) -> str:
        return compose_name(self.prefix, self.base_name, self.suffix)


class Rewards(BaseModel):
    xp_gain: int = 0
    hp_delta: int = 0
    gold_gain: int = 0
    should_drop_loot: bool = False
    item_drop_count: int = 0


# ---------------------------------------------------------------------------
# Characters and NPCs
# ---------------------------------------------------------------------------

class Character(BaseModel):
    """The player character."""

    name: str
    class_name: str = "Warrior"
    level: int = 1
    xp: int = 0
    hp: int = 12
    max_hp: int = 12
    gold: int = 10
    inventory: list[str] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)

    def stats_line(self) -> str:
        return (
            f"Char: {self.name} Lvl{self.level} {self.class_name} "
            f"HP:{self.hp}/{self.max_hp} Gold:{self.gold}"
        )


class NPC(BaseModel):
    id: str
    name: str
    occupation: str = ""
    attitude: str = "neutral"
    location: str = ""
    times_met: int = 0


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

class Quest(BaseModel):
    """The active quest of one location.

    Mutated only through the functions in ``adventure_engine.quests``, each of
    which returns an updated copy.
    """

    quest_type: QuestType
    goal_text: str
    location_name: str = ""
    total_encounters: int = Field(ge=1)
    current_encounter_index: int = 0
    stage: QuestStage = "early"
    completed: bool = False
    failed: bool = False
    objective_keyword: str | None = None
    boss_anchor: str | None = None
    victories: list[str] = Field(default_factory=list)

    @property
    def extra_encounters(self) -> int:
        return max(0, self.current_encounter_index - self.total_encounters)

    @property
    def is_final_encounter(self) -> bool:
        return self.current_encounter_index >= self.total_encounters

    @property
    def progress(self) -> str:
        return f"{self.current_encounter_index}/{self.total_encounters}"


class AdventureSummary(BaseModel):
    location_name: str
    quest_goal: str
    quest_type: QuestType
    outcome: Literal["completed", "failed"]
    encounters_completed: int
    xp_gained: int = 0
    gold_earned: int = 0
    monsters_defeated: int = 0
    notable_items: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sessions and prompt budgets
# ---------------------------------------------------------------------------

class SessionState(BaseModel):
    use_count: int = 0
    reset_threshold: int = Field(ge=1)


class PromptBudget(BaseModel):
    """Candidate prompt content for one generator call. Never persisted."""

    max_chars: int
    tiered_lines: list[tuple[int, str]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Turn state
# ---------------------------------------------------------------------------

class PendingEntity(BaseModel):
    """Something the player must react to on the next turn."""

    kind: PendingKind
    name: str
    detail: str = ""
    monster: Monster | None = None
    difficulty: Difficulty = "normal"
    engaged: bool = False
    damage: int = 0
    items: list[str] = Field(default_factory=list)
    cost: int = 0


class SocialExchange(BaseModel):
    npc_id: str
    turns: int = 1


class GameState(BaseModel):
    """Complete serialisable snapshot of one game session."""

    turn: int = 0
    character: Character
    location_name: str = ""
    quest: Quest | None = None
    pending: PendingEntity | None = None
    social: SocialExchange | None = None
    last_encounter_type: EncounterType | None = None
    encounter_counts: dict[str, int] = Field(default_factory=dict)
    recent_actions: list[str] = Field(default_factory=list)
    variety: dict[str, list[str]] = Field(default_factory=dict)
    sessions: dict[str, SessionState] = Field(default_factory=dict)
    session_turns: int = 0
    npcs: list[NPC] = Field(default_factory=list)
    summaries: list[AdventureSummary] = Field(default_factory=list)
    adventure_xp: int = 0
    adventure_gold: int = 0
    adventure_monsters: int = 0
    adventure_items: list[str] = Field(default_factory=list)
    dead: bool = False


# ---------------------------------------------------------------------------
# Presentation events
# ---------------------------------------------------------------------------

EventKind = Literal["narrative", "suggested_actions", "pending", "summary", "system"]


class TurnEvent(BaseModel):
    kind: EventKind
    text: str = ""
    actions: list[str] = Field(default_factory=list)
    pending: PendingEntity | None = None
    summary: AdventureSummary | None = None


class TurnResult(BaseModel):
    """Ordered events for the presentation layer plus the committed state."""

    turn: int
    encounter: Encounter | None = None
    events: list[TurnEvent] = Field(default_factory=list)
    state: GameState

    @property
    def narrative(self) -> str:
        return "\n\n".join(e.text for e in self.events if e.kind == "narrative")

    @property
    def suggested_actions(self) -> list[str]:
        for event in self.events:
            if event.kind == "suggested_actions":
                return event.actions
        return []


# ---------------------------------------------------------------------------
# Generator target schemas
# ---------------------------------------------------------------------------

class EncounterProposal(BaseModel):
    encounter_type: EncounterType
    difficulty: Difficulty


class NarrativeTurn(BaseModel):
    narration: str = Field(min_length=1)
    suggested_actions: list[str] = Field(default_factory=list)
    current_environment: str | None = None
    items_acquired: list[str] = Field(default_factory=list)
    gold_cost: int = Field(default=0, ge=0)
    quest_completed: bool = False


class NPCProposal(BaseModel):
    name: str = Field(min_length=2)
    occupation: str = ""
    attitude: str = "neutral"


class QuestProposal(BaseModel):
    goal_text: str = Field(min_length=5)
    total_encounters: int = Field(ge=3, le=12)
