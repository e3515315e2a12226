"""Turn orchestrator: runs one player turn end-to-end.

Turn flow:
  0. Validate the player input. Without an active quest the input names a
     location to enter instead.
  1. Quest already over        → emit its summary, close it, no generation.
  2. Quest past failure window → fail it, emit summary, no generation.
  3. Count the turn; reset every generator session when the global
     threshold is reached.
  4. Resolve what the player reacts to:
       pending opponent → deterministic combat round (attack / flee / other)
       open conversation under its turn cap → keep talking to the partner
       otherwise → advance the quest and determine a new encounter
  5. Branch on the encounter: roll a monster, fetch or create an NPC,
     arm a hazard.
  6. Build the narrative prompt within its budget and call the generator.
  7. Sanitize the narration.
  8. Compute rewards and quest completion.
  9. Apply every delta to the working copy.
 10. Swap the working copy in and hand the snapshot to persistence.

Everything before step 10 mutates copies only, so any exception (or task
cancellation) leaves the committed state untouched. A malformed or refused
generator reply is retried once with a tier-1-only prompt.
"""

from __future__ import annotations

import copy
import logging
import random
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel

from adventure_engine import combat, leveling, quests
from adventure_engine.config import EngineConfig
from adventure_engine.generator import (
    Generator,
    GeneratorError,
    GeneratorMalformed,
    GeneratorRefused,
    GeneratorUnavailable,
)
from adventure_engine.models import (
    NPC,
    AdventureSummary,
    Encounter,
    EncounterProposal,
    GameState,
    Monster,
    NarrativeTurn,
    NPCProposal,
    PendingEntity,
    QuestProposal,
    Rewards,
    SocialExchange,
    TurnEvent,
    TurnResult,
)
from adventure_engine.npcs import OCCUPATIONS, NPCRegistry, references
from adventure_engine.procgen import ItemGenerator, MonsterGenerator, calculate_rewards
from adventure_engine.procgen.rewards import combat_rewards
from adventure_engine.prompts import (
    PromptLines,
    build_prompt,
    encounter_lines,
    narrative_lines,
    npc_lines,
    quest_lines,
)
from adventure_engine.sanitize import InputRejected, sanitize_action, sanitize_narrative
from adventure_engine.sessions import SessionManager
from adventure_engine.variety import VarietyTracker

from .encounters import apply_variety_rules, forced_encounter

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_ACTIONS: dict[str, list[str]] = {
    "combat": ["Attack", "Flee"],
    "social": ["Ask about the quest", "Say farewell"],
    "trap": ["Search for another way", "Press on carefully"],
    "trade": ["Buy the goods", "Decline the offer"],
}
FALLBACK_ACTIONS = ["Look around", "Move forward"]
MIN_ACTIONS = 2
MAX_ACTIONS = 4


class TurnError(Exception):
    """A turn could not be completed; the committed state is unchanged.

    ``kind`` is one of "unavailable", "invalid_input" or "dead".
    """

    def __init__(self, message: str, kind: str = "unavailable") -> None:
        super().__init__(message)
        self.kind = kind


def _opponent_line(monster: Monster) -> str:
    line = f"Opponent: {monster.full_name}, {monster.description}"
    traits = "; ".join(a.effect for a in monster.affixes)
    return f"{line} ({traits})" if traits else line


class _Turn:
    """Working copies for one turn; committed only when the turn succeeds."""

    def __init__(self, engine: AdventureEngine) -> None:
        self.state: GameState = engine.state.model_copy(deep=True)
        self.tracker = VarietyTracker(engine.config.variety_capacity, self.state.variety)
        self.sessions: SessionManager = copy.deepcopy(engine.sessions)
        self.npcs = NPCRegistry(self.state.npcs)
        self.rng: random.Random = copy.deepcopy(engine.rng)
        self.events: list[TurnEvent] = []
        self.system: list[str] = []
        self.encounter: Encounter | None = None

    def emit(self, event: TurnEvent) -> None:
        self.events.append(event)

    def note(self, text: str) -> None:
        self.system.append(text)


class AdventureEngine:
    """Owns one game's state and advances it a turn at a time.

    Args:
        generator: Text generator used for every role.
        state:     Game state to resume from.
        config:    Engine tables; defaults when omitted.
        rng:       Source of randomness for every roll.
        persist:   Called with the committed snapshot after each turn.
    """

    def __init__(
        self,
        generator: Generator,
        state: GameState,
        config: EngineConfig | None = None,
        rng: random.Random | None = None,
        persist: Callable[[GameState], None] | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or EngineConfig()
        self.state = state
        self.rng = rng or random.Random()
        self.sessions = SessionManager(self.config, state.sessions, state.session_turns)
        self._persist = persist

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def advance_turn(self, player_input: str) -> TurnResult:
        if self.state.dead:
            raise TurnError("character is dead", kind="dead")
        action = self._validate(player_input)

        if self.state.quest is None:
            return await self.enter_location(action)

        turn = _Turn(self)
        quest = turn.state.quest

        # 1. quest already over
        if quest.completed or quest.failed:
            if turn.state.summaries:
                turn.emit(TurnEvent(kind="summary", summary=turn.state.summaries[-1]))
            turn.state.quest = None
            turn.state.pending = None
            turn.state.social = None
            turn.note("The adventure is over. Name a new destination to continue.")
            return self._commit(turn)

        # 2. failure window used up
        if quests.past_failure_window(quest, self.config.failure_window):
            logger.info("quest %r failed at %s", quest.goal_text, quest.progress)
            turn.state.quest = quests.fail(quest)
            turn.state.pending = None
            turn.state.social = None
            self._archive(turn, "failed")
            turn.note(f"You have run out of time. The quest '{quest.goal_text}' has failed.")
            return self._commit(turn)

        # 3. turn counter and global session reset
        turn.state.turn += 1
        turn.sessions.increment_turn()
        turn.sessions.global_reset_if_needed()

        if turn.state.pending is not None and turn.state.pending.kind == "hazard":
            turn.state.pending = None

        # 4-5. what the player is reacting to
        subject: str | None = None
        outcome: str | None = None
        opponent: Monster | None = None
        rewards = Rewards()
        damage_taken = 0

        pending = turn.state.pending
        if pending is not None and pending.kind == "opponent" and pending.monster is not None:
            opponent, outcome, damage_taken, rewards = self._resolve_opponent(turn, pending, action)
            turn.encounter = Encounter(type="combat", difficulty=pending.difficulty)
            subject = f"Opponent: {opponent.full_name}"
        else:
            if pending is not None and pending.kind == "trade":
                self._resolve_trade(turn, pending, action)
            partner = self._continue_conversation(turn, action)
            if partner is not None:
                turn.encounter = Encounter(type="social", difficulty="normal")
                subject = f"Partner: {partner.name}, {partner.occupation}"
            else:
                turn.state.social = None
                turn.state.quest = quests.advance(turn.state.quest)
                turn.encounter = await self._determine_encounter(turn, action)
                subject, opponent = await self._prepare_encounter(turn, turn.encounter, action)

        encounter = turn.encounter

        # 6. narration
        quest = turn.state.quest
        guidance = quests.stage_guidance(quest, self.config.failure_window)
        lines = narrative_lines(
            action=action,
            guidance=guidance,
            encounter_type=encounter.type,
            difficulty=encounter.difficulty,
            subject=subject,
            character_line=turn.state.character.stats_line(),
            location=turn.state.location_name,
            quest_goal=quest.goal_text,
            recent_actions=turn.state.recent_actions,
            encounter_counts=turn.state.encounter_counts,
        )
        if outcome:
            lines.add(1, f"Outcome (already decided): {outcome}")
        reply = await self._generate(turn, "narrative", lines, NarrativeTurn)

        # 7. sanitize
        opponent_name = opponent.full_name if opponent is not None else None
        narration = sanitize_narrative(
            reply.narration,
            combat=encounter.type == "combat",
            opponent=opponent_name,
        )

        # 8. rewards and completion
        if turn.encounter.type != "combat" and outcome is None:
            character = turn.state.character
            rewards = calculate_rewards(
                turn.rng, encounter.type, encounter.difficulty,
                character.level, character.hp, character.max_hp,
            )
            if encounter.type == "trap":
                turn.state.pending = PendingEntity(
                    kind="hazard", name="Trap", damage=-rewards.hp_delta,
                    detail=f"A trap strikes for {-rewards.hp_delta} damage.",
                )
        completed_now = self._try_complete(turn, action, reply.quest_completed)
        if completed_now:
            character = turn.state.character
            bonus = calculate_rewards(
                turn.rng, encounter.type, encounter.difficulty,
                character.level, character.hp, character.max_hp, quest_completed=True,
            )
            rewards = rewards.model_copy(update={
                "xp_gain": rewards.xp_gain + bonus.xp_gain,
                "gold_gain": rewards.gold_gain + bonus.gold_gain,
            })

        # 9. apply
        self._apply_narrative_items(turn, reply, encounter)
        self._apply_rewards(turn, rewards, damage_taken)
        self._record_action(turn, action, encounter)

        turn.emit(TurnEvent(kind="narrative", text=narration))
        turn.emit(TurnEvent(kind="suggested_actions", actions=self._suggested_actions(reply, turn)))
        if turn.state.pending is not None:
            turn.emit(TurnEvent(kind="pending", pending=turn.state.pending))

        if turn.state.character.hp <= 0:
            self._die(turn)
        elif completed_now:
            turn.note(f"Quest complete: {turn.state.quest.goal_text}")
            self._archive(turn, "completed")

        # 10. commit
        return self._commit(turn)

    async def enter_location(
        self,
        location_name: str,
        goal_text: str | None = None,
        total_encounters: int | None = None,
    ) -> TurnResult:
        """Start a new adventure at ``location_name``.

        Without ``goal_text`` the quest is requested from the generator.
        """
        if self.state.dead:
            raise TurnError("character is dead", kind="dead")
        location = self._validate(location_name)
        turn = _Turn(self)

        if goal_text is None or total_encounters is None:
            lines = quest_lines(
                location,
                turn.state.character.stats_line(),
                turn.tracker.ring("quest_types").recent(3),
            )
            proposal = await self._generate(turn, "quest", lines, QuestProposal)
            goal_text = goal_text or proposal.goal_text
            total_encounters = total_encounters or proposal.total_encounters

        quest_type = quests.infer_quest_type(goal_text)
        anchor = None
        if quest_type == "combat":
            anchor = quests.anchor_from_goal(goal_text) or self._monsters(turn).generate_boss_anchor(
                turn.state.character.level
            )
        quest = quests.new_quest(goal_text, total_encounters, location, quest_type, anchor)
        turn.tracker.record("quest_types", quest.quest_type)
        logger.info("entered %s: %s quest %r (%d encounters, anchor=%s)",
                    location, quest.quest_type, goal_text, total_encounters, anchor)

        state = turn.state
        state.location_name = location
        state.quest = quest
        state.pending = None
        state.social = None
        state.last_encounter_type = None
        state.encounter_counts = {}
        state.recent_actions = []
        state.adventure_xp = 0
        state.adventure_gold = 0
        state.adventure_monsters = 0
        state.adventure_items = []

        turn.emit(TurnEvent(kind="narrative", text=f"You arrive at {location}. Your quest: {goal_text}"))
        turn.emit(TurnEvent(kind="suggested_actions", actions=list(FALLBACK_ACTIONS)))
        return self._commit(turn)

    # ------------------------------------------------------------------
    # Generator calls
    # ------------------------------------------------------------------

    async def _generate(self, turn: _Turn, role: str, lines: PromptLines, schema: type[T]) -> T:
        turn.sessions.reset_if_needed(role)
        session = turn.sessions.get_session(role)
        budget = lines.budget(self.config.prompt_budget(role))

        prompt = build_prompt(budget)
        try:
            result = await self.generator.generate(role, session.compose(prompt), schema)
        except GeneratorUnavailable as e:
            raise TurnError(f"{role} generator unavailable: {e}") from e
        except (GeneratorMalformed, GeneratorRefused) as first:
            logger.warning("%s generator %s, retrying with reduced prompt: %s", role, first.kind, first)
            prompt = build_prompt(budget, reduced=True)
            try:
                result = await self.generator.generate(role, session.compose(prompt), schema)
            except GeneratorError as e:
                raise TurnError(f"{role} generator failed twice: {e}") from e

        session.remember(prompt)
        turn.sessions.record_use(role)
        return result

    async def _determine_encounter(self, turn: _Turn, action: str) -> Encounter:
        state = turn.state
        ring = turn.tracker.ring("encounter_types")
        encounter = forced_encounter(state.quest)
        if encounter is None:
            lines = encounter_lines(
                action=action,
                guidance=quests.stage_guidance(state.quest, self.config.failure_window),
                character_line=state.character.stats_line(),
                location=state.location_name,
                encounter_counts=state.encounter_counts,
                recent_types=ring.recent(3),
            )
            proposal = await self._generate(turn, "encounter", lines, EncounterProposal)
            encounter = apply_variety_rules(proposal, state.quest, state.last_encounter_type, ring)

        turn.tracker.record("encounter_types", encounter.type)
        state.last_encounter_type = encounter.type
        state.encounter_counts[encounter.type] = state.encounter_counts.get(encounter.type, 0) + 1
        return encounter

    async def _prepare_encounter(
        self, turn: _Turn, encounter: Encounter, action: str
    ) -> tuple[str | None, Monster | None]:
        state = turn.state
        if encounter.type == "combat":
            monster = self._monsters(turn).generate_monster(
                state.character.level, encounter.difficulty, state.quest
            )
            state.pending = PendingEntity(
                kind="opponent", name=monster.full_name, detail=monster.description,
                monster=monster, difficulty=encounter.difficulty,
            )
            return _opponent_line(monster), monster

        if encounter.type == "social":
            npc = await self._find_partner(turn, action)
            state.social = SocialExchange(npc_id=npc.id)
            return f"Partner: {npc.name}, {npc.occupation} ({npc.attitude})", None

        if encounter.type == "trap":
            return "Hazard: a trap is triggered", None

        if encounter.type == "final" and state.quest.objective_keyword:
            return f"Objective within reach: {state.quest.objective_keyword}", None

        return None, None

    async def _find_partner(self, turn: _Turn, action: str) -> NPC:
        location = turn.state.location_name
        known = turn.npcs.random_at(location, turn.rng)
        if known is not None and turn.rng.random() < 0.5:
            return turn.npcs.meet(known.id)
        hint = turn.rng.choice(OCCUPATIONS)
        proposal = await self._generate(turn, "npc", npc_lines(location, hint, action), NPCProposal)
        npc = turn.npcs.register(proposal, location)
        return turn.npcs.meet(npc.id)

    # ------------------------------------------------------------------
    # Pending entities
    # ------------------------------------------------------------------

    def _resolve_opponent(
        self, turn: _Turn, pending: PendingEntity, action: str
    ) -> tuple[Monster, str, int, Rewards]:
        monster = pending.monster
        rewards = Rewards()
        if combat.is_flee(action):
            result = combat.resolve_flee(turn.rng, monster)
            turn.state.pending = None
        elif combat.is_attack(action):
            result = combat.resolve_attack(turn.rng, monster, pending.engaged)
            if result.defeated:
                turn.state.pending = None
                turn.state.adventure_monsters += 1
                turn.state.quest = quests.record_victory(turn.state.quest, monster.base_name)
                won = combat_rewards(turn.rng, pending.difficulty, turn.state.character.level)
                rewards = won.model_copy(update={"hp_delta": 0})
            else:
                turn.state.pending = pending.model_copy(update={
                    "monster": result.monster,
                    "engaged": True,
                })
        else:
            result = combat.resolve_distracted(turn.rng, monster)

        for line in result.log:
            turn.note(line)
        return monster, " ".join(result.log), result.damage_taken, rewards

    def _resolve_trade(self, turn: _Turn, pending: PendingEntity, action: str) -> None:
        character = turn.state.character
        turn.state.pending = None
        if "buy" not in action.lower():
            turn.note(f"You decline the offer from {pending.name}.")
            return
        if character.gold < pending.cost:
            turn.note(f"You cannot afford {', '.join(pending.items)} ({pending.cost} gold).")
            return
        character.gold -= pending.cost
        self._add_to_inventory(turn, pending.items)
        turn.note(f"You buy {', '.join(pending.items)} for {pending.cost} gold.")

    def _continue_conversation(self, turn: _Turn, action: str) -> NPC | None:
        social = turn.state.social
        if social is None or social.turns >= self.config.social_turn_cap:
            return None
        npc = turn.npcs.get(social.npc_id)
        if npc is None or not references(npc, action):
            return None
        social.turns += 1
        return npc

    # ------------------------------------------------------------------
    # Applying results
    # ------------------------------------------------------------------

    def _try_complete(self, turn: _Turn, action: str, generator_claims: bool) -> bool:
        quest = turn.state.quest
        if quest.completed or quest.failed:
            return False
        if not generator_claims and not quests.completion_allowed(quest, action):
            return False
        try:
            turn.state.quest = quests.mark_completed(quest, action, generator_claims)
        except quests.QuestInvariantViolation as e:
            logger.warning("quest completion rejected: %s", e)
            return False
        return True

    def _apply_narrative_items(self, turn: _Turn, reply: NarrativeTurn, encounter: Encounter) -> None:
        if not reply.items_acquired:
            return
        partner = turn.npcs.get(turn.state.social.npc_id) if turn.state.social else None
        if reply.gold_cost > 0 and partner is not None:
            turn.state.pending = PendingEntity(
                kind="trade", name=partner.name, items=list(reply.items_acquired),
                cost=reply.gold_cost, detail=f"{partner.name} offers a trade.",
            )
            return
        if reply.gold_cost > 0:
            if turn.state.character.gold < reply.gold_cost:
                return
            turn.state.character.gold -= reply.gold_cost
        self._add_to_inventory(turn, reply.items_acquired)

    def _add_to_inventory(self, turn: _Turn, names: list[str]) -> None:
        character = turn.state.character
        for name in names:
            if len(character.inventory) >= self.config.max_inventory_slots:
                turn.note(f"Your pack is full; {name} is left behind.")
                continue
            character.inventory.append(name)
            turn.state.adventure_items.append(name)

    def _apply_rewards(self, turn: _Turn, rewards: Rewards, damage_taken: int) -> None:
        state = turn.state
        character = state.character
        hp = min(character.max_hp, character.hp + rewards.hp_delta - damage_taken)
        character.hp = hp
        character.gold += rewards.gold_gain
        state.adventure_gold += rewards.gold_gain
        state.adventure_xp += rewards.xp_gain

        if rewards.xp_gain:
            updated, gained = leveling.apply_xp(character, rewards.xp_gain, turn.rng)
            state.character = updated
            if gained:
                turn.note(f"You reached level {updated.level}!")

        if rewards.should_drop_loot and rewards.item_drop_count:
            owned = {i.full_name for i in state.character.items} | set(state.character.inventory)
            difficulty = turn.encounter.difficulty if turn.encounter else "normal"
            loot = self._items(turn).generate_loot(
                rewards.item_drop_count, difficulty, state.character.level, owned
            )
            for item in loot:
                if len(state.character.inventory) >= self.config.max_inventory_slots:
                    turn.note(f"Your pack is full; {item.full_name} is left behind.")
                    continue
                state.character.items.append(item)
                state.character.inventory.append(item.full_name)
                state.adventure_items.append(item.full_name)
                turn.note(f"Found {item.full_name} ({item.rarity}).")

    def _record_action(self, turn: _Turn, action: str, encounter: Encounter) -> None:
        entry = f"{action[:60]} ({encounter.type})"
        recent = [*turn.state.recent_actions, entry]
        turn.state.recent_actions = recent[-self.config.recent_action_limit:]

    def _suggested_actions(self, reply: NarrativeTurn, turn: _Turn) -> list[str]:
        actions = [a.strip() for a in reply.suggested_actions if a and a.strip()]
        pending = turn.state.pending
        if pending is not None and pending.kind == "opponent":
            defaults = DEFAULT_ACTIONS["combat"]
        elif pending is not None and pending.kind == "trade":
            defaults = DEFAULT_ACTIONS["trade"]
        elif turn.encounter is not None:
            defaults = DEFAULT_ACTIONS.get(turn.encounter.type, [])
        else:
            defaults = []
        for extra in [*defaults, *FALLBACK_ACTIONS]:
            if len(actions) >= MIN_ACTIONS:
                break
            if extra not in actions:
                actions.append(extra)
        return actions[:MAX_ACTIONS]

    def _die(self, turn: _Turn) -> None:
        state = turn.state
        state.character.hp = 0
        state.dead = True
        state.pending = None
        state.social = None
        logger.info("%s died on turn %d", state.character.name, state.turn)
        turn.note("You have fallen. Your adventure ends here.")
        if state.quest is not None and not state.quest.completed:
            state.quest = quests.fail(state.quest)
            self._archive(turn, "failed")

    def _archive(self, turn: _Turn, outcome: str) -> None:
        state = turn.state
        quest = state.quest
        summary = AdventureSummary(
            location_name=quest.location_name,
            quest_goal=quest.goal_text,
            quest_type=quest.quest_type,
            outcome=outcome,
            encounters_completed=quest.current_encounter_index,
            xp_gained=state.adventure_xp,
            gold_earned=state.adventure_gold,
            monsters_defeated=state.adventure_monsters,
            notable_items=state.adventure_items[-5:],
        )
        state.summaries.append(summary)
        turn.emit(TurnEvent(kind="summary", summary=summary))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, text: str) -> str:
        try:
            return sanitize_action(text, max_chars=self.config.max_input_chars)
        except InputRejected as e:
            raise TurnError(str(e), kind="invalid_input") from e

    def _monsters(self, turn: _Turn) -> MonsterGenerator:
        return MonsterGenerator(self.config, turn.tracker, turn.rng)

    def _items(self, turn: _Turn) -> ItemGenerator:
        return ItemGenerator(self.config, turn.tracker, turn.rng)

    def _commit(self, turn: _Turn) -> TurnResult:
        for text in turn.system:
            turn.emit(TurnEvent(kind="system", text=text))

        state = turn.state
        state.variety = turn.tracker.snapshot()
        state.sessions, state.session_turns = turn.sessions.snapshot()
        state.npcs = turn.npcs.snapshot()

        self.state = state
        self.sessions = turn.sessions
        self.rng = turn.rng
        if self._persist is not None:
            self._persist(state)

        return TurnResult(
            turn=state.turn,
            encounter=turn.encounter,
            events=turn.events,
            state=state.model_copy(deep=True),
        )
