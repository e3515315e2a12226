"""Encounter determination rules.

The generator proposes an encounter; these rules decide what actually runs:

  1. a quest's final encounter may be forced (combat quests fight their
     boss, retrieval quests reach the "final" scene)
  2. combat never runs twice in a row while another type is available
  3. a type already seen twice in the last three encounters is swapped for
     the least recently used alternative
  4. "final" only runs once the quest reached its final encounter
"""

from __future__ import annotations

import logging

from adventure_engine import quests
from adventure_engine.models import ENCOUNTER_TYPES, Encounter, EncounterProposal, Quest
from adventure_engine.variety import VarietyRing

logger = logging.getLogger(__name__)

REPEAT_WINDOW = 3
REPEAT_LIMIT = 2


def forced_encounter(quest: Quest | None) -> Encounter | None:
    if quest is None:
        return None
    forced = quests.forced_encounter(quest)
    if forced is None:
        return None
    encounter_type, difficulty = forced
    logger.info("final encounter forced to %s/%s for %s quest", encounter_type, difficulty, quest.quest_type)
    return Encounter(type=encounter_type, difficulty=difficulty)


def apply_variety_rules(
    proposal: EncounterProposal,
    quest: Quest | None,
    last_type: str | None,
    ring: VarietyRing,
) -> Encounter:
    final_allowed = quest is not None and quest.is_final_encounter
    chosen = proposal.encounter_type
    difficulty = proposal.difficulty

    excluded = set()
    if not final_allowed:
        excluded.add("final")
    if last_type == "combat":
        excluded.add("combat")

    recent = ring.recent(REPEAT_WINDOW)
    if chosen in excluded or recent.count(chosen) >= REPEAT_LIMIT:
        alternatives = [
            t for t in ENCOUNTER_TYPES
            if t != chosen and t not in excluded and recent.count(t) < REPEAT_LIMIT
        ]
        if not alternatives:
            alternatives = [t for t in ENCOUNTER_TYPES if t != chosen and t not in excluded]
        if alternatives:
            replacement = ring.least_recently_used(alternatives)
            logger.info("encounter %s replaced by %s (recent=%s)", chosen, replacement, recent)
            chosen = replacement

    if difficulty == "boss" and not final_allowed:
        difficulty = "hard"
    return Encounter(type=chosen, difficulty=difficulty)
