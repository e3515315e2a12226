"""Quest progression state machine.

Stage follows ``current_encounter_index / total_encounters``:

    < 0.5   early
    < 0.85  mid
    < 1.0   late
    = 1.0   final
    then    finale (extra encounters 1-2), last_chance (extra encounter 3)

and never moves backwards. A quest still open once the failure window is
used up is failed by the orchestrator.

Completion is gated per quest type. Combat and retrieval quests complete
only through checks made here in code; the remaining types accept the
narrative generator's claim, but only once the quest reached ``final``.
"""

from __future__ import annotations

import logging
import re

from adventure_engine.models import QUEST_STAGES, Quest
from adventure_engine.procgen.tables import MONSTER_PATTERNS, MONSTERS
from adventure_engine.prompts import render_prompt

logger = logging.getLogger(__name__)


class QuestInvariantViolation(Exception):
    """Code tried to move a quest into a state its type does not allow."""


# ---------------------------------------------------------------------------
# Type inference and objective extraction
# ---------------------------------------------------------------------------

_TYPE_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("combat", re.compile(r"\b(defeat|kill|destroy|stop|slay|eliminate)\b")),
    ("retrieval", re.compile(r"\b(find|retrieve|locate|discover|recover|stolen|artifact)\b")),
    ("escort", re.compile(r"\b(escort|protect|guide|caravan)\b")),
    ("investigation", re.compile(r"\b(investigate|solve|uncover)\b")),
    ("rescue", re.compile(r"\b(rescue|save|free)\b")),
    ("diplomatic", re.compile(r"\b(negotiate|persuade|convince|diplomacy)\b")),
]


def infer_quest_type(goal_text: str) -> str:
    """First matching keyword family wins; unmatched goals are combat quests."""
    goal = goal_text.lower()
    for quest_type, pattern in _TYPE_PATTERNS:
        if pattern.search(goal):
            return quest_type
    return "combat"


def _tail(*stops: str) -> str:
    return r"(.+?)(?:" + "|".join(rf"\s+{s}\b" for s in stops) + r"|[.,;!]|$)"


_OBJECTIVE_PATTERNS: dict[str, list[re.Pattern]] = {
    "combat": [
        re.compile(rf"\b(?:defeat|kill|destroy|slay|eliminate) the {_tail('terrorizing', 'guarding', 'in', 'at')}"),
        re.compile(rf"\bstop the {_tail('terrorizing', 'from', 'in', 'at')}"),
    ],
    "retrieval": [
        re.compile(rf"\b(?:retrieve|find|locate|recover|discover) the {_tail('stolen', 'hidden', 'from', 'in', 'at')}"),
    ],
    "escort": [
        re.compile(rf"\b(?:escort|guide) the {_tail('to', 'safely', 'through', 'across')}"),
        re.compile(rf"\bprotect the {_tail('during', 'while', 'through', 'from')}"),
    ],
    "rescue": [
        re.compile(rf"\b(?:rescue|save|free) the {_tail('from', 'held', 'in', 'at')}"),
    ],
    "investigation": [
        re.compile(rf"\b(?:investigate|solve|uncover) the {_tail('in', 'at', 'near', 'plaguing')}"),
    ],
    "diplomatic": [
        re.compile(rf"\b(?:negotiate|persuade|convince) {_tail('before', 'so', 'to')}"),
    ],
}


def extract_objective(goal_text: str, quest_type: str) -> str | None:
    """The noun phrase a quest is about: "Defeat the bandit leader" -> "bandit leader"."""
    goal = goal_text.lower().strip()
    for pattern in _OBJECTIVE_PATTERNS.get(quest_type, []):
        match = pattern.search(goal)
        if match:
            objective = match.group(1).strip()
            if objective:
                return objective
    return None


def anchor_from_goal(goal_text: str) -> str | None:
    """Table monster named in the goal text, if any."""
    for keyword, pattern in MONSTER_PATTERNS:
        if pattern.search(goal_text):
            for monster in MONSTERS:
                if monster.name.lower() == keyword:
                    return monster.name
    return None


# ---------------------------------------------------------------------------
# Stage transitions
# ---------------------------------------------------------------------------

_STAGE_ORDER = {stage: i for i, stage in enumerate(QUEST_STAGES)}


def stage_rank(stage: str) -> int:
    return _STAGE_ORDER[stage]


def compute_stage(index: int, total: int) -> str:
    if index > total:
        return "finale" if index - total <= 2 else "last_chance"
    ratio = index / total
    if ratio < 0.5:
        return "early"
    if ratio < 0.85:
        return "mid"
    if ratio < 1.0:
        return "late"
    return "final"


def new_quest(
    goal_text: str,
    total_encounters: int,
    location_name: str = "",
    quest_type: str | None = None,
    boss_anchor: str | None = None,
) -> Quest:
    qtype = quest_type or infer_quest_type(goal_text)
    return Quest(
        quest_type=qtype,
        goal_text=goal_text,
        location_name=location_name,
        total_encounters=total_encounters,
        objective_keyword=extract_objective(goal_text, qtype),
        boss_anchor=boss_anchor if qtype == "combat" else None,
    )


def advance(quest: Quest) -> Quest:
    """Count one more encounter; the stage only ever moves forward."""
    index = quest.current_encounter_index + 1
    computed = compute_stage(index, quest.total_encounters)
    stage = computed if stage_rank(computed) >= stage_rank(quest.stage) else quest.stage
    if stage != quest.stage:
        logger.info("quest stage %s -> %s (%d/%d)", quest.stage, stage, index, quest.total_encounters)
    return quest.model_copy(update={"current_encounter_index": index, "stage": stage})


def past_failure_window(quest: Quest, window: int) -> bool:
    return (
        not quest.completed
        and not quest.failed
        and quest.current_encounter_index - quest.total_encounters >= window
    )


def fail(quest: Quest) -> Quest:
    if quest.completed:
        raise QuestInvariantViolation("a completed quest cannot fail")
    return quest.model_copy(update={"failed": True})


def forced_encounter(quest: Quest) -> tuple[str, str] | None:
    """(type, difficulty) the final encounter must take, if the quest type forces one."""
    if not quest.is_final_encounter or quest.completed:
        return None
    if quest.quest_type == "combat":
        return "combat", "boss"
    if quest.quest_type == "retrieval":
        return "final", "normal"
    return None


# ---------------------------------------------------------------------------
# Completion gating
# ---------------------------------------------------------------------------

_ACQUIRE_RE = re.compile(
    r"\b(claim|take|grab|pick up|retrieve|acquire|collect|get|seize|obtain)\b"
)


def record_victory(quest: Quest, base_name: str) -> Quest:
    return quest.model_copy(update={"victories": [*quest.victories, base_name]})


def _at_final(quest: Quest) -> bool:
    return stage_rank(quest.stage) >= stage_rank("final")


def _objective_word(quest: Quest) -> str | None:
    if not quest.objective_keyword:
        return None
    return quest.objective_keyword.split()[-1]


def completion_allowed(quest: Quest, action: str = "", generator_claims: bool = False) -> bool:
    """Whether this turn legitimately completes ``quest``."""
    if quest.completed or quest.failed or not _at_final(quest):
        return False

    if quest.quest_type == "combat":
        anchor = (quest.boss_anchor or "").lower()
        return bool(anchor) and any(v.lower() == anchor for v in quest.victories)

    if quest.quest_type == "retrieval":
        lowered = action.lower()
        word = _objective_word(quest)
        if not _ACQUIRE_RE.search(lowered):
            return False
        # Without an extracted objective any acquisition at the finale counts.
        return word is None or re.search(rf"\b{re.escape(word)}s?\b", lowered) is not None

    return generator_claims


def mark_completed(quest: Quest, action: str = "", generator_claims: bool = False) -> Quest:
    if not completion_allowed(quest, action, generator_claims):
        raise QuestInvariantViolation(
            f"{quest.quest_type} quest {quest.goal_text!r} cannot complete at stage "
            f"{quest.stage} (victories={quest.victories})"
        )
    return quest.model_copy(update={"completed": True})


# ---------------------------------------------------------------------------
# Stage guidance (tier-1 directive for the narrative prompt)
# ---------------------------------------------------------------------------

_COMPLETION_INSTRUCTIONS = {
    "combat": "The boss fight is resolved by the combat system; describe the {{{anchor}}} but never its defeat.",
    "retrieval": "Present the {{{objective}}}; it is claimed only when the player takes it.",
    "escort": "Present the destination or final threat. Mark completed when the destination is reached.",
    "investigation": "Reveal the truth. Mark completed when the player understands the answer.",
    "rescue": "Present the captive. Mark completed when they are freed.",
    "diplomatic": "Present the key negotiator. Mark completed when agreement is reached.",
}

_STAGE_TEMPLATES = {
    "early": "QUEST STAGE - EARLY: Introduce clues or hints related to '{{{goal}}}'.",
    "mid": "QUEST STAGE - MIDDLE: Advance directly toward '{{{goal}}}'. Make tangible progress.",
    "late": "QUEST STAGE - LATE: The objective of '{{{goal}}}' is close. Build toward the climax.",
    "final": (
        "FINAL ENCOUNTER {{progress}}: Quest '{{{goal}}}'. {{{instructions}}} "
        "Do not mark it completed unless the player's action achieves the objective."
    ),
    "finale": (
        "EXTENDED FINALE {{progress}} (extra turn {{extra}}/{{window}}): Quest '{{{goal}}}'. "
        "{{{instructions}}} After {{window}} extra encounters the quest fails."
    ),
    "last_chance": (
        "FINAL CHANCE {{progress}}: the last opportunity to complete '{{{goal}}}'. "
        "{{{instructions}}} If not completed this turn, the quest fails."
    ),
}

_COMPLETED_TEMPLATE = "QUEST COMPLETED: '{{{goal}}}' has been achieved. Wrap up the scene briefly."


def stage_guidance(quest: Quest, window: int = 3) -> str:
    context = {
        "goal": quest.goal_text,
        "progress": quest.progress,
        "extra": quest.extra_encounters,
        "window": window,
        "anchor": quest.boss_anchor or quest.objective_keyword or "foe",
        "objective": quest.objective_keyword or "objective",
    }
    if quest.completed:
        return render_prompt(_COMPLETED_TEMPLATE, context)
    context["instructions"] = render_prompt(_COMPLETION_INSTRUCTIONS[quest.quest_type], context)
    return render_prompt(_STAGE_TEMPLATES[quest.stage], context)
