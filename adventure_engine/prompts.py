"""Prompt assembly: Handlebars role instructions and the context budget builder.

Every generator call is built from ``(tier, text)`` lines:

    tier 1: must survive: stage guidance, the literal player action,
             the encounter type and the exact opponent / partner name
    tier 2: useful: character stats, location, quest goal
    tier 3: nice to have: recent actions, encounter history

Tier 1 is always emitted in full, even past the budget. Tier 2 and then
tier 3 lines are appended in order until the next one would overflow.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import pybars

from adventure_engine.models import DIFFICULTIES, ENCOUNTER_TYPES, PromptBudget

logger = logging.getLogger(__name__)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_join(this, items, separator=", "):
    """{{join list ", "}}: join a list into one string."""
    return separator.join(str(i) for i in items)


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Static role instructions ─────────────────────────────

ROLE_INSTRUCTIONS: dict[str, str] = {
    "encounter": (
        "You pick the next encounter of a dungeon adventure.\n"
        "Allowed types: {{join types \", \"}}. Allowed difficulties: {{join difficulties \", \"}}.\n"
        "Vary the pacing; avoid repeating the same type."
    ),
    "narrative": (
        "You narrate a turn-based fantasy adventure in second person, 2-4 sentences.\n"
        "Never decide the outcome of a fight, never kill anyone, never ask the player questions.\n"
        "Name only the opponent or partner you are given.\n"
        "Offer {{min_actions}}-{{max_actions}} short suggested actions."
    ),
    "npc": (
        "You invent one non-player character for a fantasy adventure.\n"
        "Give a short personal name, an occupation and an attitude toward strangers."
    ),
    "quest": (
        "You invent a quest for a fantasy location in one sentence.\n"
        "Start with a verb such as Defeat, Retrieve, Escort, Investigate, Rescue or Negotiate.\n"
        "Choose between {{min_encounters}} and {{max_encounters}} encounters."
    ),
}

_INSTRUCTION_CONTEXT: dict[str, Any] = {
    "types": list(ENCOUNTER_TYPES),
    "difficulties": list(DIFFICULTIES),
    "min_actions": 2,
    "max_actions": 4,
    "min_encounters": 3,
    "max_encounters": 12,
}


def role_instructions(role: str) -> str:
    template = ROLE_INSTRUCTIONS.get(role)
    if template is None:
        return ""
    return render_prompt(template, _INSTRUCTION_CONTEXT)


# ── Context budget builder ───────────────────────────────


def build_prompt(budget: PromptBudget, reduced: bool = False) -> str:
    """Assemble a prompt from tiered lines within ``budget.max_chars``.

    ``reduced`` keeps tier 1 only; it is used for the single retry after a
    malformed or refused reply.
    """
    kept = [text for tier, text in budget.tiered_lines if tier == 1]
    used = sum(len(line) + 1 for line in kept)
    if used > budget.max_chars:
        logger.debug("tier 1 alone is %d chars (budget %d)", used, budget.max_chars)

    if not reduced:
        for tier in (2, 3):
            overflow = False
            for line_tier, text in budget.tiered_lines:
                if line_tier != tier:
                    continue
                if used + len(text) + 1 > budget.max_chars:
                    overflow = True
                    break
                kept.append(text)
                used += len(text) + 1
            if overflow:
                break

    return "\n".join(kept)


class PromptLines:
    """Collects ``(tier, text)`` lines, skipping empty text."""

    def __init__(self) -> None:
        self._lines: list[tuple[int, str]] = []

    def add(self, tier: int, text: str | None) -> PromptLines:
        if text:
            self._lines.append((tier, text))
        return self

    def budget(self, max_chars: int) -> PromptBudget:
        return PromptBudget(max_chars=max_chars, tiered_lines=list(self._lines))


def encounter_lines(
    action: str,
    guidance: str,
    character_line: str,
    location: str,
    encounter_counts: dict[str, int],
    recent_types: list[str],
) -> PromptLines:
    lines = PromptLines()
    lines.add(1, guidance)
    lines.add(1, f"Player action: {action}")
    lines.add(2, character_line)
    lines.add(2, f"Location: {location}" if location else None)
    if recent_types:
        lines.add(2, f"Recent encounters: {', '.join(recent_types)}")
    if encounter_counts:
        total = sum(encounter_counts.values())
        top = sorted(encounter_counts.items(), key=lambda kv: kv[1], reverse=True)[:3]
        lines.add(3, f"Total encounters: {total} ({', '.join(f'{k}: {v}' for k, v in top)})")
    else:
        lines.add(3, "First encounter")
    return lines


def narrative_lines(
    action: str,
    guidance: str,
    encounter_type: str,
    difficulty: str,
    subject: str | None,
    character_line: str,
    location: str,
    quest_goal: str | None,
    recent_actions: list[str],
    encounter_counts: dict[str, int],
) -> PromptLines:
    lines = PromptLines()
    lines.add(1, guidance)
    lines.add(1, f"Player action: {action}")
    lines.add(1, f"Encounter: {encounter_type} ({difficulty})")
    lines.add(1, subject)
    lines.add(2, character_line)
    lines.add(2, f"Location: {location}" if location else None)
    lines.add(2, f"Quest: {quest_goal}" if quest_goal else None)
    for entry in reversed(recent_actions):
        lines.add(3, f"Earlier: {entry}")
    if encounter_counts:
        summary = ", ".join(f"{k}: {v}" for k, v in sorted(encounter_counts.items()))
        lines.add(3, f"Encounter history: {summary}")
    return lines


def npc_lines(location: str, occupation_hint: str | None, action: str) -> PromptLines:
    lines = PromptLines()
    lines.add(1, f"Player action: {action}")
    lines.add(2, f"Location: {location}" if location else None)
    lines.add(2, f"Suggested occupation: {occupation_hint}" if occupation_hint else None)
    return lines


def quest_lines(location: str, character_line: str, recent_quest_types: list[str]) -> PromptLines:
    lines = PromptLines()
    lines.add(1, f"Location: {location}")
    lines.add(2, character_line)
    if recent_quest_types:
        lines.add(3, f"Avoid repeating recent quest kinds: {', '.join(recent_quest_types)}")
    return lines
