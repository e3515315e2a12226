"""Text hygiene on both sides of the narrative generator.

``sanitize_narrative`` runs the generator's narration through a fixed
sequence of pure transforms:

    0. strip leaked JSON field names and structural lines
    1. in combat, replace fight-resolution verbs with neutral ones
       (the combat system decides outcomes, not the narrator)
    2. drop suggestions and questions addressed to the player
    3. replace sentences naming a monster other than the actual opponent

No transform raises, and running the pipeline on its own output changes
nothing.

``sanitize_action`` validates raw player input before it reaches a prompt.
"""

from __future__ import annotations

import json
import logging
import re

from adventure_engine.procgen.tables import MONSTER_PATTERNS

logger = logging.getLogger(__name__)

FALLBACK_NARRATION = "The moment stretches on in tense silence."


# ---------------------------------------------------------------------------
# Step 0: leaked structure
# ---------------------------------------------------------------------------

_CUT_MARKERS = (
    "Monster:",
    "Combat:",
    "ItemsAcquired:",
    "itemsAcquired:",
    "adventureProgress:",
    "playerPrompt:",
    "suggestedActions:",
    "suggested_actions:",
    "currentEnvironment:",
    "current_environment:",
    "goldSpent:",
    "gold_spent:",
    "goldCost:",
    "gold_cost:",
    "items_acquired:",
    "questCompleted:",
    "quest_completed:",
    "adventure_progress:",
    "player_prompt:",
)

_CUT_RE = re.compile("|".join(rf'"?{re.escape(marker.rstrip(":"))}"?\s*:' for marker in _CUT_MARKERS))
_NARRATION_VALUE_RE = re.compile(r'"narration"\s*:\s*"((?:[^"\\]|\\.)*)"')
_FIELD_PREFIX_RE = re.compile(r'"narration"\s*:\s*"?')
_FIELD_LINE_RE = re.compile(
    r'^"?(?:narration|suggested_?actions|current_?environment|items_?acquired|'
    r'gold_?cost|gold_?spent|quest_?completed|adventure_?progress|player_?prompt)"?\s*:',
    re.IGNORECASE,
)
_STRUCTURAL_LINES = {"{", "}", "[", "]", ",", "},", "],"}


def _is_structural(line: str) -> bool:
    return line in _STRUCTURAL_LINES or _FIELD_LINE_RE.match(line) is not None


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value


def strip_structure(text: str) -> str:
    # A whole JSON reply leaked into the narration: keep its narration value.
    match = _NARRATION_VALUE_RE.search(text)
    cleaned = _unescape(match.group(1)) if match else text
    cut = _CUT_RE.search(cleaned)
    if cut:
        cleaned = cleaned[:cut.start()]
    cleaned = _FIELD_PREFIX_RE.sub("", cleaned)

    lines = [line for line in cleaned.split("\n") if not _is_structural(line.strip())]
    cleaned = "\n".join(lines).strip()
    # A lone closing quote left behind by a stripped "narration": " prefix.
    if cleaned.count('"') % 2 == 1:
        cleaned = re.sub(r'"\s*,?\s*$', "", cleaned).strip()
    return cleaned


# ---------------------------------------------------------------------------
# Step 1: combat verbs
# ---------------------------------------------------------------------------

COMBAT_VERBS: dict[str, str] = {
    "kill": "face",
    "kills": "faces",
    "killed": "faced",
    "killing": "facing",
    "slay": "face",
    "slays": "faces",
    "slew": "faced",
    "slain": "faced",
    "slaying": "facing",
    "defeat": "confront",
    "defeats": "confronts",
    "defeated": "confronted",
    "defeating": "confronting",
    "destroy": "confront",
    "destroys": "confronts",
    "destroyed": "confronted",
    "fight": "face",
    "fights": "faces",
    "fought": "faced",
    "fighting": "facing",
    "attack": "confront",
    "attacks": "confronts",
    "attacked": "confronted",
    "attacking": "confronting",
    "strike": "face",
    "strikes": "faces",
    "struck": "faced",
    "striking": "facing",
    "hit": "face",
    "hits": "faces",
    "hitting": "facing",
    "slash": "feint",
    "slashes": "feints",
    "slashed": "feinted",
    "slashing": "feinting",
    "stab": "feint",
    "stabs": "feints",
    "stabbed": "feinted",
    "stabbing": "feinting",
    "die": "falter",
    "dies": "falters",
    "died": "faltered",
    "dying": "faltering",
    "vanquish": "confront",
    "vanquished": "confronted",
}

_COMBAT_VERB_RE = re.compile(
    r"\b(" + "|".join(sorted(COMBAT_VERBS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)


def _match_case(original: str, replacement: str) -> str:
    if original.isupper() and len(original) > 1:
        return replacement.upper()
    if original[0].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement


def neutralize_combat_verbs(text: str) -> str:
    return _COMBAT_VERB_RE.sub(
        lambda m: _match_case(m.group(0), COMBAT_VERBS[m.group(0).lower()]),
        text,
    )


# ---------------------------------------------------------------------------
# Sentence helpers
# ---------------------------------------------------------------------------

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_QUOTES = "\"'“”‘’"


def _sentences(line: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(line.strip()) if s]


def _rewrite_lines(text: str, keep) -> str:
    """Apply ``keep(sentence) -> str | None`` per sentence, line by line.

    A line left holding only leaked structure once sentences are dropped is
    removed as well.
    """
    out = []
    for line in text.split("\n"):
        if not line.strip():
            if out and out[-1] != "":
                out.append("")
            continue
        sentences = [r for r in (keep(s) for s in _sentences(line)) if r]
        deduped: list[str] = []
        for sentence in sentences:
            if not deduped or deduped[-1] != sentence:
                deduped.append(sentence)
        rewritten = " ".join(deduped)
        if rewritten and not _is_structural(rewritten):
            out.append(rewritten)
    return "\n".join(out).strip()


# ---------------------------------------------------------------------------
# Step 2: suggestions and questions to the player
# ---------------------------------------------------------------------------

_SUGGESTION_RE = re.compile(
    r"^(what (will|do|would|should) you\b|will you\b|do you\b|should you\b|would you\b|"
    r"you (could|might|may|can) (also )?(choose|try|want|decide|consider|either)\b|"
    r"perhaps you should\b|consider\b|options?:|suggested actions?\b|your options\b)",
    re.IGNORECASE,
)
_ADDRESSED_RE = re.compile(r"\b(you|your)\b", re.IGNORECASE)


def _is_player_prompt(sentence: str) -> bool:
    if sentence[0] in _QUOTES:
        return False
    if _SUGGESTION_RE.match(sentence):
        return True
    return sentence.rstrip(_QUOTES).endswith("?") and _ADDRESSED_RE.search(sentence) is not None


def drop_player_prompts(text: str) -> str:
    return _rewrite_lines(text, lambda s: None if _is_player_prompt(s) else s)


# ---------------------------------------------------------------------------
# Step 3: foreign monster names
# ---------------------------------------------------------------------------

def foreign_monsters(sentence: str, opponent: str) -> list[str]:
    owned = opponent.lower()
    return [
        keyword for keyword, pattern in MONSTER_PATTERNS
        if pattern.search(sentence) and keyword not in owned
    ]


def generic_opponent_sentence(opponent: str) -> str:
    return f"The {opponent} holds its ground."


def replace_foreign_monsters(text: str, opponent: str) -> str:
    def keep(sentence: str) -> str:
        if foreign_monsters(sentence, opponent):
            return generic_opponent_sentence(opponent)
        return sentence

    return _rewrite_lines(text, keep)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def sanitize_narrative(text: str, combat: bool = False, opponent: str | None = None) -> str:
    cleaned = strip_structure(text)
    if combat:
        cleaned = neutralize_combat_verbs(cleaned)
    cleaned = drop_player_prompts(cleaned)
    if opponent:
        cleaned = replace_foreign_monsters(cleaned, opponent)
    if not cleaned.strip():
        logger.warning("narration removed entirely by sanitization (%d chars in)", len(text))
        return FALLBACK_NARRATION
    return cleaned


# ---------------------------------------------------------------------------
# Player input
# ---------------------------------------------------------------------------

class InputRejected(ValueError):
    """Player input failed validation; the message is safe to show."""


_INJECTION_PATTERNS: list[tuple[str, str]] = [
    ("ignore previous", "instructional language"),
    ("ignore all", "instructional language"),
    ("ignore instructions", "instructional language"),
    ("disregard", "instructional language"),
    ("new instruction", "instructional language"),
    ("system:", "system commands"),
    ("assistant:", "role manipulation"),
    ("you are now", "role manipulation"),
    ("pretend to be", "role manipulation"),
    ("your role is", "role manipulation"),
    ("forget everything", "memory manipulation"),
    ("{{", "template syntax"),
    ("}}", "template syntax"),
    ("<|", "special tokens"),
    ("|>", "special tokens"),
    ("###", "markdown delimiters"),
]


def _repeats(words: list[str], run: int = 4) -> bool:
    return any(len(set(words[i:i + run])) == 1 for i in range(len(words) - run + 1))


def sanitize_action(text: str, min_chars: int = 3, max_chars: int = 500) -> str:
    trimmed = text.strip()
    if len(trimmed) < min_chars:
        raise InputRejected(f"Action must be at least {min_chars} characters long.")
    if len(trimmed) > max_chars:
        raise InputRejected(f"Action must be {max_chars} characters or less.")

    lowered = trimmed.lower()
    for pattern, hint in _INJECTION_PATTERNS:
        if pattern in lowered:
            raise InputRejected(f"The action contains suspicious {hint}. Describe your action naturally.")
    if _repeats(lowered.split()):
        raise InputRejected("The action contains unusual repetition. Write naturally.")

    return trimmed.replace('"""', "").replace("```", "").strip()
