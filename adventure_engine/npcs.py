"""NPC registry: characters the player has met, grouped by location."""

from __future__ import annotations

import random
import re

from adventure_engine.models import NPC, NPCProposal

_TALK_RE = re.compile(r"\b(speak|talk|ask|tell)\b", re.IGNORECASE)

OCCUPATIONS = (
    "merchant", "guard", "innkeeper", "priest", "blacksmith",
    "hunter", "scholar", "beggar", "herbalist", "bard",
)


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "npc"


class NPCRegistry:
    def __init__(self, npcs: list[NPC] | None = None) -> None:
        self._npcs: dict[str, NPC] = {npc.id: npc.model_copy() for npc in npcs or []}

    def get(self, npc_id: str) -> NPC | None:
        return self._npcs.get(npc_id)

    def at_location(self, location: str) -> list[NPC]:
        return [npc for npc in self._npcs.values() if npc.location == location]

    def random_at(self, location: str, rng: random.Random) -> NPC | None:
        npcs = self.at_location(location)
        return rng.choice(npcs) if npcs else None

    def register(self, proposal: NPCProposal, location: str) -> NPC:
        base = _slugify(f"{proposal.name}-{location}")
        npc_id = base
        suffix = 2
        while npc_id in self._npcs:
            npc_id = f"{base}-{suffix}"
            suffix += 1
        npc = NPC(
            id=npc_id,
            name=proposal.name.strip(),
            occupation=proposal.occupation,
            attitude=proposal.attitude or "neutral",
            location=location,
        )
        self._npcs[npc_id] = npc
        return npc

    def meet(self, npc_id: str) -> NPC:
        npc = self._npcs[npc_id]
        npc.times_met += 1
        return npc

    def snapshot(self) -> list[NPC]:
        return [npc.model_copy() for npc in self._npcs.values()]


def references(npc: NPC, action: str) -> bool:
    """The player is still talking to ``npc``: names them or uses a speech verb."""
    lowered = action.lower()
    first_name = npc.name.split()[0].lower()
    if re.search(rf"\b{re.escape(first_name)}\b", lowered):
        return True
    return _TALK_RE.search(action) is not None
