"""Variety tracking: bounded recency buffers that discourage repetition.

Each ring remembers the last ``capacity`` names recorded into it; the oldest
entry is evicted first. Callers only record names and ask whether a name is
recent. Picking the least-recently-used candidate is a read-only query.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


class VarietyRing:
    def __init__(self, capacity: int, entries: Iterable[str] = ()) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._entries: deque[str] = deque(entries, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, name: str) -> None:
        self._entries.append(name)

    def contains(self, name: str) -> bool:
        return name in self._entries

    def recent(self, count: int) -> list[str]:
        """The last ``count`` entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def least_recently_used(self, candidates: Sequence[str]) -> str:
        """Pick a candidate not in the ring, else the one recorded longest ago.

        Never fails for a non-empty ``candidates``.
        """
        if not candidates:
            raise ValueError("no candidates to choose from")
        for name in candidates:
            if name not in self._entries:
                return name
        # Every candidate is recent: the smallest last-seen position wins.
        last_seen = {name: i for i, name in enumerate(self._entries)}
        return min(candidates, key=lambda name: last_seen[name])

    def snapshot(self) -> list[str]:
        return list(self._entries)


class VarietyTracker:
    """Named rings, e.g. "monster_prefix", "encounter_types"."""

    def __init__(self, capacities: dict[str, int], stored: dict[str, list[str]] | None = None) -> None:
        stored = stored or {}
        self._rings = {
            name: VarietyRing(capacity, stored.get(name, ()))
            for name, capacity in capacities.items()
        }

    def ring(self, name: str) -> VarietyRing:
        try:
            return self._rings[name]
        except KeyError:
            raise KeyError(f"Unknown variety ring: {name!r}") from None

    def record(self, ring: str, name: str) -> None:
        self.ring(ring).record(name)
        logger.debug("variety %s += %s", ring, name)

    def contains(self, ring: str, name: str) -> bool:
        return self.ring(ring).contains(name)

    def snapshot(self) -> dict[str, list[str]]:
        return {name: ring.snapshot() for name, ring in self._rings.items()}
