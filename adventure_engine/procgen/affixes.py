"""Affix selection that steers away from recently used names."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from adventure_engine.models import Affix
from adventure_engine.variety import VarietyTracker

logger = logging.getLogger(__name__)


def choose_affix(
    rng: random.Random,
    tracker: VarietyTracker,
    ring: str,
    table: Sequence[Affix],
    attempts: int,
) -> Affix:
    """Roll an affix from ``table``, re-rolling while the name is recent.

    After ``attempts`` recent rolls the least-recently-used candidate is
    accepted instead of failing. The chosen name is recorded in ``ring``.
    """
    if not table:
        raise ValueError(f"empty affix table for {ring}")

    choice: Affix | None = None
    for _ in range(max(1, attempts)):
        candidate = rng.choice(table)
        if not tracker.contains(ring, candidate.name):
            choice = candidate
            break

    if choice is None:
        by_name = {a.name: a for a in table}
        fallback = tracker.ring(ring).least_recently_used(list(by_name))
        logger.info("variety exhausted for %s after %d rolls, using %s", ring, attempts, fallback)
        choice = by_name[fallback]

    tracker.record(ring, choice.name)
    return choice
