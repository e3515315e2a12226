"""Turn orchestration."""

from .core import AdventureEngine, TurnError

__all__ = ["AdventureEngine", "TurnError"]
