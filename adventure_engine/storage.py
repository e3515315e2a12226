"""JSON file storage for game snapshots.

Every committed turn overwrites one flat JSON file per game:

    {base}/
      games/
        {slug}.json     ← GameState snapshot
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from pathlib import Path
from typing import Any

from adventure_engine.models import GameState

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    """Convert a title to a filesystem-safe slug.

    "Aria Stormborn" → "aria-stormborn"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "game"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._games = base_path / "games"
        self._games.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _game_file(self, slug: str) -> Path:
        return self._games / f"{slug}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        # Replace atomically.
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(path)

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def unique_slug(self, name: str) -> str:
        base = slugify(name)
        slug = base
        n = 2
        while self._game_file(slug).exists():
            slug = f"{base}-{n}"
            n += 1
        return slug

    def save_game(self, slug: str, state: GameState) -> None:
        self._write_json(self._game_file(slug), state.model_dump(mode="json"))
        logger.debug("saved game %s at turn %d", slug, state.turn)

    def load_game(self, slug: str) -> GameState | None:
        path = self._game_file(slug)
        if not path.exists():
            return None
        return GameState.model_validate(self._read_json(path))

    def list_games(self) -> list[str]:
        return sorted(p.stem for p in self._games.glob("*.json"))

    def delete_game(self, slug: str) -> bool:
        path = self._game_file(slug)
        if not path.exists():
            return False
        path.unlink()
        return True
