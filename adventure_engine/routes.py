"""FastAPI endpoints under /api.

    GET    /api/health
    GET    /api/games                    list saved games
    POST   /api/games                    create a game (optionally entering a location)
    GET    /api/games/{slug}             current state snapshot
    DELETE /api/games/{slug}
    POST   /api/games/{slug}/turn        submit a player action
    POST   /api/games/{slug}/location    enter a new location / start a quest

One turn runs at a time per game; concurrent requests for the same game
wait on its lock.
"""

import asyncio
import random

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from adventure_engine.models import Character, GameState
from adventure_engine.pipeline import AdventureEngine, TurnError

router = APIRouter()

_TURN_ERROR_STATUS = {
    "unavailable": 503,
    "invalid_input": 400,
    "dead": 409,
}


class CreateGame(BaseModel):
    character_name: str = Field(min_length=2, max_length=30)
    class_name: str = "Warrior"
    location: str | None = None
    goal: str | None = None
    total_encounters: int | None = Field(default=None, ge=1, le=20)


class TurnBody(BaseModel):
    action: str


class LocationBody(BaseModel):
    location: str
    goal: str | None = None
    total_encounters: int | None = Field(default=None, ge=1, le=20)


def _engine(request: Request, slug: str) -> AdventureEngine:
    app_state = request.app.state
    engine = app_state.engines.get(slug)
    if engine is not None:
        return engine
    state = app_state.storage.load_game(slug)
    if state is None:
        raise HTTPException(404, "Game not found")
    seed = app_state.settings.rng_seed
    engine = AdventureEngine(
        generator=app_state.generator,
        state=state,
        config=app_state.config,
        rng=random.Random(seed) if seed is not None else random.Random(),
        persist=lambda s: app_state.storage.save_game(slug, s),
    )
    app_state.engines[slug] = engine
    return engine


def _lock(request: Request, slug: str) -> asyncio.Lock:
    return request.app.state.locks.setdefault(slug, asyncio.Lock())


def _turn_error(e: TurnError) -> HTTPException:
    return HTTPException(_TURN_ERROR_STATUS.get(e.kind, 500), str(e))


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/games")
async def list_games(request: Request):
    """List saved games."""
    return request.app.state.storage.list_games()


@router.post("/games")
async def create_game(request: Request, body: CreateGame):
    """Create a game; with a location the first quest starts immediately."""
    storage = request.app.state.storage
    slug = storage.unique_slug(body.character_name)
    state = GameState(character=Character(name=body.character_name, class_name=body.class_name))
    storage.save_game(slug, state)

    if body.location is None:
        return {"slug": slug, "state": state}

    engine = _engine(request, slug)
    async with _lock(request, slug):
        try:
            result = await engine.enter_location(body.location, body.goal, body.total_encounters)
        except TurnError as e:
            raise _turn_error(e)
    return {"slug": slug, "result": result}


@router.get("/games/{slug}")
async def get_game(request: Request, slug: str):
    """Current committed state of a game."""
    return _engine(request, slug).state


@router.delete("/games/{slug}")
async def delete_game(request: Request, slug: str):
    """Delete a saved game."""
    request.app.state.engines.pop(slug, None)
    request.app.state.locks.pop(slug, None)
    if not request.app.state.storage.delete_game(slug):
        raise HTTPException(404, "Game not found")
    return {"ok": True}


@router.post("/games/{slug}/turn")
async def play_turn(request: Request, slug: str, body: TurnBody):
    """Submit one player action and return the turn's events."""
    engine = _engine(request, slug)
    async with _lock(request, slug):
        try:
            return await engine.advance_turn(body.action)
        except TurnError as e:
            raise _turn_error(e)


@router.post("/games/{slug}/location")
async def enter_location(request: Request, slug: str, body: LocationBody):
    """Travel to a new location and start its quest."""
    engine = _engine(request, slug)
    async with _lock(request, slug):
        try:
            return await engine.enter_location(body.location, body.goal, body.total_encounters)
        except TurnError as e:
            raise _turn_error(e)
