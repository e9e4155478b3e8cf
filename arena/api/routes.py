from __future__ import annotations

from typing import Any

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from arena.api.deps import get_redis, get_registry
from arena.api.models import (
    ActionResult,
    BotFillRequest,
    CreatedGame,
    GameCreateRequest,
    GameSnapshot,
    LobbyListResponse,
    PlayerIn,
    PlayerView,
)
from arena.bots import add_demo_bots, run_bots_once
from arena.errors import GameError, GameNotFoundError
from arena.games.base import Player
from arena.registry import GameRegistry
from arena.streams import Mailbox, read_mailbox
from arena.websocket_hub import LOBBY_TOPIC, hub

router = APIRouter()


def _player(p: PlayerIn) -> Player:
    return Player(player_id=p.player_id, display_name=p.display_name or p.player_id, is_bot=p.is_bot)


def _http_error(e: GameError) -> HTTPException:
    if isinstance(e, GameNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


def _require_game(registry: GameRegistry, game_id: str) -> None:
    if game_id not in registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")


def _raise_for_result(result: ActionResult) -> None:
    if result.success:
        return
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"error": result.error, "error_kind": result.error_kind},
    )


async def _announce(game_id: str, result: ActionResult | None = None) -> None:
    snap = result.game if result is not None else None
    await hub.game_updated(game_id, status=snap.status.value if snap is not None else None)
    await hub.lobby_updated()


async def _follow(topic: str, websocket: WebSocket) -> None:
    await hub.connect(topic, websocket)
    try:
        # Inbound frames are ignored; clients may send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(topic, websocket)


@router.websocket("/ws/game/{game_id}")
async def game_updates_ws(websocket: WebSocket, game_id: str) -> None:
    await _follow(game_id, websocket)


@router.websocket("/ws/lobby")
async def lobby_updates_ws(websocket: WebSocket) -> None:
    await _follow(LOBBY_TOPIC, websocket)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/games", response_model=CreatedGame, status_code=status.HTTP_201_CREATED)
async def create_game_route(payload: GameCreateRequest, registry: GameRegistry = Depends(get_registry)) -> CreatedGame:
    try:
        created = registry.create_game(
            game_type=payload.game_type,
            creator=_player(payload.creator),
            is_private=payload.is_private,
            max_players=payload.max_players,
        )
    except GameError as e:
        raise _http_error(e) from e

    await hub.lobby_updated()
    return created


@router.get("/games", response_model=LobbyListResponse)
async def list_games_route(registry: GameRegistry = Depends(get_registry)) -> LobbyListResponse:
    return LobbyListResponse(games=registry.list_public_games())


@router.get("/games/{game_id}", response_model=GameSnapshot)
async def get_game_route(game_id: str, registry: GameRegistry = Depends(get_registry)) -> GameSnapshot:
    snap = registry.get_game(game_id)
    if snap is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return snap


@router.get("/games/{game_id}/players/{player_id}/view", response_model=PlayerView)
async def player_view_route(game_id: str, player_id: str, registry: GameRegistry = Depends(get_registry)) -> PlayerView:
    try:
        return registry.player_view(game_id, player_id)
    except GameError as e:
        raise _http_error(e) from e


@router.post("/games/{game_id}/players", response_model=ActionResult)
async def join_game_route(game_id: str, payload: PlayerIn, registry: GameRegistry = Depends(get_registry)) -> ActionResult:
    _require_game(registry, game_id)
    result = registry.join_game(game_id, _player(payload))
    _raise_for_result(result)
    await _announce(game_id, result)
    return result


@router.delete("/games/{game_id}/players/{player_id}", response_model=ActionResult)
async def leave_game_route(game_id: str, player_id: str, registry: GameRegistry = Depends(get_registry)) -> ActionResult:
    _require_game(registry, game_id)
    result = registry.leave_game(game_id, player_id)
    _raise_for_result(result)
    await _announce(game_id, result)
    return result


@router.post("/games/{game_id}/actions", response_model=ActionResult)
async def action_route(game_id: str, body: dict[str, Any], registry: GameRegistry = Depends(get_registry)) -> ActionResult:
    """Apply one typed action, e.g. `{"player_id": "p1", "action": {"type": "start_game"}}`.

    Rejected moves come back as 422 with the error kind; the game is left untouched.
    """

    _require_game(registry, game_id)
    pid = body.get("player_id")
    if not pid:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="player_id is required")
    action = body.get("action")
    if not isinstance(action, dict):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="action must be an object")

    result = registry.dispatch_action(game_id, str(pid), action)
    _raise_for_result(result)
    await _announce(game_id, result)
    return result


@router.post("/games/{game_id}/bots")
async def add_bots_route(
    game_id: str,
    payload: BotFillRequest | None = None,
    registry: GameRegistry = Depends(get_registry),
) -> dict[str, object]:
    """Dev endpoint: seat demo bots so a game can be tried alone."""

    try:
        added = add_demo_bots(registry, game_id, count=payload.count if payload else None)
    except GameError as e:
        raise _http_error(e) from e

    if added:
        await _announce(game_id)
    return {"game_id": game_id, "added": added}


@router.post("/games/{game_id}/bots/run_once", response_model=ActionResult | None)
async def run_bots_once_route(game_id: str, registry: GameRegistry = Depends(get_registry)) -> ActionResult | None:
    """Dev endpoint: let one bot act, if any bot has a legal move."""

    try:
        result = run_bots_once(registry, game_id)
    except GameError as e:
        raise _http_error(e) from e

    if result is not None and result.success:
        await _announce(game_id, result)
    return result


@router.get("/games/{game_id}/players/{player_id}/mailbox")
async def get_player_mailbox_route(
    game_id: str,
    player_id: str,
    count: int = 20,
    start: str = "-",
    end: str = "+",
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read a player's mailbox Redis Stream.

    Intended for local/dev testing when redis-cli isn't available.
    """

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    mailbox = Mailbox(game_id=game_id, player_id=player_id)
    try:
        messages = read_mailbox(r=r, mailbox=mailbox, start=start, end=end, count=count)
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return {"game_id": game_id, "player_id": player_id, "stream": mailbox.key, "messages": messages}
