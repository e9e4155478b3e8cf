from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from arena.api.models import (
    ActionResult,
    CreatedGame,
    GameAction,
    GameSnapshot,
    GameStatus,
    GameType,
    LobbyGame,
    PlayerView,
    TimeoutAction,
)
from arena.assets.registry import GameAssets
from arena.assets.singleton import get_assets
from arena.config import EngineSettings, get_settings
from arena.errors import AuthorizationError, GameError, GameNotFoundError, PayloadError, StructuralError
from arena.games.base import Game, GameLifecycle, Player
from arena.games.card_match import CardMatchGame
from arena.games.poker import StudPokerGame
from arena.games.two_truths import TwoTruthsGame
from arena.notify import Delivery, NullNotifier, Notifier
from arena.turn_processing.validators import SYSTEM_ACTOR

logger = logging.getLogger(__name__)

GameFactory = Callable[[GameLifecycle], Game]

_ACTION_ADAPTER: TypeAdapter[GameAction] = TypeAdapter(GameAction)


def parse_action(raw: Mapping[str, Any]) -> GameAction:
    """Validate a raw action dict into the typed action union."""

    try:
        return _ACTION_ADAPTER.validate_python(dict(raw))
    except ValidationError as e:
        raise PayloadError(f"Invalid action payload: {e.errors(include_url=False)}") from e


class GameRegistry:
    """Creates, tracks and discards games; the only writer of game state.

    Every entry point runs to completion synchronously. State is mutated first and the
    notifier is called afterwards; a failing notifier never undoes an applied action.
    """

    def __init__(
        self,
        *,
        settings: EngineSettings | None = None,
        assets: GameAssets | None = None,
        notifier: Notifier | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        factories: Mapping[GameType, GameFactory] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._assets = assets
        self.notifier: Notifier = notifier or NullNotifier()
        self.rng = rng or random.Random()
        self.clock = clock
        self._games: dict[str, Game] = {}
        self._factories: dict[GameType, GameFactory] = {
            GameType.degens_against_decency: lambda lc: CardMatchGame(lc, assets=self.assets),
            GameType.two_truths_and_a_lie: lambda lc: TwoTruthsGame(lc, assets=self.assets),
            GameType.poker: lambda lc: StudPokerGame(lc),
        }
        self._factories.update(factories or {})

    @property
    def assets(self) -> GameAssets:
        if self._assets is None:
            self._assets = get_assets()
        return self._assets

    def __len__(self) -> int:
        return len(self._games)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._games

    # ---- lookup ----

    def game(self, game_id: str) -> Game | None:
        return self._games.get(game_id)

    def _require(self, game_id: str) -> Game:
        game = self._games.get(game_id)
        if game is None:
            raise GameNotFoundError("Game not found")
        return game

    def get_game(self, game_id: str) -> GameSnapshot | None:
        game = self._games.get(game_id)
        return game.snapshot() if game is not None else None

    def player_view(self, game_id: str, player_id: str) -> PlayerView:
        return self._require(game_id).player_view(player_id)

    def list_public_games(self) -> list[LobbyGame]:
        return [
            LobbyGame(
                game_id=lc.game_id,
                game_type=lc.game_type,
                creator=lc.creator.display_name,
                current_players=len(lc.players),
                max_players=lc.max_players,
                status=lc.status,
            )
            for lc in (g.lifecycle for g in self._games.values())
            if not lc.is_private and lc.status != GameStatus.finished
        ]

    def games_for_player(self, player_id: str) -> list[str]:
        return [gid for gid, g in self._games.items() if g.lifecycle.has_player(player_id)]

    # ---- lifecycle ----

    def create_game(
        self,
        *,
        game_type: GameType | str,
        creator: Player,
        is_private: bool = False,
        max_players: int = 7,
    ) -> CreatedGame:
        try:
            gt = GameType(game_type)
        except ValueError as e:
            raise StructuralError(f"Unknown game type: {game_type}") from e

        game_id = str(uuid4())
        lifecycle = GameLifecycle(
            game_id=game_id,
            game_type=gt,
            creator=creator,
            is_private=is_private,
            max_players=max_players,
            settings=self.settings,
            rng=random.Random(self.rng.getrandbits(64)),
            clock=self.clock,
        )
        game = self._factories[gt](lifecycle)
        self._games[game_id] = game
        logger.info("game %s created type=%s creator=%s private=%s", game_id, gt.value, creator.player_id, is_private)

        self._publish(game, lobby=True)
        return CreatedGame(
            game_id=game_id,
            game_type=gt,
            creator=creator.display_name,
            is_private=is_private,
            max_players=lifecycle.max_players,
            current_players=len(lifecycle.players),
            status=lifecycle.status,
        )

    def join_game(self, game_id: str, player: Player) -> ActionResult:
        def _join(game: Game) -> None:
            game.add_player(player)
            logger.info("game %s joined by %s", game_id, player.player_id)

        return self._apply(game_id, _join, lobby=True)

    def leave_game(self, game_id: str, player_id: str) -> ActionResult:
        def _leave(game: Game) -> None:
            if not game.remove_player(player_id):
                raise StructuralError("Player is not in this game")
            logger.info("game %s left by %s", game_id, player_id)

        result = self._apply(game_id, _leave, lobby=True)
        game = self._games.get(game_id)
        if result.success and game is not None and not game.lifecycle.players:
            del self._games[game_id]
            logger.info("game %s discarded (empty roster)", game_id)
            self._publish_lobby()
        return result

    def disconnect(self, player_id: str) -> list[str]:
        """Leave every game the player is seated in; returns the affected game ids."""

        left = self.games_for_player(player_id)
        for gid in left:
            self.leave_game(gid, player_id)
        return left

    # ---- actions ----

    def dispatch_action(self, game_id: str, player_id: str, action: GameAction | Mapping[str, Any]) -> ActionResult:
        try:
            typed = parse_action(action) if isinstance(action, Mapping) else action
            if isinstance(typed, TimeoutAction):
                raise AuthorizationError("Timeout actions are internal")
        except GameError as e:
            return self._failure(game_id, player_id, e)

        return self._apply(game_id, lambda game: game.handle_action(player_id, typed), actor=player_id)

    def expire_deadlines(self, now: float | None = None) -> list[str]:
        """Fire every due deadline as a timeout action; returns the games that advanced."""

        now = self.clock() if now is None else now
        due = [
            (gid, game.lifecycle.deadline)
            for gid, game in list(self._games.items())
            if game.lifecycle.deadline is not None and game.lifecycle.deadline.due_at <= now
        ]

        advanced: list[str] = []
        for gid, deadline in due:
            assert deadline is not None
            logger.info("game %s deadline expired phase=%s round=%s", gid, deadline.phase, deadline.round)
            action = deadline.as_action()
            result = self._apply(gid, lambda game: game.handle_action(SYSTEM_ACTOR, action), actor=SYSTEM_ACTOR)
            if result.success:
                advanced.append(gid)
        return advanced

    # ---- internals ----

    def _apply(
        self,
        game_id: str,
        mutate: Callable[[Game], None],
        *,
        actor: str | None = None,
        lobby: bool = False,
    ) -> ActionResult:
        try:
            game = self._require(game_id)
            status_before = game.lifecycle.status
            mutate(game)
        except GameError as e:
            return self._failure(game_id, actor, e)

        status_changed = game.lifecycle.status != status_before
        if status_changed:
            logger.info("game %s status %s -> %s", game_id, status_before.value, game.lifecycle.status.value)
        snapshot = self._publish(game, lobby=lobby or status_changed)
        return ActionResult(success=True, game=snapshot)

    def _failure(self, game_id: str, actor: str | None, e: GameError) -> ActionResult:
        logger.info("game %s rejected action from %s: %s (%s)", game_id, actor, e, e.kind.value)
        return ActionResult(success=False, error=str(e), error_kind=e.kind)

    def _publish(self, game: Game, *, lobby: bool) -> GameSnapshot:
        snapshot = game.snapshot()
        deliveries = [
            Delivery(player_id=p.player_id, channel=p.channel, view=game.player_view(p.player_id))
            for p in game.lifecycle.players
        ]
        try:
            self.notifier.game_changed(snapshot, deliveries)
        except Exception:
            logger.exception("notifier failed for game %s", game.lifecycle.game_id)
        if lobby:
            self._publish_lobby()
        return snapshot

    def _publish_lobby(self) -> None:
        try:
            self.notifier.lobby_changed(self.list_public_games())
        except Exception:
            logger.exception("notifier failed for lobby update")
