from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from arena.api.models import (
    GameAction,
    GameDetails,
    GameSnapshot,
    GameStatus,
    GameType,
    PlayerSummary,
    PlayerView,
    TimeoutAction,
)
from arena.config import EngineSettings
from arena.errors import AuthorizationError, PhaseError, StructuralError
from arena.fsm import LifecycleFSM

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(slots=True)
class Player:
    player_id: str
    display_name: str
    is_bot: bool = False
    # Opaque notification handle owned by the transport; only ever forwarded.
    channel: Any = None

    def summary(self) -> PlayerSummary:
        return PlayerSummary(player_id=self.player_id, display_name=self.display_name, is_bot=self.is_bot)


@dataclass(frozen=True, slots=True)
class Deadline:
    """Soft deadline for the current phase; firing it is just another action."""

    token: int
    round: int
    phase: str
    due_at: float

    def as_action(self) -> TimeoutAction:
        return TimeoutAction(token=self.token, round=self.round, phase=self.phase)


def clamp_capacity(max_players: int, *, settings: EngineSettings) -> int:
    return max(settings.min_capacity, min(int(max_players), settings.max_capacity))


class GameLifecycle:
    """Roster, capacity, creator, scores, status and deadline shared by every game type.

    Purely structural: no timers are armed and no I/O is performed here.
    """

    def __init__(
        self,
        *,
        game_id: str,
        game_type: GameType,
        creator: Player,
        is_private: bool = False,
        max_players: int = 7,
        settings: EngineSettings,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.game_id = game_id
        self.game_type = game_type
        self.creator = creator
        self.is_private = is_private
        self.max_players = clamp_capacity(max_players, settings=settings)
        self.settings = settings
        self.rng = rng or random.Random()
        self.clock = clock

        self.host_id = creator.player_id
        self.players: list[Player] = [creator]
        self.scores: dict[str, int] = {creator.player_id: 0}
        self.current_round = 0
        self.winners: list[str] = []
        self.deadline: Deadline | None = None
        self._deadline_seq = 0
        self._fsm = LifecycleFSM()

    # ---- roster ----

    @property
    def status(self) -> GameStatus:
        return GameStatus(self._fsm.phase)

    @property
    def player_ids(self) -> list[str]:
        return [p.player_id for p in self.players]

    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def has_player(self, player_id: str) -> bool:
        return any(p.player_id == player_id for p in self.players)

    def get_player(self, player_id: str) -> Player | None:
        return next((p for p in self.players if p.player_id == player_id), None)

    def require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise AuthorizationError("Player is not in this game")
        return player

    def seat_of(self, player_id: str) -> int:
        for idx, p in enumerate(self.players):
            if p.player_id == player_id:
                return idx
        raise AuthorizationError("Player is not in this game")

    def add_player(self, player: Player) -> None:
        if self.has_player(player.player_id):
            raise StructuralError("Player already in game")
        if self.is_full():
            raise StructuralError("Game is full")
        if self.status != GameStatus.waiting:
            raise PhaseError("Game already started")

        self.players.append(player)
        self.scores.setdefault(player.player_id, 0)

    def remove_player(self, player_id: str) -> bool:
        before = len(self.players)
        self.players = [p for p in self.players if p.player_id != player_id]
        if player_id == self.host_id and self.players:
            # Hosting passes to the longest-seated remaining player.
            self.host_id = self.players[0].player_id
        return len(self.players) != before

    # ---- status ----

    def start(self) -> None:
        if len(self.players) < self.settings.min_players:
            raise StructuralError(f"Need at least {self.settings.min_players} players to start")
        self._fsm.fire("begin")
        self.current_round = 1

    def finish(self) -> None:
        if self.status == GameStatus.finished:
            return
        self._fsm.fire("conclude")
        self.clear_deadline()
        self.winners = self.leaders()
        logger.info("game %s finished winners=%s", self.game_id, self.winners)

    def award(self, player_id: str, points: int) -> None:
        if points < 0:
            raise ValueError("Scores never decrease")
        self.scores[player_id] = self.scores.get(player_id, 0) + points

    def leaders(self) -> list[str]:
        """Highest-scoring seated players; ties are co-winners."""

        seated = [pid for pid in self.player_ids if pid in self.scores]
        if not seated:
            return []
        best = max(self.scores[pid] for pid in seated)
        return [pid for pid in seated if self.scores[pid] == best]

    # ---- deadlines ----

    def schedule(self, *, phase: str, seconds: float) -> None:
        """Replace the current deadline; non-positive durations only cancel it."""

        self._deadline_seq += 1
        if seconds <= 0:
            self.deadline = None
            return
        self.deadline = Deadline(
            token=self._deadline_seq,
            round=self.current_round,
            phase=phase,
            due_at=self.clock() + seconds,
        )

    def clear_deadline(self) -> None:
        self._deadline_seq += 1
        self.deadline = None

    def consume_deadline(self, action: TimeoutAction) -> Deadline:
        """Accept a timeout only if it still matches the armed deadline."""

        d = self.deadline
        if d is None or (d.token, d.round, d.phase) != (action.token, action.round, action.phase):
            raise PhaseError("Stale timeout")
        self.deadline = None
        return d

    # ---- projection ----

    def snapshot(self, *, details: GameDetails) -> GameSnapshot:
        return GameSnapshot(
            game_id=self.game_id,
            game_type=self.game_type,
            creator=self.creator.summary(),
            host_id=self.host_id,
            is_private=self.is_private,
            max_players=self.max_players,
            players=[p.summary() for p in self.players],
            status=self.status,
            current_round=self.current_round,
            scores=dict(self.scores),
            details=details,
        )


class Game(Protocol):
    """Contract every game type implements; the registry only talks to this."""

    game_type: GameType
    lifecycle: GameLifecycle

    def add_player(self, player: Player) -> None: ...

    def remove_player(self, player_id: str) -> bool: ...

    def snapshot(self) -> GameSnapshot: ...

    def player_view(self, player_id: str) -> PlayerView: ...

    def handle_action(self, player_id: str, action: GameAction) -> None: ...
