from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from arena.api.models import GameSnapshot, LobbyGame, PlayerView


@dataclass(frozen=True, slots=True)
class Delivery:
    """One player's share of a game update."""

    player_id: str
    # Opaque handle supplied when the player joined; the engine never looks inside.
    channel: Any
    view: PlayerView


class Notifier(Protocol):
    """Receives updates after state has already changed.

    Implementations must not call back into the registry.
    """

    def lobby_changed(self, games: Sequence[LobbyGame]) -> None: ...

    def game_changed(self, snapshot: GameSnapshot, deliveries: Sequence[Delivery]) -> None: ...


class NullNotifier:
    def lobby_changed(self, games: Sequence[LobbyGame]) -> None:
        return None

    def game_changed(self, snapshot: GameSnapshot, deliveries: Sequence[Delivery]) -> None:
        return None
