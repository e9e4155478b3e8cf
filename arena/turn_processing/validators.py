from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from arena.api.models import GameStatus
from arena.errors import AuthorizationError, PayloadError, PhaseError
from arena.games.base import GameLifecycle

SYSTEM_ACTOR = "__system__"


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    game_id: str
    player_id: str
    action: str


class TurnValidator(ABC):
    """A small, composable validation unit for an incoming action.

    `game` is any game object exposing `lifecycle` and, for phase-gated games, `phase`.
    """

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        raise NotImplementedError


def _lifecycle(game: Any) -> GameLifecycle:
    return game.lifecycle


@dataclass(frozen=True, slots=True)
class StatusValidator(TurnValidator):
    allowed: frozenset[GameStatus]

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        status = _lifecycle(game).status
        if status not in self.allowed:
            if status == GameStatus.finished:
                raise PhaseError("Game is finished")
            allowed = ",".join(sorted(s.value for s in self.allowed))
            raise PhaseError(f"Action '{ctx.action}' not allowed while game is '{status.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class PhaseValidator(TurnValidator):
    """Validates the current round/turn phase for a given action."""

    allowed_phases: frozenset[str]

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        phase = game.phase
        if phase not in self.allowed_phases:
            allowed = ",".join(sorted(self.allowed_phases))
            raise PhaseError(f"Action '{ctx.action}' not allowed in phase '{phase}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class SeatedValidator(TurnValidator):
    """The acting player must be in the roster."""

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        if not _lifecycle(game).has_player(ctx.player_id):
            raise AuthorizationError("Player is not in this game")


@dataclass(frozen=True, slots=True)
class HostValidator(TurnValidator):
    """The creator, or whoever inherited hosting after the creator left."""

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        if ctx.player_id != _lifecycle(game).host_id:
            raise AuthorizationError(f"Only the game host can {ctx.action.replace('_', ' ')}")


@dataclass(frozen=True, slots=True)
class SystemValidator(TurnValidator):
    """Only the engine itself may send this action (deadline timeouts)."""

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        if ctx.player_id != SYSTEM_ACTOR:
            raise AuthorizationError(f"Action '{ctx.action}' is internal")


@dataclass(frozen=True, slots=True)
class RoleValidator(TurnValidator):
    """The acting player must (or must not) hold a role such as judge or current bettor.

    `holder` returns the player id currently holding the role (or None).
    """

    role: str
    holder: Callable[[Any], str | None]
    required: bool = True
    allow_host: bool = False

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        holds = self.holder(game) == ctx.player_id
        if self.required and not holds:
            if self.allow_host and ctx.player_id == _lifecycle(game).host_id:
                return
            raise AuthorizationError(f"Only the {self.role} can {ctx.action.replace('_', ' ')}")
        if not self.required and holds:
            raise AuthorizationError(f"The {self.role} cannot {ctx.action.replace('_', ' ')}")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[TurnValidator, ...]

    def validate(self, *, ctx: ValidationContext, game: Any) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, game=game)


PLAYING = frozenset({GameStatus.playing})

START_GAME_PIPELINE = ValidatorPipeline(
    validators=(
        SeatedValidator(),
        StatusValidator(allowed=frozenset({GameStatus.waiting})),
        HostValidator(),
    )
)

TIMEOUT_PIPELINE = ValidatorPipeline(validators=(SystemValidator(), StatusValidator(allowed=PLAYING)))


def playing_pipeline(*validators: TurnValidator, phases: frozenset[str] | None = None) -> ValidatorPipeline:
    """Seated + game playing (+ optional phase gate) followed by action-specific checks."""

    base: list[TurnValidator] = [SeatedValidator(), StatusValidator(allowed=PLAYING)]
    if phases is not None:
        base.append(PhaseValidator(allowed_phases=phases))
    return ValidatorPipeline(validators=(*base, *validators))


def pipeline_for_action(pipelines: Mapping[str, ValidatorPipeline], action: str, *, game_type: str) -> ValidatorPipeline:
    pipe = pipelines.get(action)
    if pipe is None:
        raise PayloadError(f"Unknown action for {game_type}: {action}")
    return pipe
