from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    structural = "structural"
    phase = "phase"
    authorization = "authorization"
    payload = "payload"


class GameError(ValueError):
    """A rejected game operation.

    Raised before any state is mutated; callers can always retry with a corrected action.
    """

    kind: ErrorKind = ErrorKind.structural


class StructuralError(GameError):
    """Unknown game type, game not found, roster full, duplicate join."""

    kind = ErrorKind.structural


class GameNotFoundError(StructuralError):
    pass


class PhaseError(GameError):
    """Wrong game status or round phase, including stale timeouts."""

    kind = ErrorKind.phase


class AuthorizationError(GameError):
    """Actor is not seated or does not hold the role the action needs."""

    kind = ErrorKind.authorization


class PayloadError(GameError):
    """Malformed action content."""

    kind = ErrorKind.payload
