from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Tunable engine values.

    Deadline durations are in seconds; 0 disables that deadline.
    """

    min_players: int = 3
    min_capacity: int = 3
    max_capacity: int = 7

    # degens-against-decency
    card_match_rounds: int = 10
    cards_per_hand: int = 7

    # 2-truths-and-a-lie
    two_truths_turns_per_player: int = 2
    points_for_correct_guess: int = 10
    points_for_fooling: int = 5

    # poker
    small_blind: int = 5
    big_blind: int = 10
    starting_stack: int = 1000

    submission_timeout_s: float = 90.0
    judging_timeout_s: float = 60.0
    reveal_timeout_s: float = 20.0
    statements_timeout_s: float = 120.0
    voting_timeout_s: float = 60.0
    bet_timeout_s: float = 45.0

    sweep_interval_s: float = 1.0

    strict_assets: bool = False
    mailbox_enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"


_ENV_PREFIX = "ARENA_"


def _coerce(raw: str, current: object) -> object:
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def load_settings(env: Mapping[str, str] | None = None) -> EngineSettings:
    """Build settings from `ARENA_<FIELD>` environment variables.

    `REDIS_URL` is read without the prefix to match the usual deployment convention.
    """

    source = os.environ if env is None else env
    defaults = EngineSettings()
    overrides: dict[str, object] = {}

    for f in fields(EngineSettings):
        key = _ENV_PREFIX + f.name.upper()
        if key in source:
            try:
                overrides[f.name] = _coerce(source[key], getattr(defaults, f.name))
            except ValueError as e:
                raise ValueError(f"Invalid value for {key}: {source[key]!r}") from e

    if "REDIS_URL" in source and "redis_url" not in overrides:
        overrides["redis_url"] = source["REDIS_URL"]

    return EngineSettings(**overrides)  # type: ignore[arg-type]


_SETTINGS: EngineSettings | None = None


def get_settings() -> EngineSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS


def reset_settings_for_tests() -> None:
    global _SETTINGS
    _SETTINGS = None
