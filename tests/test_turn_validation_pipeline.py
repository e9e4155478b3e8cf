from __future__ import annotations

import pytest

from arena.api.models import GameType
from arena.config import EngineSettings
from arena.errors import AuthorizationError, PayloadError, PhaseError
from arena.games.base import GameLifecycle, Player
from arena.turn_processing.turns import first_eligible_from, next_in_rotation
from arena.turn_processing.validators import (
    SYSTEM_ACTOR,
    TIMEOUT_PIPELINE,
    PhaseValidator,
    RoleValidator,
    ValidationContext,
    pipeline_for_action,
    playing_pipeline,
)


class _Game:
    def __init__(self, *, phase: str | None = None, judge: str | None = None) -> None:
        self.lifecycle = GameLifecycle(
            game_id="g1",
            game_type=GameType.degens_against_decency,
            creator=Player("p1", "Alice"),
            settings=EngineSettings(min_players=2),
        )
        self.lifecycle.add_player(Player("p2", "Bob"))
        self.phase = phase
        self.judge = judge


def _ctx(player_id: str, action: str = "submit_card") -> ValidationContext:
    return ValidationContext(game_id="g1", player_id=player_id, action=action)


def test_phase_validator_denies_wrong_phase() -> None:
    game = _Game(phase="judging")
    with pytest.raises(PhaseError) as e:
        PhaseValidator(allowed_phases=frozenset({"dealt"})).validate(ctx=_ctx("p1"), game=game)

    assert "not allowed" in str(e.value)
    assert "judging" in str(e.value)


def test_playing_pipeline_checks_seat_before_status() -> None:
    game = _Game(phase="dealt")
    pipe = playing_pipeline(phases=frozenset({"dealt"}))

    with pytest.raises(AuthorizationError):
        pipe.validate(ctx=_ctx("stranger"), game=game)
    with pytest.raises(PhaseError, match="waiting"):
        pipe.validate(ctx=_ctx("p1"), game=game)


def test_finished_game_reports_finished() -> None:
    game = _Game(phase="dealt")
    game.lifecycle.finish()
    with pytest.raises(PhaseError) as e:
        playing_pipeline().validate(ctx=_ctx("p1"), game=game)
    assert str(e.value) == "Game is finished"


def test_role_validator_requires_and_forbids_roles() -> None:
    game = _Game(judge="p2")
    must = RoleValidator(role="judge", holder=lambda g: g.judge)
    must_not = RoleValidator(role="judge", holder=lambda g: g.judge, required=False)
    or_host = RoleValidator(role="judge", holder=lambda g: g.judge, allow_host=True)

    must.validate(ctx=_ctx("p2"), game=game)
    with pytest.raises(AuthorizationError, match="Only the judge"):
        must.validate(ctx=_ctx("p1"), game=game)

    must_not.validate(ctx=_ctx("p1"), game=game)
    with pytest.raises(AuthorizationError, match="The judge cannot"):
        must_not.validate(ctx=_ctx("p2"), game=game)

    or_host.validate(ctx=_ctx("p1"), game=game)


def test_timeout_pipeline_is_system_only() -> None:
    game = _Game()
    game.lifecycle.start()
    with pytest.raises(AuthorizationError):
        TIMEOUT_PIPELINE.validate(ctx=_ctx("p1", "timeout"), game=game)
    TIMEOUT_PIPELINE.validate(ctx=_ctx(SYSTEM_ACTOR, "timeout"), game=game)


def test_unknown_action_pipeline_raises() -> None:
    with pytest.raises(PayloadError) as e:
        pipeline_for_action({}, "nope", game_type="poker")
    assert "Unknown action" in str(e.value)


def test_rotation_wraps_and_skips_ineligible() -> None:
    order = ["a", "b", "c", "d"]
    assert next_in_rotation(order, "d") == "a"
    assert next_in_rotation(order, "a", eligible=lambda p: p != "b") == "c"
    assert next_in_rotation(order, "a", eligible=lambda p: False) is None
    assert next_in_rotation([], "a") is None


def test_rotation_resumes_at_departed_players_seat() -> None:
    # "b" sat at seat 1 and left; whoever moved into seat 1 is next.
    assert next_in_rotation(["a", "c", "d"], "b", fallback_index=1) == "c"
    assert first_eligible_from(["a", "b", "c"], 1, eligible=lambda p: p != "b") == "c"
