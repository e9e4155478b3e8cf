from __future__ import annotations

import random

import pytest

from arena.api.models import GameStatus
from arena.bots import add_demo_bots, choose_bot_action, run_bots_once
from arena.config import EngineSettings
from arena.errors import GameNotFoundError
from arena.games.base import Player


def test_add_demo_bots_fills_to_minimum(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="degens-against-decency", creator=Player("human", "Human")).game_id

    added = add_demo_bots(registry, gid)
    assert len(added) == 2
    players = registry.get_game(gid).players  # type: ignore[union-attr]
    assert [p.is_bot for p in players] == [False, True, True]
    assert add_demo_bots(registry, gid) == []


def test_add_demo_bots_respects_capacity(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="poker", creator=Player("human", "Human"), max_players=3).game_id
    assert len(add_demo_bots(registry, gid, count=5)) == 2


def test_add_demo_bots_unknown_game(make_registry) -> None:
    with pytest.raises(GameNotFoundError):
        add_demo_bots(make_registry(), "missing")


@pytest.mark.parametrize("game_type", ["degens-against-decency", "2-truths-and-a-lie", "poker"])
def test_bots_play_a_game_to_completion(make_registry, game_type: str) -> None:
    registry = make_registry(settings=EngineSettings(card_match_rounds=3))
    gid = registry.create_game(game_type=game_type, creator=Player("bot-host", "Host", is_bot=True)).game_id
    add_demo_bots(registry, gid, count=2)

    for _ in range(500):
        result = run_bots_once(registry, gid, rng=random.Random(5))
        if result is None:
            break
        assert result.success, result.error

    assert registry.get_game(gid).status == GameStatus.finished  # type: ignore[union-attr]


def test_bots_leave_humans_alone(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="poker", creator=Player("human", "Human")).game_id
    bots = add_demo_bots(registry, gid)

    # Only the human host can start; the bots have nothing to do yet.
    assert run_bots_once(registry, gid) is None
    game = registry.game(gid)
    assert game is not None
    assert choose_bot_action(game, bots[0], rng=random.Random(0)) is None
