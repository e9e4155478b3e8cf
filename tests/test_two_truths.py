from __future__ import annotations

from arena.api.models import ErrorKind, GameStatus, TwoTruthsDetails, TwoTruthsView
from arena.config import EngineSettings
from arena.games.base import Player
from arena.registry import GameRegistry

GAME = "2-truths-and-a-lie"
STATEMENTS = ["I have two cats", "I climbed Kilimanjaro", "I hate chocolate"]


def _start(make_registry, *, players: int = 3, **settings) -> tuple[GameRegistry, str]:
    registry = make_registry(settings=EngineSettings(**settings))
    gid = registry.create_game(game_type=GAME, creator=Player("p1", "P1")).game_id
    for i in range(2, players + 1):
        assert registry.join_game(gid, Player(f"p{i}", f"P{i}")).success
    assert registry.dispatch_action(gid, "p1", {"type": "start_game"}).success
    return registry, gid


def _details(registry: GameRegistry, gid: str) -> TwoTruthsDetails:
    snap = registry.get_game(gid)
    assert snap is not None and isinstance(snap.details, TwoTruthsDetails)
    return snap.details


def _submit(registry: GameRegistry, gid: str, actor: str, *, lie_index: int = 2):
    return registry.dispatch_action(
        gid, actor, {"type": "submit_statements", "statements": STATEMENTS, "lie_index": lie_index}
    )


def test_start_sets_rotation_and_turn_budget(make_registry) -> None:
    registry, gid = _start(make_registry)
    details = _details(registry, gid)

    assert details.phase == "awaiting_statements"
    assert details.actor is not None and details.actor.player_id == "p1"
    assert details.turn == 1
    assert details.total_turns == 6
    assert details.prompt


def test_wrong_statement_count_is_rejected_without_change(make_registry) -> None:
    registry, gid = _start(make_registry)
    before = registry.get_game(gid)

    res = registry.dispatch_action(
        gid, "p1", {"type": "submit_statements", "statements": STATEMENTS[:2], "lie_index": 0}
    )
    assert not res.success and res.error_kind == ErrorKind.payload
    assert "exactly 3" in (res.error or "")

    res = registry.dispatch_action(
        gid, "p1", {"type": "submit_statements", "statements": ["a", " ", "c"], "lie_index": 0}
    )
    assert not res.success and res.error_kind == ErrorKind.payload

    res = _submit(registry, gid, "p1", lie_index=3)
    assert not res.success and res.error_kind == ErrorKind.payload
    assert registry.get_game(gid) == before


def test_only_actor_submits_and_actor_cannot_vote(make_registry) -> None:
    registry, gid = _start(make_registry)

    res = _submit(registry, gid, "p2")
    assert not res.success and res.error_kind == ErrorKind.authorization

    assert _submit(registry, gid, "p1").success
    res = registry.dispatch_action(gid, "p1", {"type": "submit_vote", "statement_index": 0})
    assert not res.success and res.error_kind == ErrorKind.authorization


def test_statements_hide_the_lie_until_reveal(make_registry) -> None:
    registry, gid = _start(make_registry)
    _submit(registry, gid, "p1", lie_index=1)

    details = _details(registry, gid)
    assert details.phase == "awaiting_votes"
    assert [s.text for s in details.statements] == STATEMENTS
    assert all(s.is_lie is None for s in details.statements)

    actor_view = registry.player_view(gid, "p1").details
    voter_view = registry.player_view(gid, "p2").details
    assert isinstance(actor_view, TwoTruthsView) and actor_view.lie_index == 1
    assert isinstance(voter_view, TwoTruthsView) and voter_view.lie_index is None


def test_correct_vote_scores_ten(make_registry) -> None:
    registry, gid = _start(make_registry)
    _submit(registry, gid, "p1", lie_index=2)

    registry.dispatch_action(gid, "p2", {"type": "submit_vote", "statement_index": 2})
    res = registry.dispatch_action(gid, "p1", {"type": "reveal"})
    assert res.success and res.game is not None

    assert res.game.scores == {"p1": 0, "p2": 10, "p3": 0}
    details = _details(registry, gid)
    assert details.phase == "revealed"
    assert [s.is_lie for s in details.statements] == [False, False, True]


def test_actor_scores_for_each_fooled_voter(make_registry) -> None:
    registry, gid = _start(make_registry)
    _submit(registry, gid, "p1", lie_index=0)

    registry.dispatch_action(gid, "p2", {"type": "submit_vote", "statement_index": 1})
    registry.dispatch_action(gid, "p3", {"type": "submit_vote", "statement_index": 2})
    assert _details(registry, gid).all_voted
    registry.dispatch_action(gid, "p1", {"type": "reveal"})

    snap = registry.get_game(gid)
    assert snap is not None
    assert snap.scores == {"p1": 10, "p2": 0, "p3": 0}
    result = _details(registry, gid).last_result
    assert result is not None and result.points_awarded == {"p1": 10}


def test_revote_overwrites_previous_vote(make_registry) -> None:
    registry, gid = _start(make_registry)
    _submit(registry, gid, "p1", lie_index=0)

    registry.dispatch_action(gid, "p2", {"type": "submit_vote", "statement_index": 1})
    registry.dispatch_action(gid, "p2", {"type": "submit_vote", "statement_index": 0})
    view = registry.player_view(gid, "p2").details
    assert isinstance(view, TwoTruthsView) and view.my_vote == 0

    res = registry.dispatch_action(gid, "p2", {"type": "submit_vote", "statement_index": 5})
    assert not res.success and res.error_kind == ErrorKind.payload


def test_full_game_rotates_twice_then_finishes(make_registry) -> None:
    registry, gid = _start(make_registry)

    actors = []
    for _ in range(6):
        actor = _details(registry, gid).actor
        assert actor is not None
        actors.append(actor.player_id)
        assert _submit(registry, gid, actor.player_id).success
        assert registry.dispatch_action(gid, actor.player_id, {"type": "reveal"}).success
        assert registry.dispatch_action(gid, actor.player_id, {"type": "next_turn"}).success

    assert actors == ["p1", "p2", "p3", "p1", "p2", "p3"]
    snap = registry.get_game(gid)
    assert snap is not None and snap.status == GameStatus.finished
    # Nobody voted, so everyone ties on zero.
    assert snap.details.winners == ["p1", "p2", "p3"]  # type: ignore[union-attr]


def test_current_round_counts_rotations(make_registry) -> None:
    registry, gid = _start(make_registry)
    for _ in range(3):
        actor = _details(registry, gid).actor.player_id  # type: ignore[union-attr]
        _submit(registry, gid, actor)
        registry.dispatch_action(gid, actor, {"type": "reveal"})
        registry.dispatch_action(gid, actor, {"type": "next_turn"})

    assert registry.get_game(gid).current_round == 2  # type: ignore[union-attr]
    assert _details(registry, gid).turn == 4


def test_statement_deadline_skips_the_actor(make_registry, clock) -> None:
    registry, gid = _start(make_registry)

    clock.advance(121)
    registry.expire_deadlines()
    details = _details(registry, gid)
    assert details.phase == "revealed"
    assert details.last_result is not None and details.last_result.skipped

    clock.advance(21)
    registry.expire_deadlines()
    details = _details(registry, gid)
    assert details.actor is not None and details.actor.player_id == "p2"
    assert details.phase == "awaiting_statements"


def test_voting_deadline_reveals(make_registry, clock) -> None:
    registry, gid = _start(make_registry)
    _submit(registry, gid, "p1", lie_index=1)
    registry.dispatch_action(gid, "p3", {"type": "submit_vote", "statement_index": 1})

    clock.advance(61)
    registry.expire_deadlines()
    assert _details(registry, gid).phase == "revealed"
    assert registry.get_game(gid).scores["p3"] == 10  # type: ignore[union-attr]


def test_actor_leaving_skips_turn(make_registry) -> None:
    registry, gid = _start(make_registry, players=4)
    _submit(registry, gid, "p1")

    registry.leave_game(gid, "p1")
    details = _details(registry, gid)
    assert details.actor is not None and details.actor.player_id == "p2"
    assert details.phase == "awaiting_statements"
    assert details.turn == 2


def test_rotation_survives_earlier_seat_and_actor_leaving(make_registry) -> None:
    registry, gid = _start(make_registry, players=5)
    for actor in ("p1", "p2"):
        assert _submit(registry, gid, actor).success
        assert registry.dispatch_action(gid, actor, {"type": "reveal"}).success
        assert registry.dispatch_action(gid, actor, {"type": "next_turn"}).success
    assert _details(registry, gid).actor.player_id == "p3"  # type: ignore[union-attr]

    assert registry.leave_game(gid, "p1").success
    assert registry.leave_game(gid, "p3").success

    details = _details(registry, gid)
    assert details.phase == "awaiting_statements"
    assert details.actor is not None and details.actor.player_id == "p4"
