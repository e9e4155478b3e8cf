from __future__ import annotations

import logging

import pytest

from arena.api.models import CardMatchView, ErrorKind, GameStatus
from arena.errors import StructuralError
from arena.games.base import Player


class RecordingNotifier:
    def __init__(self) -> None:
        self.lobby: list[list[str]] = []
        self.games: list[tuple[str, list[tuple[str, object]]]] = []

    def lobby_changed(self, games) -> None:
        self.lobby.append([g.game_id for g in games])

    def game_changed(self, snapshot, deliveries) -> None:
        self.games.append((snapshot.game_id, [(d.player_id, d.channel) for d in deliveries]))
        self.last_deliveries = list(deliveries)


class ExplodingNotifier:
    def lobby_changed(self, games) -> None:
        raise RuntimeError("lobby down")

    def game_changed(self, snapshot, deliveries) -> None:
        raise RuntimeError("mailbox down")


def _join_all(registry, gid: str, *pids: str) -> None:
    for pid in pids:
        assert registry.join_game(gid, Player(pid, pid.upper())).success


def test_create_game_returns_summary_and_clamps_capacity(make_registry) -> None:
    registry = make_registry()
    created = registry.create_game(game_type="poker", creator=Player("p1", "Alice"), max_players=12)

    assert created.creator == "Alice"
    assert created.max_players == 7
    assert created.current_players == 1
    assert created.status == GameStatus.waiting
    assert created.game_id in registry


def test_unknown_game_type_is_structural_error(make_registry) -> None:
    registry = make_registry()
    with pytest.raises(StructuralError, match="Unknown game type"):
        registry.create_game(game_type="chess", creator=Player("p1", "Alice"))
    assert len(registry) == 0


def test_lobby_lists_only_public_unfinished_games(make_registry) -> None:
    registry = make_registry()
    public = registry.create_game(game_type="poker", creator=Player("p1", "Alice")).game_id
    registry.create_game(game_type="poker", creator=Player("p2", "Bob"), is_private=True)
    finished = registry.create_game(game_type="2-truths-and-a-lie", creator=Player("p3", "Cara")).game_id
    registry.game(finished).lifecycle.finish()  # type: ignore[union-attr]

    assert [g.game_id for g in registry.list_public_games()] == [public]


def test_duplicate_and_overflow_joins_fail(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="poker", creator=Player("p1", "Alice"), max_players=3).game_id
    _join_all(registry, gid, "p2", "p3")

    res = registry.join_game(gid, Player("p2", "Again"))
    assert not res.success and res.error_kind == ErrorKind.structural

    res = registry.join_game(gid, Player("p4", "Dan"))
    assert not res.success and res.error == "Game is full"
    assert len(registry.get_game(gid).players) == 3  # type: ignore[union-attr]


def test_join_after_start_is_a_phase_error(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="degens-against-decency", creator=Player("p1", "Alice")).game_id
    _join_all(registry, gid, "p2", "p3")
    assert registry.dispatch_action(gid, "p1", {"type": "start_game"}).success

    res = registry.join_game(gid, Player("p4", "Dan"))
    assert not res.success and res.error_kind == ErrorKind.phase


def test_only_host_starts_with_enough_players(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="2-truths-and-a-lie", creator=Player("p1", "Alice")).game_id
    _join_all(registry, gid, "p2")

    res = registry.dispatch_action(gid, "p1", {"type": "start_game"})
    assert not res.success and res.error_kind == ErrorKind.structural

    _join_all(registry, gid, "p3")
    res = registry.dispatch_action(gid, "p2", {"type": "start_game"})
    assert not res.success and res.error_kind == ErrorKind.authorization

    res = registry.dispatch_action(gid, "p1", {"type": "start_game"})
    assert res.success and res.game is not None and res.game.status == GameStatus.playing


def test_bad_payloads_and_unknown_games(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="degens-against-decency", creator=Player("p1", "Alice")).game_id

    res = registry.dispatch_action(gid, "p1", {"type": "dance"})
    assert not res.success and res.error_kind == ErrorKind.payload

    res = registry.dispatch_action(gid, "p1", {"type": "raise"})
    assert not res.success and res.error_kind == ErrorKind.payload

    res = registry.dispatch_action(gid, "p1", {"type": "fold"})
    assert not res.success and res.error_kind == ErrorKind.payload
    assert "Unknown action" in (res.error or "")

    res = registry.dispatch_action("missing", "p1", {"type": "start_game"})
    assert not res.success and res.error == "Game not found"


def test_empty_game_is_discarded(make_registry) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="poker", creator=Player("p1", "Alice")).game_id
    _join_all(registry, gid, "p2")

    assert registry.leave_game(gid, "p1").success
    assert registry.get_game(gid).host_id == "p2"  # type: ignore[union-attr]
    assert registry.leave_game(gid, "p2").success
    assert gid not in registry
    assert registry.get_game(gid) is None

    res = registry.leave_game(gid, "p2")
    assert not res.success


def test_disconnect_leaves_every_game(make_registry) -> None:
    registry = make_registry()
    g1 = registry.create_game(game_type="poker", creator=Player("p1", "Alice")).game_id
    g2 = registry.create_game(game_type="poker", creator=Player("p2", "Bob")).game_id
    registry.join_game(g2, Player("p1", "Alice"))

    assert sorted(registry.disconnect("p1")) == sorted([g1, g2])
    assert g1 not in registry
    assert registry.get_game(g2).players[0].player_id == "p2"  # type: ignore[union-attr]


def test_notifier_receives_private_views_after_mutation(make_registry) -> None:
    notifier = RecordingNotifier()
    registry = make_registry(notifier=notifier)
    gid = registry.create_game(game_type="degens-against-decency", creator=Player("p1", "Alice", channel="sock-1")).game_id
    _join_all(registry, gid, "p2", "p3")
    registry.dispatch_action(gid, "p1", {"type": "start_game"})

    game_id, recipients = notifier.games[-1]
    assert game_id == gid
    assert recipients[0] == ("p1", "sock-1")
    assert [pid for pid, _ in recipients] == ["p1", "p2", "p3"]
    view = notifier.last_deliveries[1].view.details
    assert isinstance(view, CardMatchView) and len(view.hand) == 7
    assert notifier.lobby[-1] == [gid]


def test_rejected_actions_do_not_notify(make_registry) -> None:
    notifier = RecordingNotifier()
    registry = make_registry(notifier=notifier)
    gid = registry.create_game(game_type="poker", creator=Player("p1", "Alice")).game_id
    count = len(notifier.games)

    registry.dispatch_action(gid, "p1", {"type": "start_game"})
    assert len(notifier.games) == count


def test_notifier_failure_is_logged_and_action_still_applies(make_registry, caplog: pytest.LogCaptureFixture) -> None:
    registry = make_registry(notifier=ExplodingNotifier())
    with caplog.at_level(logging.ERROR, logger="arena.registry"):
        gid = registry.create_game(game_type="poker", creator=Player("p1", "Alice")).game_id
        res = registry.join_game(gid, Player("p2", "Bob"))

    assert res.success
    assert len(registry.get_game(gid).players) == 2  # type: ignore[union-attr]
    assert any("notifier failed" in r.getMessage() for r in caplog.records)


def test_expire_deadlines_ignores_games_without_due_deadlines(make_registry, clock) -> None:
    registry = make_registry()
    gid = registry.create_game(game_type="2-truths-and-a-lie", creator=Player("p1", "Alice")).game_id
    _join_all(registry, gid, "p2", "p3")
    registry.dispatch_action(gid, "p1", {"type": "start_game"})

    assert registry.expire_deadlines() == []
    assert registry.expire_deadlines(now=clock.now + 121) == [gid]
