from __future__ import annotations

import logging
import random

from arena.api.models import (
    ActionResult,
    CallAction,
    CardMatchDetails,
    CardMatchView,
    CheckAction,
    FoldAction,
    GameAction,
    GameStatus,
    JudgeSubmissionAction,
    NextRoundAction,
    NextTurnAction,
    PokerView,
    RevealAction,
    StartGameAction,
    SubmitCardAction,
    SubmitStatementsAction,
    SubmitVoteAction,
    TwoTruthsDetails,
    TwoTruthsView,
)
from arena.errors import GameNotFoundError
from arena.games.base import Game, Player
from arena.registry import GameRegistry

logger = logging.getLogger(__name__)

BOT_NAMES = ("DemoBot_Alpha", "DemoBot_Beta", "DemoBot_Gamma", "DemoBot_Delta", "DemoBot_Echo", "DemoBot_Foxtrot")

SAMPLE_STATEMENTS = (
    "I once ate 15 hamburgers in one sitting",
    "I have been to 12 different countries",
    "I can speak 4 languages fluently",
    "I have never broken a bone in my body",
    "I once met a famous celebrity at a coffee shop",
    "I have run a marathon in under 3 hours",
)


def add_demo_bots(registry: GameRegistry, game_id: str, *, count: int | None = None) -> list[str]:
    """Seat bot players in a waiting game; by default just enough to reach the start minimum."""

    game = registry.game(game_id)
    if game is None:
        raise GameNotFoundError("Game not found")
    lc = game.lifecycle

    wanted = max(0, registry.settings.min_players - len(lc.players)) if count is None else count
    wanted = min(wanted, lc.max_players - len(lc.players))

    added: list[str] = []
    n = 0
    while len(added) < wanted:
        n += 1
        bot_id = f"bot-{game_id[:8]}-{n}"
        if lc.has_player(bot_id):
            continue
        name = BOT_NAMES[(n - 1) % len(BOT_NAMES)]
        result = registry.join_game(game_id, Player(player_id=bot_id, display_name=name, is_bot=True))
        if not result.success:
            logger.info("bot %s could not join game %s: %s", bot_id, game_id, result.error)
            break
        added.append(bot_id)
    return added


def choose_bot_action(game: Game, bot_id: str, *, rng: random.Random) -> GameAction | None:
    """A legal move for `bot_id` right now, or None if the bot has nothing to do."""

    lc = game.lifecycle
    if lc.status == GameStatus.waiting:
        if bot_id == lc.host_id and len(lc.players) >= lc.settings.min_players:
            return StartGameAction()
        return None
    if lc.status != GameStatus.playing:
        return None

    details = game.snapshot().details
    view = game.player_view(bot_id).details

    if isinstance(details, CardMatchDetails) and isinstance(view, CardMatchView):
        if details.phase == "dealt" and not view.is_judge and not view.has_submitted and view.hand:
            return SubmitCardAction(card_id=rng.choice(view.hand).card_id)
        if details.phase == "judging" and view.is_judge and view.submissions:
            return JudgeSubmissionAction(submission_id=rng.choice(view.submissions).submission_id)
        if details.phase == "revealed" and view.is_judge:
            return NextRoundAction()
        return None

    if isinstance(details, TwoTruthsDetails) and isinstance(view, TwoTruthsView):
        if details.phase == "awaiting_statements" and view.is_actor:
            return SubmitStatementsAction(statements=rng.sample(SAMPLE_STATEMENTS, 3), lie_index=rng.randrange(3))
        if details.phase == "awaiting_votes":
            if not view.is_actor and view.my_vote is None:
                return SubmitVoteAction(statement_index=rng.randrange(len(details.statements)))
            if view.is_actor and details.all_voted:
                return RevealAction()
        if details.phase == "revealed" and view.is_actor:
            return NextTurnAction()
        return None

    if isinstance(view, PokerView) and view.is_turn:
        if view.can_check:
            return CheckAction()
        if view.to_call <= view.stack:
            return CallAction()
        return FoldAction()
    return None


def run_bots_once(registry: GameRegistry, game_id: str, *, rng: random.Random | None = None) -> ActionResult | None:
    """Let the first bot with something to do take one action."""

    game = registry.game(game_id)
    if game is None:
        raise GameNotFoundError("Game not found")
    rng = rng or registry.rng

    for player in list(game.lifecycle.players):
        if not player.is_bot:
            continue
        action = choose_bot_action(game, player.player_id, rng=rng)
        if action is None:
            continue
        logger.info("bot %s in game %s plays %s", player.player_id, game_id, action.type)
        return registry.dispatch_action(game_id, player.player_id, action)
    return None
