from __future__ import annotations

import logging

from arena.api.models import (
    GameAction,
    GameSnapshot,
    GameStatus,
    GameType,
    NextTurnAction,
    PlayerView,
    RevealAction,
    StartGameAction,
    StatementView,
    SubmitStatementsAction,
    SubmitVoteAction,
    TimeoutAction,
    TwoTruthsDetails,
    TwoTruthsTurnResult,
    TwoTruthsView,
    VoteResult,
)
from arena.assets.registry import GameAssets, TwoTruthsPrompt
from arena.errors import PayloadError
from arena.fsm import TurnFSM
from arena.games.base import GameLifecycle, Player
from arena.turn_processing.turns import next_in_rotation
from arena.turn_processing.validators import (
    START_GAME_PIPELINE,
    TIMEOUT_PIPELINE,
    RoleValidator,
    ValidationContext,
    pipeline_for_action,
    playing_pipeline,
)

logger = logging.getLogger(__name__)

STATEMENT_COUNT = 3


def _actor_of(game: "TwoTruthsGame") -> str | None:
    return game.actor_id


PIPELINES = {
    "start_game": START_GAME_PIPELINE,
    "submit_statements": playing_pipeline(
        RoleValidator(role="current player", holder=_actor_of),
        phases=frozenset({"awaiting_statements"}),
    ),
    "submit_vote": playing_pipeline(
        RoleValidator(role="current player", holder=_actor_of, required=False),
        phases=frozenset({"awaiting_votes"}),
    ),
    "reveal": playing_pipeline(
        RoleValidator(role="current player", holder=_actor_of),
        phases=frozenset({"awaiting_votes"}),
    ),
    "next_turn": playing_pipeline(
        RoleValidator(role="current player", holder=_actor_of, allow_host=True),
        phases=frozenset({"revealed"}),
    ),
    "timeout": TIMEOUT_PIPELINE,
}


class TwoTruthsGame:
    """2-truths-and-a-lie: the actor posts three statements, everyone else hunts the lie.

    Each seated player acts `two_truths_turns_per_player` times; the turn count is fixed
    from the roster size at start.
    """

    game_type = GameType.two_truths_and_a_lie

    def __init__(self, lifecycle: GameLifecycle, *, assets: GameAssets) -> None:
        self.lifecycle = lifecycle
        self.assets = assets

        self.prompts: list[TwoTruthsPrompt] = []
        self.prompt: TwoTruthsPrompt | None = None
        self.actor_id: str | None = None
        self._actor_seat = 0
        self.statements: list[str] = []
        self.lie_index: int | None = None
        self.votes: dict[str, int] = {}
        self.turn = 0
        self.total_turns = 0
        self._rotation_size = 1
        self.last_result: TwoTruthsTurnResult | None = None
        self._turn: TurnFSM | None = None

    @property
    def phase(self) -> str | None:
        return self._turn.phase if self._turn is not None else None

    # ---- roster ----

    def add_player(self, player: Player) -> None:
        self.lifecycle.add_player(player)

    def remove_player(self, player_id: str) -> bool:
        was_actor = player_id == self.actor_id
        seat = self.lifecycle.seat_of(player_id) if self.lifecycle.has_player(player_id) else None
        if not self.lifecycle.remove_player(player_id):
            return False
        if seat is not None and seat < self._actor_seat:
            self._actor_seat -= 1
        self.votes.pop(player_id, None)
        if self.lifecycle.status != GameStatus.playing:
            return True

        if len(self.lifecycle.players) < 2:
            self.lifecycle.finish()
        elif was_actor and self.phase in {"awaiting_statements", "awaiting_votes"}:
            logger.info("game %s actor %s left; skipping turn %s", self.lifecycle.game_id, player_id, self.turn)
            self._skip_turn()
            self._advance_turn()
        return True

    # ---- actions ----

    def handle_action(self, player_id: str, action: GameAction) -> None:
        ctx = ValidationContext(game_id=self.lifecycle.game_id, player_id=player_id, action=action.type)
        pipeline_for_action(PIPELINES, action.type, game_type=self.game_type.value).validate(ctx=ctx, game=self)

        if isinstance(action, StartGameAction):
            self._start()
        elif isinstance(action, SubmitStatementsAction):
            self._submit_statements(action.statements, action.lie_index)
        elif isinstance(action, SubmitVoteAction):
            self._vote(player_id, action.statement_index)
        elif isinstance(action, RevealAction):
            self._reveal()
        elif isinstance(action, NextTurnAction):
            self._advance_turn()
        elif isinstance(action, TimeoutAction):
            self._on_timeout(action)
        else:
            raise PayloadError(f"Unknown action for {self.game_type.value}: {action.type}")

    def _start(self) -> None:
        self.lifecycle.start()
        self._rotation_size = len(self.lifecycle.players)
        self.total_turns = self.lifecycle.settings.two_truths_turns_per_player * self._rotation_size
        self._turn = TurnFSM()
        self._actor_seat = 0
        self.actor_id = self.lifecycle.player_ids[0]
        self.turn = 1
        self._begin_turn()

    def _submit_statements(self, statements: list[str], lie_index: int) -> None:
        cleaned = [s.strip() for s in statements]
        if len(cleaned) != STATEMENT_COUNT:
            raise PayloadError(f"Must submit exactly {STATEMENT_COUNT} statements")
        if any(not s for s in cleaned):
            raise PayloadError("Statements cannot be empty")
        if not 0 <= lie_index < STATEMENT_COUNT:
            raise PayloadError("Invalid lie index")

        assert self._turn is not None
        self._turn.fire("statements_recorded")
        self.statements = cleaned
        self.lie_index = lie_index
        self.lifecycle.schedule(phase="awaiting_votes", seconds=self.lifecycle.settings.voting_timeout_s)

    def _vote(self, player_id: str, statement_index: int) -> None:
        if not 0 <= statement_index < len(self.statements):
            raise PayloadError("Invalid statement index")
        # Re-voting before the reveal replaces the earlier vote.
        self.votes[player_id] = statement_index

    def _reveal(self) -> None:
        assert self._turn is not None and self.actor_id is not None
        self._turn.fire("reveal_votes")
        settings = self.lifecycle.settings

        results: list[VoteResult] = []
        awarded: dict[str, int] = {}
        fooled = 0
        for voter_id, index in self.votes.items():
            correct = index == self.lie_index
            results.append(VoteResult(voter_id=voter_id, statement_index=index, correct=correct))
            if correct:
                self.lifecycle.award(voter_id, settings.points_for_correct_guess)
                awarded[voter_id] = settings.points_for_correct_guess
            else:
                fooled += 1
        if fooled:
            bonus = fooled * settings.points_for_fooling
            self.lifecycle.award(self.actor_id, bonus)
            awarded[self.actor_id] = bonus

        self.last_result = TwoTruthsTurnResult(
            turn=self.turn,
            actor_id=self.actor_id,
            lie_index=self.lie_index,
            votes=results,
            points_awarded=awarded,
        )
        self.lifecycle.schedule(phase="revealed", seconds=settings.reveal_timeout_s)

    def _on_timeout(self, action: TimeoutAction) -> None:
        deadline = self.lifecycle.consume_deadline(action)
        if deadline.phase == "awaiting_statements":
            self._skip_turn()
        elif deadline.phase == "awaiting_votes":
            self._reveal()
        elif deadline.phase == "revealed":
            self._advance_turn()

    # ---- turn flow ----

    def _begin_turn(self) -> None:
        if not self.prompts:
            self.prompts = self.assets.shuffled_prompts(rng=self.lifecycle.rng)
        self.prompt = self.prompts.pop() if self.prompts else None
        self.statements = []
        self.lie_index = None
        self.votes = {}
        self.lifecycle.current_round = (self.turn - 1) // self._rotation_size + 1
        self.lifecycle.schedule(phase="awaiting_statements", seconds=self.lifecycle.settings.statements_timeout_s)

    def _skip_turn(self) -> None:
        assert self._turn is not None and self.actor_id is not None
        self._turn.fire("skip_turn")
        self.last_result = TwoTruthsTurnResult(turn=self.turn, actor_id=self.actor_id, lie_index=None, skipped=True)
        self.lifecycle.schedule(phase="revealed", seconds=self.lifecycle.settings.reveal_timeout_s)

    def _advance_turn(self) -> None:
        if self.turn >= self.total_turns:
            self.lifecycle.finish()
            return

        assert self._turn is not None
        self._turn.fire("pass_turn")
        self.actor_id = next_in_rotation(self.lifecycle.player_ids, self.actor_id, fallback_index=self._actor_seat)
        self._actor_seat = self.lifecycle.seat_of(self.actor_id) if self.actor_id else 0
        self.turn += 1
        self._begin_turn()

    # ---- projection ----

    def _voters(self) -> list[str]:
        return [pid for pid in self.lifecycle.player_ids if pid != self.actor_id]

    def snapshot(self) -> GameSnapshot:
        actor = self.lifecycle.get_player(self.actor_id) if self.actor_id else None
        revealed = self.phase == "revealed"
        details = TwoTruthsDetails(
            phase=self.phase,
            actor=actor.summary() if actor else None,
            prompt=self.prompt.prompt if self.prompt else None,
            statements=[
                StatementView(index=i, text=text, is_lie=(i == self.lie_index) if revealed else None)
                for i, text in enumerate(self.statements)
            ],
            voter_ids=list(self.votes),
            all_voted=bool(self.statements) and all(pid in self.votes for pid in self._voters()),
            turn=self.turn,
            total_turns=self.total_turns,
            last_result=self.last_result,
            winners=list(self.lifecycle.winners),
        )
        return self.lifecycle.snapshot(details=details)

    def player_view(self, player_id: str) -> PlayerView:
        self.lifecycle.require_player(player_id)
        is_actor = player_id == self.actor_id
        details = TwoTruthsView(
            is_actor=is_actor,
            my_vote=self.votes.get(player_id),
            lie_index=self.lie_index if is_actor else None,
        )
        return PlayerView(game_id=self.lifecycle.game_id, player_id=player_id, details=details)
