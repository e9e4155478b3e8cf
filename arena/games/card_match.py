from __future__ import annotations

import logging

from arena.api.models import (
    CardMatchDetails,
    CardMatchRoundResult,
    CardMatchView,
    CardView,
    GameAction,
    GameSnapshot,
    GameStatus,
    GameType,
    JudgeSubmissionAction,
    NextRoundAction,
    PlayerView,
    StartGameAction,
    SubmissionView,
    SubmitCardAction,
    TimeoutAction,
)
from arena.assets.registry import GameAssets, PromptCard
from arena.errors import PayloadError, PhaseError
from arena.fsm import CardRoundFSM
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


def _judge_of(game: "CardMatchGame") -> str | None:
    return game.judge_id


PIPELINES = {
    "start_game": START_GAME_PIPELINE,
    "submit_card": playing_pipeline(
        RoleValidator(role="judge", holder=_judge_of, required=False),
        phases=frozenset({"dealt"}),
    ),
    "judge_submission": playing_pipeline(
        RoleValidator(role="judge", holder=_judge_of),
        phases=frozenset({"judging"}),
    ),
    "next_round": playing_pipeline(
        RoleValidator(role="judge", holder=_judge_of, allow_host=True),
        phases=frozenset({"revealed"}),
    ),
    "timeout": TIMEOUT_PIPELINE,
}


def _card_view(card: PromptCard) -> CardView:
    return CardView(card_id=card.card_id, text=card.text, category=card.category)


class CardMatchGame:
    """degens-against-decency: a rotating judge picks the best anonymous answer to a prompt."""

    game_type = GameType.degens_against_decency

    def __init__(self, lifecycle: GameLifecycle, *, assets: GameAssets) -> None:
        self.lifecycle = lifecycle
        self.assets = assets
        self.max_rounds = lifecycle.settings.card_match_rounds
        self.cards_per_hand = lifecycle.settings.cards_per_hand

        self.question_pile: list[PromptCard] = []
        self.answer_pile: list[PromptCard] = []
        self.hands: dict[str, list[PromptCard]] = {}
        self.prompt: PromptCard | None = None
        self.judge_id: str | None = None
        self._judge_seat = 0
        # player_id -> card, in submission order
        self.submissions: dict[str, PromptCard] = {}
        # (submission_id, player_id, card) after the shuffle
        self.anonymous: list[tuple[str, str, PromptCard]] = []
        self.last_result: CardMatchRoundResult | None = None
        self._round: CardRoundFSM | None = None

    @property
    def phase(self) -> str | None:
        return self._round.phase if self._round is not None else None

    # ---- roster ----

    def add_player(self, player: Player) -> None:
        self.lifecycle.add_player(player)

    def remove_player(self, player_id: str) -> bool:
        was_judge = player_id == self.judge_id
        seat = self.lifecycle.seat_of(player_id) if self.lifecycle.has_player(player_id) else None
        if not self.lifecycle.remove_player(player_id):
            return False
        # Seats after the leaver shift down by one.
        if seat is not None and seat < self._judge_seat:
            self._judge_seat -= 1
        self.hands.pop(player_id, None)
        if self.lifecycle.status != GameStatus.playing:
            return True

        if len(self.lifecycle.players) < 2:
            self.lifecycle.finish()
            return True

        if was_judge and self.phase in {"dealt", "judging"}:
            logger.info("game %s judge %s left; voiding round %s", self.lifecycle.game_id, player_id, self.lifecycle.current_round)
            self._void_round()
            self._advance_round()
        elif self.phase == "dealt":
            self.submissions.pop(player_id, None)
            if self._everyone_submitted():
                self._open_judging()
        return True

    # ---- actions ----

    def handle_action(self, player_id: str, action: GameAction) -> None:
        ctx = ValidationContext(game_id=self.lifecycle.game_id, player_id=player_id, action=action.type)
        pipeline_for_action(PIPELINES, action.type, game_type=self.game_type.value).validate(ctx=ctx, game=self)

        if isinstance(action, StartGameAction):
            self._start()
        elif isinstance(action, SubmitCardAction):
            self._submit_card(player_id, action.card_id)
        elif isinstance(action, JudgeSubmissionAction):
            self._judge(action.submission_id)
        elif isinstance(action, NextRoundAction):
            self._advance_round()
        elif isinstance(action, TimeoutAction):
            self._on_timeout(action)
        else:
            raise PayloadError(f"Unknown action for {self.game_type.value}: {action.type}")

    def _start(self) -> None:
        self.lifecycle.start()
        rng = self.lifecycle.rng
        self.question_pile = self.assets.question_cards.shuffled(rng=rng)
        self.answer_pile = self.assets.answer_cards.shuffled(rng=rng)
        for pid in self.lifecycle.player_ids:
            self.hands[pid] = self._draw_answers(self.cards_per_hand)

        self._round = CardRoundFSM()
        self._judge_seat = 0
        self.judge_id = self.lifecycle.player_ids[0]
        self._begin_round()

    def _submit_card(self, player_id: str, card_id: str) -> None:
        if player_id in self.submissions:
            raise PhaseError("You already submitted a card this round")
        hand = self.hands.get(player_id, [])
        card = next((c for c in hand if c.card_id == card_id), None)
        if card is None:
            raise PayloadError("Card not found in your hand")

        hand.remove(card)
        self.submissions[player_id] = card
        if self._everyone_submitted():
            self._open_judging()

    def _judge(self, submission_id: str) -> None:
        entry = next((e for e in self.anonymous if e[0] == submission_id), None)
        if entry is None:
            raise PayloadError("Invalid submission selection")

        _, winner_id, _card = entry
        assert self._round is not None
        self._round.fire("judged")
        self.lifecycle.award(winner_id, 1)
        self._record_result(winner_id=winner_id, winning_submission_id=submission_id)
        self.lifecycle.schedule(phase="revealed", seconds=self.lifecycle.settings.reveal_timeout_s)
        logger.info("game %s round %s won by %s", self.lifecycle.game_id, self.lifecycle.current_round, winner_id)

    def _on_timeout(self, action: TimeoutAction) -> None:
        deadline = self.lifecycle.consume_deadline(action)
        if deadline.phase == "dealt":
            # Missing submitters are skipped; nothing submitted means nothing to judge.
            if self.submissions:
                self._open_judging()
            else:
                self._void_round()
        elif deadline.phase == "judging":
            self._void_round()
        elif deadline.phase == "revealed":
            self._advance_round()

    # ---- round flow ----

    def _begin_round(self) -> None:
        self.prompt = self.question_pile.pop()
        self.submissions = {}
        self.anonymous = []
        self.lifecycle.schedule(phase="dealt", seconds=self.lifecycle.settings.submission_timeout_s)

    def _awaiting(self) -> list[str]:
        return [pid for pid in self.lifecycle.player_ids if pid != self.judge_id and pid not in self.submissions]

    def _everyone_submitted(self) -> bool:
        return bool(self.submissions) and not self._awaiting()

    def _open_judging(self) -> None:
        assert self._round is not None
        self._round.fire("all_submitted")
        entries = list(self.submissions.items())
        self.lifecycle.rng.shuffle(entries)
        self.anonymous = [(f"s{i}", pid, card) for i, (pid, card) in enumerate(entries, start=1)]
        self.lifecycle.schedule(phase="judging", seconds=self.lifecycle.settings.judging_timeout_s)

    def _void_round(self) -> None:
        assert self._round is not None
        self._round.fire("void_round")
        self._record_result(winner_id=None, winning_submission_id=None)
        self.lifecycle.schedule(phase="revealed", seconds=self.lifecycle.settings.reveal_timeout_s)

    def _advance_round(self) -> None:
        if self.lifecycle.current_round >= self.max_rounds or not self.question_pile:
            self.lifecycle.finish()
            return

        assert self._round is not None
        self._round.fire("deal_next")
        for pid in self.lifecycle.player_ids:
            hand = self.hands.setdefault(pid, [])
            hand.extend(self._draw_answers(self.cards_per_hand - len(hand)))

        self.judge_id = next_in_rotation(self.lifecycle.player_ids, self.judge_id, fallback_index=self._judge_seat)
        self._judge_seat = self.lifecycle.seat_of(self.judge_id) if self.judge_id else 0
        self.lifecycle.current_round += 1
        self._begin_round()

    def _draw_answers(self, count: int) -> list[PromptCard]:
        drawn: list[PromptCard] = []
        while count > 0 and self.answer_pile:
            drawn.append(self.answer_pile.pop())
            count -= 1
        return drawn

    def _record_result(self, *, winner_id: str | None, winning_submission_id: str | None) -> None:
        if self.anonymous:
            shown = [
                SubmissionView(submission_id=sid, card=_card_view(card), player_id=pid)
                for sid, pid, card in self.anonymous
            ]
        else:
            shown = [
                SubmissionView(submission_id=f"s{i}", card=_card_view(card), player_id=pid)
                for i, (pid, card) in enumerate(self.submissions.items(), start=1)
            ]
        self.last_result = CardMatchRoundResult(
            round=self.lifecycle.current_round,
            judge_id=self.judge_id,
            prompt=_card_view(self.prompt) if self.prompt else None,
            winner_id=winner_id,
            winning_submission_id=winning_submission_id,
            submissions=shown,
        )

    # ---- projection ----

    def snapshot(self) -> GameSnapshot:
        judge = self.lifecycle.get_player(self.judge_id) if self.judge_id else None
        details = CardMatchDetails(
            phase=self.phase,
            judge=judge.summary() if judge else None,
            prompt=_card_view(self.prompt) if self.prompt else None,
            submitted_player_ids=list(self.submissions),
            awaiting_player_ids=self._awaiting() if self.phase == "dealt" else [],
            submission_count=len(self.submissions),
            max_rounds=self.max_rounds,
            cards_remaining=len(self.answer_pile),
            last_result=self.last_result,
            winners=list(self.lifecycle.winners),
        )
        return self.lifecycle.snapshot(details=details)

    def player_view(self, player_id: str) -> PlayerView:
        self.lifecycle.require_player(player_id)
        is_judge = player_id == self.judge_id
        submissions: list[SubmissionView] = []
        if is_judge and self.phase == "judging":
            submissions = [SubmissionView(submission_id=sid, card=_card_view(card)) for sid, _pid, card in self.anonymous]

        details = CardMatchView(
            hand=[_card_view(c) for c in self.hands.get(player_id, [])],
            is_judge=is_judge,
            has_submitted=player_id in self.submissions,
            submissions=submissions,
        )
        return PlayerView(game_id=self.lifecycle.game_id, player_id=player_id, details=details)
