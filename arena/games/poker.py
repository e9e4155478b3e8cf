from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field

from arena.api.models import (
    CallAction,
    CheckAction,
    FoldAction,
    GameAction,
    GameSnapshot,
    GameStatus,
    GameType,
    PlayerView,
    PlayingCardView,
    PokerDetails,
    PokerView,
    RaiseAction,
    SeatView,
    ShowdownEntry,
    StartGameAction,
    TimeoutAction,
)
from arena.errors import PayloadError, PhaseError
from arena.fsm import HandFSM
from arena.games.base import GameLifecycle, Player
from arena.games.cards import Card, Deck, best_hand
from arena.turn_processing.turns import first_eligible_from, next_in_rotation
from arena.turn_processing.validators import (
    START_GAME_PIPELINE,
    TIMEOUT_PIPELINE,
    RoleValidator,
    ValidationContext,
    pipeline_for_action,
    playing_pipeline,
)

logger = logging.getLogger(__name__)

BETTING_ROUNDS = 4
BETTING_PHASES = frozenset(f"betting-{n}" for n in range(1, BETTING_ROUNDS + 1))

DeckFactory = Callable[[random.Random], Deck]


def _bettor_of(game: "StudPokerGame") -> str | None:
    return game.to_act


_BETTOR = RoleValidator(role="player to act", holder=_bettor_of)

PIPELINES = {
    "start_game": START_GAME_PIPELINE,
    "fold": playing_pipeline(_BETTOR, phases=BETTING_PHASES),
    "call": playing_pipeline(_BETTOR, phases=BETTING_PHASES),
    "check": playing_pipeline(_BETTOR, phases=BETTING_PHASES),
    "raise": playing_pipeline(_BETTOR, phases=BETTING_PHASES),
    "timeout": TIMEOUT_PIPELINE,
}


@dataclass(slots=True)
class Seat:
    player_id: str
    stack: int
    bet: int = 0
    folded: bool = False
    hole: list[Card] = field(default_factory=list)
    up: list[Card] = field(default_factory=list)

    @property
    def cards(self) -> list[Card]:
        return [*self.hole, *self.up]


def _card_view(card: Card) -> PlayingCardView:
    return PlayingCardView(card_id=card.card_id, rank=card.rank.label, suit=card.suit.symbol)


class StudPokerGame:
    """Five-card stud, one hand per game.

    Seat 0 deals; blinds come from the next two seats. Each player gets a hole card and
    an up card, then one more up card after each of the first three betting rounds.
    """

    game_type = GameType.poker

    def __init__(self, lifecycle: GameLifecycle, *, deck_factory: DeckFactory = Deck.shuffled) -> None:
        self.lifecycle = lifecycle
        self.deck_factory = deck_factory
        settings = lifecycle.settings
        self.small_blind = settings.small_blind
        self.big_blind = settings.big_blind

        self.deck: Deck | None = None
        # Table order is fixed at start; players who leave stay as folded seats.
        self.seats: dict[str, Seat] = {}
        self.order: list[str] = []
        self.dealer_id: str | None = None
        self.to_act: str | None = None
        self.pot = 0
        self.current_bet = 0
        self.acted: set[str] = set()
        self.showdown: list[ShowdownEntry] = []
        self.winner_ids: list[str] = []
        self._hand: HandFSM | None = None

    @property
    def phase(self) -> str | None:
        return self._hand.phase if self._hand is not None else None

    @property
    def betting_round(self) -> int:
        phase = self.phase or ""
        return int(phase.split("-")[1]) if phase in BETTING_PHASES else 0

    def _active(self, player_id: str) -> bool:
        seat = self.seats.get(player_id)
        return seat is not None and not seat.folded

    def _active_ids(self) -> list[str]:
        return [pid for pid in self.order if self._active(pid)]

    # ---- roster ----

    def add_player(self, player: Player) -> None:
        self.lifecycle.add_player(player)

    def remove_player(self, player_id: str) -> bool:
        if not self.lifecycle.remove_player(player_id):
            return False
        if self.lifecycle.status != GameStatus.playing or not self._active(player_id):
            return True

        logger.info("game %s player %s left mid-hand; folding", self.lifecycle.game_id, player_id)
        was_to_act = player_id == self.to_act
        self.seats[player_id].folded = True
        self.acted.discard(player_id)
        if was_to_act:
            self._after_action(player_id)
        else:
            if not self._settle_if_uncontested():
                self._close_round_if_done()
        return True

    # ---- actions ----

    def handle_action(self, player_id: str, action: GameAction) -> None:
        ctx = ValidationContext(game_id=self.lifecycle.game_id, player_id=player_id, action=action.type)
        pipeline_for_action(PIPELINES, action.type, game_type=self.game_type.value).validate(ctx=ctx, game=self)

        if isinstance(action, StartGameAction):
            self._start()
        elif isinstance(action, FoldAction):
            self._fold(player_id)
        elif isinstance(action, CallAction):
            self._call(player_id)
        elif isinstance(action, CheckAction):
            self._check(player_id)
        elif isinstance(action, RaiseAction):
            self._raise(player_id, action.amount)
        elif isinstance(action, TimeoutAction):
            self._on_timeout(action)
        else:
            raise PayloadError(f"Unknown action for {self.game_type.value}: {action.type}")

    def _start(self) -> None:
        self.lifecycle.start()
        stack = self.lifecycle.settings.starting_stack
        self.order = list(self.lifecycle.player_ids)
        self.seats = {pid: Seat(player_id=pid, stack=stack) for pid in self.order}
        self.deck = self.deck_factory(self.lifecycle.rng)
        self._hand = HandFSM()

        n = len(self.order)
        self.dealer_id = self.order[0]
        self._post_blind(self.order[1 % n], self.small_blind)
        self._post_blind(self.order[2 % n], self.big_blind)
        self.current_bet = self.big_blind

        # One pass for hole cards, one for the first up card.
        for pid in self.order:
            self.seats[pid].hole.append(self.deck.draw())
        for pid in self.order:
            self.seats[pid].up.append(self.deck.draw())

        self.acted = set()
        self.to_act = self.order[3 % n]
        self._schedule_bettor()
        logger.info("game %s hand started dealer=%s pot=%s", self.lifecycle.game_id, self.dealer_id, self.pot)

    def _post_blind(self, player_id: str, amount: int) -> None:
        seat = self.seats[player_id]
        paid = min(amount, seat.stack)
        seat.stack -= paid
        seat.bet += paid
        self.pot += paid

    def _fold(self, player_id: str) -> None:
        self.seats[player_id].folded = True
        self._after_action(player_id)

    def _call(self, player_id: str) -> None:
        seat = self.seats[player_id]
        to_call = self.current_bet - seat.bet
        if to_call <= 0:
            raise PhaseError("Nothing to call; check instead")
        if seat.stack < to_call:
            raise PayloadError("Insufficient chips to call")
        seat.stack -= to_call
        seat.bet += to_call
        self.pot += to_call
        self._after_action(player_id)

    def _check(self, player_id: str) -> None:
        if self.seats[player_id].bet < self.current_bet:
            raise PhaseError("Cannot check, must call or fold")
        self._after_action(player_id)

    def _raise(self, player_id: str, amount: int) -> None:
        if amount < self.big_blind:
            raise PayloadError(f"Raise must be at least {self.big_blind}")
        seat = self.seats[player_id]
        new_bet = self.current_bet + amount
        cost = new_bet - seat.bet
        if cost > seat.stack:
            raise PayloadError("Insufficient chips to raise")
        seat.stack -= cost
        seat.bet = new_bet
        self.pot += cost
        self.current_bet = new_bet
        # Everyone else has to respond to the raise.
        self.acted = set()
        self._after_action(player_id)

    def _on_timeout(self, action: TimeoutAction) -> None:
        self.lifecycle.consume_deadline(action)
        pid = self.to_act
        if pid is None:
            return
        if self.seats[pid].bet >= self.current_bet:
            self._check(pid)
        else:
            self._fold(pid)

    # ---- betting flow ----

    def _after_action(self, player_id: str) -> None:
        if not self.seats[player_id].folded:
            self.acted.add(player_id)
        if self._settle_if_uncontested() or self._close_round_if_done():
            return
        self.to_act = next_in_rotation(self.order, player_id, eligible=self._active)
        self._schedule_bettor()

    def _round_complete(self) -> bool:
        return all(pid in self.acted and self.seats[pid].bet == self.current_bet for pid in self._active_ids())

    def _settle_if_uncontested(self) -> bool:
        active = self._active_ids()
        if len(active) != 1:
            return False
        assert self._hand is not None
        self._hand.fire("settle")
        self._pay([active[0]])
        self.lifecycle.finish()
        return True

    def _close_round_if_done(self) -> bool:
        if not self._round_complete():
            return False
        assert self._hand is not None and self.deck is not None

        if self.betting_round >= BETTING_ROUNDS:
            self._hand.fire("call_showdown")
            self._run_showdown()
            return True

        self._hand.fire("next_street")
        self.lifecycle.current_round += 1
        for pid in self._active_ids():
            seat = self.seats[pid]
            seat.up.append(self.deck.draw())
        for seat in self.seats.values():
            seat.bet = 0
        self.current_bet = 0
        self.acted = set()
        self.to_act = first_eligible_from(self.order, 1, eligible=self._active)
        self._schedule_bettor()
        return True

    def _run_showdown(self) -> None:
        assert self._hand is not None
        evaluations = {pid: best_hand(self.seats[pid].cards) for pid in self._active_ids()}
        best = max(e.strength for e in evaluations.values())
        winners = [pid for pid, e in evaluations.items() if e.strength == best]
        shares = self._pay(winners)

        self.showdown = [
            ShowdownEntry(
                player_id=pid,
                cards=[_card_view(c) for c in self.seats[pid].cards],
                category=e.category.label,
                description=e.description,
                strength=e.strength,
                amount_won=shares.get(pid, 0),
            )
            for pid, e in evaluations.items()
        ]
        self._hand.fire("settle")
        self.lifecycle.finish()

    def _pay(self, winners: list[str]) -> dict[str, int]:
        """Split the pot; odd chips go to the earliest winning seat."""

        share, remainder = divmod(self.pot, len(winners))
        shares = {pid: share for pid in winners}
        shares[winners[0]] += remainder
        for pid, amount in shares.items():
            self.seats[pid].stack += amount
            self.lifecycle.award(pid, amount)
        logger.info("game %s pot %s paid to %s", self.lifecycle.game_id, self.pot, shares)
        self.pot = 0
        self.winner_ids = list(winners)
        self.to_act = None
        return shares

    def _schedule_bettor(self) -> None:
        if self.phase in BETTING_PHASES:
            self.lifecycle.schedule(phase=self.phase, seconds=self.lifecycle.settings.bet_timeout_s)

    # ---- projection ----

    def snapshot(self) -> GameSnapshot:
        details = PokerDetails(
            phase=self.phase,
            pot=self.pot,
            current_bet=self.current_bet,
            min_raise=self.big_blind,
            betting_round=self.betting_round,
            max_betting_rounds=BETTING_ROUNDS,
            dealer_id=self.dealer_id,
            to_act=self.to_act,
            seats=[
                SeatView(
                    player_id=pid,
                    stack=s.stack,
                    bet=s.bet,
                    folded=s.folded,
                    up_cards=[_card_view(c) for c in s.up],
                )
                for pid, s in ((pid, self.seats[pid]) for pid in self.order)
            ],
            showdown=list(self.showdown),
            winner_ids=list(self.winner_ids),
        )
        return self.lifecycle.snapshot(details=details)

    def player_view(self, player_id: str) -> PlayerView:
        self.lifecycle.require_player(player_id)
        seat = self.seats.get(player_id)
        if seat is None:
            details = PokerView(stack=self.lifecycle.settings.starting_stack)
        else:
            to_call = max(self.current_bet - seat.bet, 0)
            details = PokerView(
                hole_cards=[_card_view(c) for c in seat.hole],
                up_cards=[_card_view(c) for c in seat.up],
                stack=seat.stack,
                to_call=to_call,
                can_check=to_call == 0 and player_id == self.to_act,
                is_turn=player_id == self.to_act,
            )
        return PlayerView(game_id=self.lifecycle.game_id, player_id=player_id, details=details)
