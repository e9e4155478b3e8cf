from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from arena.api.models import GameStatus
from arena.errors import PhaseError


class _PhaseMachine(StateMachine):
    """Shared helpers for the phase machines below.

    Transitions are only guards; games mutate their own data and then fire the event.
    """

    @property
    def phase(self) -> str:
        return str(self.current_state.value)

    def fire(self, event: str) -> None:
        try:
            self.send(event)
        except TransitionNotAllowed as e:
            raise PhaseError(f"Cannot {event.replace('_', ' ')} while {self.phase}") from e


class LifecycleFSM(_PhaseMachine):
    """waiting -> playing -> finished; never backwards."""

    waiting = State(GameStatus.waiting.value, value=GameStatus.waiting.value, initial=True)
    playing = State(GameStatus.playing.value, value=GameStatus.playing.value)
    finished = State(GameStatus.finished.value, value=GameStatus.finished.value, final=True)

    begin = waiting.to(playing)
    conclude = playing.to(finished) | waiting.to(finished)


class CardRoundFSM(_PhaseMachine):
    """degens-against-decency round: dealt -> judging -> revealed -> dealt ..."""

    dealt = State("dealt", value="dealt", initial=True)
    judging = State("judging", value="judging")
    revealed = State("revealed", value="revealed")

    all_submitted = dealt.to(judging)
    judged = judging.to(revealed)
    void_round = dealt.to(revealed) | judging.to(revealed)
    deal_next = revealed.to(dealt)


class TurnFSM(_PhaseMachine):
    """2-truths-and-a-lie turn: awaiting_statements -> awaiting_votes -> revealed -> ..."""

    awaiting_statements = State("awaiting_statements", value="awaiting_statements", initial=True)
    awaiting_votes = State("awaiting_votes", value="awaiting_votes")
    revealed = State("revealed", value="revealed")

    statements_recorded = awaiting_statements.to(awaiting_votes)
    reveal_votes = awaiting_votes.to(revealed)
    skip_turn = awaiting_statements.to(revealed) | awaiting_votes.to(revealed)
    pass_turn = revealed.to(awaiting_statements)


class HandFSM(_PhaseMachine):
    """Stud hand: four betting rounds, showdown, complete."""

    betting_1 = State("betting-1", value="betting-1", initial=True)
    betting_2 = State("betting-2", value="betting-2")
    betting_3 = State("betting-3", value="betting-3")
    betting_4 = State("betting-4", value="betting-4")
    showdown = State("showdown", value="showdown")
    complete = State("complete", value="complete", final=True)

    next_street = betting_1.to(betting_2) | betting_2.to(betting_3) | betting_3.to(betting_4)
    call_showdown = betting_4.to(showdown)
    settle = (
        showdown.to(complete)
        | betting_1.to(complete)
        | betting_2.to(complete)
        | betting_3.to(complete)
        | betting_4.to(complete)
    )
